"""
Error kinds raised by the routers and the handlers that render them.

Every error body is {"message": ...}; the order and product endpoints wrap it
in their {"success": false, ...} envelope.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import IS_PRODUCTION

logger = logging.getLogger(__name__)

ENVELOPE_PREFIXES = ("/api/orders", "/api/products")


class APIError(HTTPException):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(APIError):
    status_code = 400


class ConflictError(APIError):
    status_code = 400


class Unauthorized(APIError):
    status_code = 401


class Forbidden(APIError):
    status_code = 403


class NotFound(APIError):
    status_code = 404


class ServerError(APIError):
    status_code = 500


def error_body(request: Request, message: str, **extra) -> dict:
    body = {"message": message, **extra}
    if request.url.path.startswith(ENVELOPE_PREFIXES):
        body = {"success": False, **body}
    return body


def _describe(errors) -> str:
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        field = ".".join(loc)
        parts.append(f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid request"))
    return "; ".join(parts) or "Invalid request"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = _describe(exc.errors())
    logger.warning(f"Validation error for {request.url.path}: {message}")
    return JSONResponse(status_code=ValidationError.status_code, content=error_body(request, message))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} - Unhandled error: {exc}")
    message = "Internal server error" if IS_PRODUCTION else str(exc)
    return JSONResponse(status_code=ServerError.status_code, content=error_body(request, message))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
