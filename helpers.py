import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

from database import db
from errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)

# Profile fields exposed when a booking is joined with its owner
OWNER_FIELDS = ("first_name", "last_name", "email", "phone", "pets")
PET_DETAIL_FIELDS = ("name", "type", "breed", "age")

# Stored as midnight datetimes, rendered back as plain calendar days
DAY_FIELDS = {"date"}


def to_object_id(value: Any, label: str = "Resource") -> ObjectId:
    """Parse a path/body id; malformed ids are reported as a missing resource."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise NotFound(f"{label} not found")
    return ObjectId(value)


def parse_day(value: Any) -> datetime:
    """Normalize "2025-06-01" or an ISO timestamp to midnight of that day."""
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    else:
        text = str(value).strip()
        try:
            day = date.fromisoformat(text[:10])
        except ValueError:
            raise ValidationError("Invalid date")
    return datetime(day.year, day.month, day.day)


def serialize_doc(doc: Any, key: Optional[str] = None) -> Any:
    """Make a Mongo document JSON-ready: _id -> id, ObjectId -> str, datetimes -> ISO."""
    if isinstance(doc, dict):
        out = {}
        for k, v in doc.items():
            out["id" if k == "_id" else k] = serialize_doc(v, k)
        return out
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        if key in DAY_FIELDS:
            return doc.date().isoformat()
        return doc.isoformat()
    return doc


def public_user(user: dict) -> dict:
    """User profile without the password hash."""
    return serialize_doc({k: v for k, v in user.items() if k != "password_hash"})


def find_pet(user: Optional[dict], pet_id: Any) -> Optional[dict]:
    if not user or pet_id is None:
        return None
    for pet in user.get("pets", []):
        if str(pet.get("_id")) == str(pet_id):
            return pet
    return None


def join_owners(docs: Iterable[dict]) -> List[dict]:
    """Attach owner profile and pet details to appointment/booking documents."""
    docs = list(docs)
    owner_ids = list({d["user_id"] for d in docs if d.get("user_id")})
    owners: Dict[ObjectId, dict] = {}
    if owner_ids:
        projection = {f: 1 for f in OWNER_FIELDS}
        for u in db["user"].find({"_id": {"$in": owner_ids}}, projection):
            owners[u["_id"]] = u
    joined = []
    for doc in docs:
        owner = owners.get(doc.get("user_id"))
        out = serialize_doc(doc)
        out["user"] = serialize_doc(owner) if owner else None
        pet = find_pet(owner, doc.get("pet"))
        if pet:
            out["pet_details"] = {f: pet.get(f) for f in PET_DETAIL_FIELDS}
        joined.append(out)
    return joined


def ensure_owner_or_admin(doc: dict, user: dict, message: str = "Not authorized"):
    if user.get("is_admin") or doc.get("user_id") == user["_id"]:
        return
    logger.warning(f"User {user['_id']} denied access to {doc.get('_id')}")
    raise Forbidden(message)


def require_fields(body: dict, fields: Iterable[str], message: str):
    """Reject missing or empty values the way the booking forms expect."""
    for field in fields:
        value = body.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message)
