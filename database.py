"""
MongoDB access for the pet-care API.

`db` is None when DATABASE_URL is not configured; every route then fails with a
500 through the catch-all handler instead of at import time.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.errors import OperationFailure

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info(f"MongoDB client configured for database '{DATABASE_NAME}'")
else:
    logger.warning("DATABASE_URL not set - database is unavailable")

ACTIVE_APPOINTMENT_STATUSES = ["pending", "confirmed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes():
    """Create the uniqueness constraints the write paths rely on."""
    if db is None:
        return
    db["user"].create_index([("email", ASCENDING)], unique=True, name="email_unique")
    # Backs the appointment slot check; $in partial filters need MongoDB 6.0+
    try:
        db["appointment"].create_index(
            [("date", ASCENDING), ("time", ASCENDING)],
            unique=True,
            name="active_slot_unique",
            partialFilterExpression={"status": {"$in": ACTIVE_APPOINTMENT_STATUSES}},
        )
    except OperationFailure as e:
        logger.warning(f"Appointment slot index not created, relying on query check only: {e}")
