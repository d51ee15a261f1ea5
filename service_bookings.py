"""
Ad-hoc pet services: taxi rides, home visits and boarding.

Unlike clinic appointments these are not slot-checked; several bookings may
share a date and time.
"""
import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import get_current_user, require_admin
from database import create_document, db, utcnow
from errors import Forbidden, NotFound, ValidationError
from helpers import (
    ensure_owner_or_admin,
    find_pet,
    join_owners,
    parse_day,
    require_fields,
    serialize_doc,
    to_object_id,
)
from schemas import BOOKING_STATUSES, ServiceBooking, ServiceType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/services", tags=["Service bookings"])


class BookingCreateRequest(BaseModel):
    pet: str
    service_type: ServiceType
    date: str
    time: str
    address: str
    notes: str = ""
    price: float = Field(..., ge=0)


class BookingUpdateRequest(BaseModel):
    pet: Optional[str] = None
    service_type: Optional[ServiceType] = None
    date: Optional[str] = None
    time: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    status: Optional[str] = None


class StatusRequest(BaseModel):
    status: Optional[str] = None


def check_status(status: Optional[str]):
    if status not in BOOKING_STATUSES:
        raise ValidationError("Invalid status")


def load_booking(booking_id: str) -> dict:
    booking = db["servicebooking"].find_one({"_id": to_object_id(booking_id, "Booking")})
    if not booking:
        raise NotFound("Booking not found")
    return booking


@router.post("/book", status_code=201)
def create_booking(req: BookingCreateRequest, user: dict = Depends(get_current_user)):
    require_fields(req.model_dump(), ("pet", "date", "time", "address"), "All fields are required")
    if find_pet(user, req.pet) is None:
        raise ValidationError("Pet not found")
    booking = ServiceBooking(
        user_id=user["_id"],
        pet=req.pet,
        service_type=req.service_type,
        date=parse_day(req.date),
        time=req.time.strip(),
        address=req.address.strip(),
        notes=req.notes,
        price=req.price,
    )
    booking_id = create_document("servicebooking", booking)
    logger.info(f"Service booking {booking_id} ({req.service_type}) created for user {user['_id']}")
    return serialize_doc(db["servicebooking"].find_one({"_id": ObjectId(booking_id)}))


@router.get("/my-bookings")
def my_bookings(user: dict = Depends(get_current_user)):
    bookings = db["servicebooking"].find({"user_id": user["_id"]}).sort("date", -1)
    return join_owners(bookings)


@router.get("/stats")
def service_stats(admin: dict = Depends(require_admin)):
    overall = list(
        db["servicebooking"].aggregate([
            {
                "$group": {
                    "_id": None,
                    "total_bookings": {"$sum": 1},
                    "total_revenue": {"$sum": "$price"},
                    "average_price": {"$avg": "$price"},
                }
            }
        ])
    )
    by_service = db["servicebooking"].aggregate([
        {"$group": {"_id": "$service_type", "count": {"$sum": 1}}},
        {"$sort": {"count": -1, "_id": 1}},
    ])
    summary = {"total_bookings": 0, "total_revenue": 0, "average_price": 0}
    if overall:
        summary = {k: overall[0][k] or 0 for k in summary}
    return {
        "overall": summary,
        "by_service": [{"service_type": s["_id"], "count": s["count"]} for s in by_service],
    }


@router.get("")
def list_bookings(admin: dict = Depends(require_admin)):
    bookings = db["servicebooking"].find({}).sort("date", -1)
    return join_owners(bookings)


@router.get("/{booking_id}")
def get_booking(booking_id: str, user: dict = Depends(get_current_user)):
    booking = load_booking(booking_id)
    ensure_owner_or_admin(booking, user, "Not authorized to access this booking")
    return join_owners([booking])[0]


@router.put("/{booking_id}")
def update_booking(booking_id: str, req: BookingUpdateRequest, user: dict = Depends(get_current_user)):
    booking = load_booking(booking_id)
    ensure_owner_or_admin(booking, user, "Not authorized to update this booking")
    if req.status:
        if not user.get("is_admin"):
            raise Forbidden("Only admins can change the booking status")
        check_status(req.status)

    updates = {}
    if req.pet:
        updates["pet"] = req.pet
    if req.service_type:
        updates["service_type"] = req.service_type
    if req.date:
        updates["date"] = parse_day(req.date)
    if req.time and req.time.strip():
        updates["time"] = req.time.strip()
    if req.address and req.address.strip():
        updates["address"] = req.address.strip()
    if req.notes is not None:
        updates["notes"] = req.notes
    if req.price is not None:
        updates["price"] = req.price
    if req.status:
        updates["status"] = req.status
    updates["updated_at"] = utcnow()

    db["servicebooking"].update_one({"_id": booking["_id"]}, {"$set": updates})
    logger.info(f"Service booking {booking['_id']} updated: {sorted(updates)}")
    return serialize_doc(db["servicebooking"].find_one({"_id": booking["_id"]}))


@router.delete("/{booking_id}")
def delete_booking(booking_id: str, user: dict = Depends(get_current_user)):
    booking = load_booking(booking_id)
    ensure_owner_or_admin(booking, user, "Not authorized to delete this booking")
    db["servicebooking"].delete_one({"_id": booking["_id"]})
    logger.info(f"Service booking {booking['_id']} deleted")
    return {"message": "Booking removed"}


@router.put("/{booking_id}/status")
def update_booking_status(booking_id: str, req: StatusRequest, admin: dict = Depends(require_admin)):
    booking = load_booking(booking_id)
    check_status(req.status)
    db["servicebooking"].update_one({"_id": booking["_id"]}, {"$set": {"status": req.status, "updated_at": utcnow()}})
    logger.info(f"Service booking {booking['_id']} status {booking.get('status')} -> {req.status}")
    return serialize_doc(db["servicebooking"].find_one({"_id": booking["_id"]}))
