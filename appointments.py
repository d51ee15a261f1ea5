"""
Clinic appointments.

A slot is a (date, time) pair; two appointments that are not cancelled may
never share one. The query check below is the primary guard; the partial
unique index from `database.ensure_indexes` catches the concurrent inserts
that slip between the check and the write.
"""
import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from auth import get_current_user, require_admin
from database import create_document, db, utcnow
from errors import ConflictError, Forbidden, NotFound, ValidationError
from helpers import ensure_owner_or_admin, join_owners, parse_day, require_fields, serialize_doc, to_object_id
from schemas import APPOINTMENT_STATUSES, Appointment, AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])

SLOT_TAKEN = "This time slot is already booked"


class AppointmentCreateRequest(BaseModel):
    pet: Optional[str] = None
    service: Optional[AppointmentService] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdateRequest(BaseModel):
    pet: Optional[str] = None
    service: Optional[AppointmentService] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class StatusRequest(BaseModel):
    status: Optional[str] = None


def find_slot_conflict(day: datetime, time: str, exclude_id: Optional[ObjectId] = None) -> Optional[dict]:
    query = {"date": day, "time": time, "status": {"$ne": "cancelled"}}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["appointment"].find_one(query)


def check_status(status: Optional[str]):
    if status not in APPOINTMENT_STATUSES:
        raise ValidationError("Invalid status")


def is_reactivation(appointment: dict, status: Optional[str]) -> bool:
    return appointment.get("status") == "cancelled" and bool(status) and status != "cancelled"


def load_appointment(appointment_id: str) -> dict:
    appointment = db["appointment"].find_one({"_id": to_object_id(appointment_id, "Appointment")})
    if not appointment:
        raise NotFound("Appointment not found")
    return appointment


@router.post("", status_code=201)
def create_appointment(req: AppointmentCreateRequest, user: dict = Depends(get_current_user)):
    require_fields(req.model_dump(), ("pet", "service", "date", "time"), "All fields are required")
    day = parse_day(req.date)
    time = req.time.strip()
    if find_slot_conflict(day, time):
        logger.warning(f"Slot {day.date()} {time} already booked, rejected for user {user['_id']}")
        raise ConflictError(SLOT_TAKEN)
    appointment = Appointment(user_id=user["_id"], pet=req.pet, service=req.service, date=day, time=time, notes=req.notes)
    try:
        appointment_id = create_document("appointment", appointment)
    except DuplicateKeyError:
        raise ConflictError(SLOT_TAKEN)
    logger.info(f"Appointment {appointment_id} booked for {day.date()} {time}")
    return serialize_doc(db["appointment"].find_one({"_id": ObjectId(appointment_id)}))


@router.get("")
def list_appointments(user: dict = Depends(get_current_user)):
    query = {} if user.get("is_admin") else {"user_id": user["_id"]}
    appointments = db["appointment"].find(query).sort([("date", 1), ("time", 1)])
    return join_owners(appointments)


@router.get("/{appointment_id}")
def get_appointment(appointment_id: str, user: dict = Depends(get_current_user)):
    appointment = load_appointment(appointment_id)
    ensure_owner_or_admin(appointment, user, "Not authorized to access this appointment")
    return join_owners([appointment])[0]


@router.put("/{appointment_id}")
def update_appointment(appointment_id: str, req: AppointmentUpdateRequest, user: dict = Depends(get_current_user)):
    appointment = load_appointment(appointment_id)
    ensure_owner_or_admin(appointment, user, "Not authorized to update this appointment")
    if req.status:
        if not user.get("is_admin"):
            raise Forbidden("Only admins can change the appointment status")
        check_status(req.status)

    updates = {}
    reactivating = is_reactivation(appointment, req.status)
    if (req.date and req.time) or reactivating:
        day = parse_day(req.date) if req.date else appointment["date"]
        time = req.time.strip() if req.time else appointment["time"]
        if find_slot_conflict(day, time, exclude_id=appointment["_id"]):
            logger.warning(f"Update of {appointment['_id']} to {day.date()} {time} rejected")
            raise ConflictError(SLOT_TAKEN)

    if req.pet:
        updates["pet"] = req.pet
    if req.service:
        updates["service"] = req.service
    if req.date:
        updates["date"] = parse_day(req.date)
    if req.time:
        updates["time"] = req.time.strip()
    if req.notes is not None:
        updates["notes"] = req.notes
    if req.status:
        updates["status"] = req.status
    updates["updated_at"] = utcnow()

    try:
        db["appointment"].update_one({"_id": appointment["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        raise ConflictError(SLOT_TAKEN)
    logger.info(f"Appointment {appointment['_id']} updated: {sorted(updates)}")
    return serialize_doc(db["appointment"].find_one({"_id": appointment["_id"]}))


@router.delete("/{appointment_id}")
def delete_appointment(appointment_id: str, user: dict = Depends(get_current_user)):
    appointment = load_appointment(appointment_id)
    ensure_owner_or_admin(appointment, user, "Not authorized to delete this appointment")
    db["appointment"].delete_one({"_id": appointment["_id"]})
    logger.info(f"Appointment {appointment['_id']} deleted")
    return {"message": "Appointment deleted successfully"}


@router.put("/{appointment_id}/status")
def update_appointment_status(appointment_id: str, req: StatusRequest, admin: dict = Depends(require_admin)):
    appointment = load_appointment(appointment_id)
    check_status(req.status)
    # Any valid status is accepted from any current status, but a cancelled
    # appointment only comes back if its slot is still free
    if is_reactivation(appointment, req.status):
        if find_slot_conflict(appointment["date"], appointment["time"], exclude_id=appointment["_id"]):
            logger.warning(f"Reactivation of {appointment['_id']} rejected, slot taken")
            raise ConflictError(SLOT_TAKEN)
    try:
        db["appointment"].update_one(
            {"_id": appointment["_id"]}, {"$set": {"status": req.status, "updated_at": utcnow()}}
        )
    except DuplicateKeyError:
        raise ConflictError(SLOT_TAKEN)
    logger.info(f"Appointment {appointment['_id']} status {appointment.get('status')} -> {req.status}")
    return serialize_doc(db["appointment"].find_one({"_id": appointment["_id"]}))
