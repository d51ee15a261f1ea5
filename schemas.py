"""
Database Schemas for the pet-care app

Each Pydantic model maps to a MongoDB collection (lowercased class name).

Collections:
- user (pets embedded)
- appointment
- servicebooking
- product
- order
"""
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

# Status casing differs per entity and clients rely on it, keep them separate
AppointmentService = Literal["Checkup", "Vaccination", "Grooming"]
AppointmentStatus = Literal["pending", "confirmed", "cancelled"]
ServiceType = Literal["Pet Taxi", "Home Visit", "Pet Boarding"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled"]
OrderStatus = Literal["Pending", "Processing", "Shipped", "Delivered", "Cancelled"]

APPOINTMENT_STATUSES = ("pending", "confirmed", "cancelled")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
ORDER_STATUSES = ("Pending", "Processing", "Shipped", "Delivered", "Cancelled")
DELETABLE_ORDER_STATUSES = ("Pending", "Cancelled")

CASH_ON_DELIVERY = "Cash on Delivery"


class _Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class Pet(_Document):
    """
    Embedded in user.pets, addressed by its own _id
    """
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    name: str = Field(..., description="Pet name")
    type: str = Field(..., description="Species, e.g. Dog, Cat")
    breed: str = Field("", description="Breed")
    age: int = Field(0, ge=0, description="Age in years")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class User(_Document):
    """
    Users collection schema
    Collection name: "user"
    """
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: EmailStr = Field(..., description="Email address, unique")
    password_hash: str = Field(..., description="BCrypt password hash")
    phone: str = Field("", description="Contact phone")
    address: str = Field("", description="Home address")
    is_admin: bool = Field(False, description="Admin user flag")
    pets: List[Pet] = Field(default_factory=list)


class Appointment(_Document):
    """
    Clinic appointments
    Collection name: "appointment"
    """
    user_id: ObjectId
    pet: str = Field(..., description="Pet sub-id within the owner's pets")
    service: AppointmentService
    date: datetime = Field(..., description="Calendar day at midnight")
    time: str = Field(..., description="Time of day, e.g. 10:00")
    notes: Optional[str] = None
    status: AppointmentStatus = "pending"


class ServiceBooking(_Document):
    """
    Ad-hoc services (taxi, home visit, boarding)
    Collection name: "servicebooking"
    """
    user_id: ObjectId
    pet: str
    service_type: ServiceType
    date: datetime
    time: str
    address: str
    notes: str = ""
    status: BookingStatus = "pending"
    price: float = Field(..., ge=0)


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., description="Product name")
    price: float = Field(..., ge=0, description="Unit price")
    image_url: Optional[str] = Field(None, description="Image URL")
    category: str = Field(..., description="Food, Toys, Accessories, Health...")
    description: Optional[str] = Field(None, description="Product description")
    rating: float = Field(0, ge=0, le=5, description="Average rating")
    review_count: int = Field(0, ge=0, description="Number of reviews")
    is_new: bool = Field(False, description="Show the 'new' badge")


class OrderItem(_Document):
    product: ObjectId
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at order time")


class ContactInfo(BaseModel):
    name: str
    email: EmailStr
    phone: str


class Order(_Document):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: ObjectId
    items: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    shipping_address: str = ""
    contact_info: ContactInfo
    payment_method: Literal["Cash on Delivery"] = CASH_ON_DELIVERY
    delivery_notes: str = ""
    status: OrderStatus = "Pending"
