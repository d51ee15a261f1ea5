"""
Cash-on-delivery orders.

The order total is always recomputed from the catalog at creation time; any
price or total the client sends is ignored. Line items keep the unit price
they were bought at so later catalog changes do not rewrite history.
"""
import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field

from auth import get_current_user, require_admin
from database import create_document, db, utcnow
from errors import Forbidden, NotFound, ValidationError
from helpers import ensure_owner_or_admin, serialize_doc, to_object_id
from schemas import DELETABLE_ORDER_STATUSES, ORDER_STATUSES, ContactInfo, Order, OrderItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


class OrderItemRequest(BaseModel):
    product: str
    quantity: int = Field(1, ge=1)


class ContactInfoRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class OrderCreateRequest(BaseModel):
    items: List[OrderItemRequest] = []
    shipping_address: str = ""
    contact_info: Optional[ContactInfoRequest] = None
    delivery_notes: Optional[str] = None


class OrderStatusRequest(BaseModel):
    status: Optional[str] = None


class OrderUpdateRequest(BaseModel):
    status: Optional[str] = None
    delivery_notes: Optional[str] = None


def check_status(status: Optional[str]):
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")


def load_order(order_id: str) -> dict:
    order = db["order"].find_one({"_id": to_object_id(order_id, "Order")})
    if not order:
        raise NotFound("Order not found")
    return order


def price_items(items: List[OrderItemRequest]):
    """Look up current prices; returns (line items, total).

    Unit prices are captured in cents so the total always equals the sum of
    the stored line items.
    """
    line_items = []
    total_cents = 0
    for item in items:
        if not ObjectId.is_valid(item.product):
            raise NotFound(f"Product not found: {item.product}")
        product = db["product"].find_one({"_id": ObjectId(item.product)})
        if not product:
            raise NotFound(f"Product not found: {item.product}")
        cents = round(float(product["price"]) * 100)
        total_cents += cents * item.quantity
        line_items.append(OrderItem(product=product["_id"], quantity=item.quantity, price=cents / 100))
    return line_items, total_cents / 100


def with_products(orders) -> List[dict]:
    """Replace each line item's product id with the product document (None once deleted)."""
    orders = list(orders)
    product_ids = list({i["product"] for o in orders for i in o.get("items", [])})
    products = {}
    if product_ids:
        products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": product_ids}})}
    out = []
    for order in orders:
        doc = serialize_doc(order)
        for item, raw in zip(doc.get("items", []), order.get("items", [])):
            product = products.get(raw["product"])
            item["product"] = serialize_doc(product) if product else None
        out.append(doc)
    return out


@router.post("", status_code=201)
def create_order(req: OrderCreateRequest, user: dict = Depends(get_current_user)):
    contact = req.contact_info
    if not contact or not contact.name or not contact.email or not contact.phone:
        raise ValidationError("Contact information is required")
    if not req.items:
        raise ValidationError("Order must contain at least one item")

    line_items, total = price_items(req.items)
    order = Order(
        user_id=user["_id"],
        items=line_items,
        total_amount=total,
        shipping_address=req.shipping_address,
        contact_info=ContactInfo(name=contact.name, email=contact.email, phone=contact.phone),
        delivery_notes=req.delivery_notes or "",
    )
    order_id = create_document("order", order)
    logger.info(f"Order {order_id} placed by user {user['_id']}: {len(line_items)} item(s), total {total}")
    created = db["order"].find_one({"_id": ObjectId(order_id)})
    return {"success": True, "message": "Order created successfully", "order": serialize_doc(created)}


@router.get("/myorders")
def my_orders(user: dict = Depends(get_current_user)):
    orders = db["order"].find({"user_id": user["_id"]}).sort("created_at", -1)
    return {"success": True, "orders": with_products(orders)}


@router.get("")
def list_orders(admin: dict = Depends(require_admin)):
    orders = db["order"].find({}).sort("created_at", -1)
    return {"success": True, "orders": with_products(orders)}


@router.get("/{order_id}")
def get_order(order_id: str, user: dict = Depends(get_current_user)):
    order = load_order(order_id)
    if order["user_id"] != user["_id"]:
        logger.warning(f"User {user['_id']} denied access to order {order['_id']}")
        raise Forbidden("Not authorized to access this order")
    return {"success": True, "order": with_products([order])[0]}


@router.put("/{order_id}/status")
def update_order_status(order_id: str, req: OrderStatusRequest, admin: dict = Depends(require_admin)):
    check_status(req.status)
    order = load_order(order_id)
    db["order"].update_one({"_id": order["_id"]}, {"$set": {"status": req.status, "updated_at": utcnow()}})
    logger.info(f"Order {order['_id']} status {order.get('status')} -> {req.status}")
    updated = db["order"].find_one({"_id": order["_id"]})
    return {"success": True, "message": "Order status updated successfully", "order": serialize_doc(updated)}


@router.put("/{order_id}")
def update_order(order_id: str, req: OrderUpdateRequest, admin: dict = Depends(require_admin)):
    order = load_order(order_id)
    updates = {}
    if req.status:
        check_status(req.status)
        updates["status"] = req.status
    if req.delivery_notes is not None:
        updates["delivery_notes"] = req.delivery_notes
    updates["updated_at"] = utcnow()
    db["order"].update_one({"_id": order["_id"]}, {"$set": updates})
    updated = db["order"].find_one({"_id": order["_id"]})
    return {"success": True, "message": "Order updated successfully", "order": serialize_doc(updated)}


@router.delete("/{order_id}")
def delete_order(order_id: str, user: dict = Depends(get_current_user)):
    order = load_order(order_id)
    ensure_owner_or_admin(order, user, "Not authorized to delete this order")
    if order.get("status") not in DELETABLE_ORDER_STATUSES:
        raise ValidationError("Can only delete pending or cancelled orders")
    db["order"].delete_one({"_id": order["_id"]})
    logger.info(f"Order {order['_id']} deleted")
    return {"success": True, "message": "Order deleted successfully"}
