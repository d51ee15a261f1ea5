import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from auth import require_admin
from database import create_document, db, utcnow
from errors import NotFound, ValidationError
from helpers import serialize_doc, to_object_id
from schemas import Product as ProductSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    is_new: Optional[bool] = None


def load_product(product_id: str) -> dict:
    product = db["product"].find_one({"_id": to_object_id(product_id, "Product")})
    if not product:
        raise NotFound("Product not found")
    return product


@router.get("")
def list_products(search: Optional[str] = None, category: Optional[str] = None):
    query: Dict[str, Any] = {}
    if search:
        # Literal substring match; user input is never a regex
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if category and category.lower() != "all":
        query["category"] = category
    products = [serialize_doc(p) for p in db["product"].find(query)]
    return {"success": True, "count": len(products), "products": products}


@router.get("/category/{category}")
def products_by_category(category: str):
    products = [serialize_doc(p) for p in db["product"].find({"category": category})]
    return {"success": True, "count": len(products), "products": products}


@router.get("/{product_id}")
def get_product(product_id: str):
    return {"success": True, "product": serialize_doc(load_product(product_id))}


@router.post("", status_code=201)
def create_product(req: ProductSchema, admin: dict = Depends(require_admin)):
    product_id = create_document("product", req)
    logger.info(f"Product {product_id} created")
    product = db["product"].find_one({"_id": ObjectId(product_id)})
    return {"success": True, "message": "Product created successfully", "product": serialize_doc(product)}


@router.put("/{product_id}")
def update_product(product_id: str, req: ProductUpdateRequest, admin: dict = Depends(require_admin)):
    product = load_product(product_id)
    updates = {k: v for k, v in req.model_dump().items() if v is not None}
    if not updates:
        raise ValidationError("No updates provided")
    updates["updated_at"] = utcnow()
    db["product"].update_one({"_id": product["_id"]}, {"$set": updates})
    logger.info(f"Product {product['_id']} updated: {sorted(updates)}")
    updated = db["product"].find_one({"_id": product["_id"]})
    return {"success": True, "message": "Product updated successfully", "product": serialize_doc(updated)}


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin)):
    product = load_product(product_id)
    db["product"].delete_one({"_id": product["_id"]})
    logger.info(f"Product {product['_id']} deleted")
    return {"success": True, "message": "Product deleted successfully"}


# Seed demo products on startup
DEMO_PRODUCTS: List[dict] = [
    {
        "name": "Grain-Free Dog Food 5kg",
        "price": 39.99,
        "image_url": "https://images.unsplash.com/photo-1589924691995-400dc9ecc119?q=80&w=1200&auto=format&fit=crop",
        "category": "Food",
        "description": "Salmon and sweet potato recipe for adult dogs",
        "rating": 4.7,
        "review_count": 128,
        "is_new": False,
    },
    {
        "name": "Indoor Cat Kibble 3kg",
        "price": 24.5,
        "image_url": "https://images.unsplash.com/photo-1574158622682-e40e69881006?q=80&w=1200&auto=format&fit=crop",
        "category": "Food",
        "description": "Hairball control formula with chicken",
        "rating": 4.5,
        "review_count": 86,
        "is_new": False,
    },
    {
        "name": "Rope Tug Toy",
        "price": 9.99,
        "image_url": "https://images.unsplash.com/photo-1535294435445-d7249524ef2e?q=80&w=1200&auto=format&fit=crop",
        "category": "Toys",
        "description": "Braided cotton rope for chewing and tug games",
        "rating": 4.3,
        "review_count": 54,
        "is_new": True,
    },
    {
        "name": "Feather Wand",
        "price": 7.49,
        "image_url": "https://images.unsplash.com/photo-1545249390-6bdfa286032f?q=80&w=1200&auto=format&fit=crop",
        "category": "Toys",
        "description": "Interactive teaser wand for cats",
        "rating": 4.4,
        "review_count": 37,
        "is_new": False,
    },
    {
        "name": "Reflective Leash",
        "price": 18.0,
        "image_url": "https://images.unsplash.com/photo-1601758228041-f3b2795255f1?q=80&w=1200&auto=format&fit=crop",
        "category": "Accessories",
        "description": "1.8m nylon leash with reflective stitching",
        "rating": 4.6,
        "review_count": 73,
        "is_new": False,
    },
    {
        "name": "Orthopedic Pet Bed",
        "price": 59.0,
        "image_url": "https://images.unsplash.com/photo-1541599540903-216a46ca1dc0?q=80&w=1200&auto=format&fit=crop",
        "category": "Accessories",
        "description": "Memory foam bed with washable cover",
        "rating": 4.8,
        "review_count": 212,
        "is_new": True,
    },
    {
        "name": "Flea & Tick Drops",
        "price": 29.99,
        "image_url": "https://images.unsplash.com/photo-1583337130417-3346a1be7dee?q=80&w=1200&auto=format&fit=crop",
        "category": "Health",
        "description": "Monthly topical treatment for dogs over 10kg",
        "rating": 4.2,
        "review_count": 45,
        "is_new": False,
    },
]


def seed_products_if_empty() -> int:
    """Insert the demo catalog into an empty product collection; returns the number inserted."""
    if db is None or db["product"].count_documents({}) > 0:
        return 0
    for prod in DEMO_PRODUCTS:
        create_document("product", ProductSchema(**prod))
    logger.info(f"Seeded {len(DEMO_PRODUCTS)} demo products")
    return len(DEMO_PRODUCTS)
