import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from config import BCRYPT_ROUNDS, JWT_ALG, JWT_EXPIRE_DAYS, JWT_SECRET
from database import create_document, db, get_documents, utcnow
from errors import Forbidden, NotFound, Unauthorized, ValidationError
from helpers import find_pet, public_user, to_object_id
from schemas import Pet, User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


# Auth helpers
def create_token(user: dict) -> str:
    payload = {
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "is_admin": user.get("is_admin", False),
        "exp": datetime.now(timezone.utc) + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized("Not authorized, no token")
    token = authorization.replace("Bearer ", "", 1).strip()
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise Unauthorized("Not authorized, token failed")
    user_id = payload.get("sub")
    if not user_id or not ObjectId.is_valid(user_id):
        raise Unauthorized("Not authorized, token failed")
    user = db["user"].find_one({"_id": ObjectId(user_id)})
    if not user:
        raise Unauthorized("Not authorized, user not found")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if not user.get("is_admin"):
        logger.warning(f"Non-admin user {user['_id']} attempted an admin operation")
        raise Forbidden("Not authorized as an admin")
    return user


# Request models
class PetRequest(BaseModel):
    # Optional so a missing name/type gets the pet-specific message
    name: Optional[str] = None
    type: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[int] = Field(None, ge=0)


class RegisterRequest(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: str = ""
    address: str = ""
    pets: List[PetRequest] = []


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    password: Optional[str] = None


class AdminUserCreateRequest(RegisterRequest):
    is_admin: bool = False


class AdminUserUpdateRequest(ProfileUpdateRequest):
    is_admin: Optional[bool] = None


def build_pet(req: PetRequest) -> dict:
    if not req.name or not req.type:
        raise ValidationError("Pet name and type are required")
    now = utcnow()
    pet = Pet(name=req.name, type=req.type, breed=req.breed or "", age=req.age or 0, created_at=now, updated_at=now)
    return pet.model_dump(by_alias=True)


def email_taken(email: str, exclude_id: Optional[ObjectId] = None) -> bool:
    query = {"email": email}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    return db["user"].find_one(query) is not None


def insert_user(req: RegisterRequest, is_admin: bool = False) -> dict:
    if email_taken(req.email):
        raise ValidationError("Email already exists")
    pets = [build_pet(p) for p in req.pets]
    user = UserSchema(
        first_name=req.first_name,
        last_name=req.last_name,
        email=req.email,
        password_hash=pwd_context.hash(req.password),
        phone=req.phone,
        address=req.address,
        is_admin=is_admin,
    )
    data = user.model_dump(by_alias=True)
    data["pets"] = pets
    try:
        user_id = create_document("user", data)
    except DuplicateKeyError:
        raise ValidationError("Email already exists")
    logger.info(f"User {user_id} registered with {len(pets)} pet(s)")
    return db["user"].find_one({"_id": ObjectId(user_id)})


def apply_profile_update(user: dict, req: ProfileUpdateRequest) -> dict:
    updates = {k: v for k, v in req.model_dump(exclude={"password"}).items() if v is not None}
    if "email" in updates and updates["email"] != user["email"]:
        if email_taken(updates["email"], exclude_id=user["_id"]):
            raise ValidationError("Email already exists")
    if req.password:
        updates["password_hash"] = pwd_context.hash(req.password)
    updates["updated_at"] = utcnow()
    try:
        db["user"].update_one({"_id": user["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        raise ValidationError("Email already exists")
    return db["user"].find_one({"_id": user["_id"]})


def save_pets(user: dict, pets: List[dict]) -> dict:
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"pets": pets, "updated_at": utcnow()}})
    return db["user"].find_one({"_id": user["_id"]})


def load_user(user_id: str) -> dict:
    user = db["user"].find_one({"_id": to_object_id(user_id, "User")})
    if not user:
        raise NotFound("User not found")
    return user


# Registration & session
@router.post("/register", status_code=201)
def register(req: RegisterRequest):
    user = insert_user(req)
    return {**public_user(user), "token": create_token(user)}


@router.post("/login")
def login(req: LoginRequest):
    user = db["user"].find_one({"email": req.email})
    if not user or not pwd_context.verify(req.password, user.get("password_hash", "")):
        logger.warning(f"Failed login for {req.email}")
        raise Unauthorized("Invalid email or password")
    return {**public_user(user), "token": create_token(user)}


# Own profile
@router.get("/me")
def get_me(user: dict = Depends(get_current_user)):
    return public_user(user)


@router.put("/update")
def update_me(req: ProfileUpdateRequest, user: dict = Depends(get_current_user)):
    updated = apply_profile_update(user, req)
    return {**public_user(updated), "token": create_token(updated)}


@router.delete("/delete")
def delete_me(user: dict = Depends(get_current_user)):
    db["user"].delete_one({"_id": user["_id"]})
    logger.info(f"User {user['_id']} deleted own account")
    return {"message": "User removed"}


# Pets
@router.post("/pets", status_code=201)
def add_pet(req: PetRequest, user: dict = Depends(get_current_user)):
    pets = list(user.get("pets", []))
    pets.append(build_pet(req))
    return public_user(save_pets(user, pets))


@router.put("/pets/{pet_id}")
def update_pet(pet_id: str, req: PetRequest, user: dict = Depends(get_current_user)):
    pets = list(user.get("pets", []))
    pet = find_pet(user, pet_id)
    if pet is None:
        raise NotFound("Pet not found")
    if req.name:
        pet["name"] = req.name
    if req.type:
        pet["type"] = req.type
    if req.breed is not None:
        pet["breed"] = req.breed
    if req.age is not None:
        pet["age"] = req.age
    pet["updated_at"] = utcnow()
    return public_user(save_pets(user, pets))


@router.delete("/pets/{pet_id}")
def delete_pet(pet_id: str, user: dict = Depends(get_current_user)):
    pets = [p for p in user.get("pets", []) if str(p.get("_id")) != pet_id]
    if len(pets) == len(user.get("pets", [])):
        raise NotFound("Pet not found")
    return public_user(save_pets(user, pets))


# User management (admin)
@router.get("/users")
def list_users(admin: dict = Depends(require_admin)):
    return [public_user(u) for u in get_documents("user")]


@router.post("/users", status_code=201)
def create_user(req: AdminUserCreateRequest, admin: dict = Depends(require_admin)):
    return public_user(insert_user(req, is_admin=req.is_admin))


@router.get("/users/{user_id}")
def get_user(user_id: str, admin: dict = Depends(require_admin)):
    return public_user(load_user(user_id))


@router.put("/users/{user_id}")
def update_user(user_id: str, req: AdminUserUpdateRequest, admin: dict = Depends(require_admin)):
    user = load_user(user_id)
    updated = apply_profile_update(user, req)
    return public_user(updated)


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: dict = Depends(require_admin)):
    user = load_user(user_id)
    db["user"].delete_one({"_id": user["_id"]})
    logger.info(f"Admin {admin['_id']} deleted user {user['_id']}")
    return {"message": "User removed"}
