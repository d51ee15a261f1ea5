import os

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_PRODUCTS"] = "false"

import mongomock  # noqa: E402
import pytest  # noqa: E402

import database  # noqa: E402

database.db = mongomock.MongoClient()["petcare_test"]

from fastapi.testclient import TestClient  # noqa: E402

import main  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    yield
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)


@pytest.fixture
def db():
    return database.db


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def register(client):
    """Register a user and return (profile, auth headers)."""
    counter = {"n": 0}

    def _register(email=None, pets=None, is_admin=False, **fields):
        counter["n"] += 1
        payload = {
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "email": email or f"user{counter['n']}@example.com",
            "password": "secret123",
            "pets": pets or [],
            **fields,
        }
        res = client.post("/api/auth/register", json=payload)
        assert res.status_code == 201, res.text
        profile = res.json()
        if is_admin:
            database.db["user"].update_one({"email": payload["email"]}, {"$set": {"is_admin": True}})
        return profile, {"Authorization": f"Bearer {profile['token']}"}

    return _register


@pytest.fixture
def user(register):
    return register(pets=[{"name": "Rex", "type": "Dog", "breed": "Labrador", "age": 3}])


@pytest.fixture
def admin(register):
    return register(email="admin@example.com", is_admin=True)


@pytest.fixture
def product(client, admin):
    _, headers = admin
    res = client.post(
        "/api/products",
        json={"name": "Chew Bone", "price": 10.0, "category": "Toys"},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()["product"]
