import json

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database
import main
import media
from schemas import Admin

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "secret123"


class FakeStorage:
    """Stands in for Cloudinary and records what was uploaded and deleted."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_delete = False

    def upload(self, file, folder):
        public_id = f"{folder}/img{len(self.uploaded) + 1}"
        self.uploaded.append(public_id)
        return {"url": f"https://cdn.example.com/{public_id}.jpg", "public_id": public_id}

    def delete(self, public_id):
        if self.fail_delete:
            raise RuntimeError("storage unavailable")
        self.deleted.append(public_id)


@pytest.fixture
def mongo(monkeypatch):
    fake_db = mongomock.MongoClient()["furniture_test"]
    monkeypatch.setattr(database, "db", fake_db)
    monkeypatch.setattr(main, "db", fake_db)
    database.ensure_indexes()
    return fake_db


@pytest.fixture
def storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr(media, "upload_image", fake.upload)
    monkeypatch.setattr(media, "delete_image", fake.delete)
    return fake


@pytest.fixture
def client(mongo, storage):
    return TestClient(main.app)


@pytest.fixture
def admin(mongo):
    admin_id = database.create_document(
        "admin",
        Admin(email=ADMIN_EMAIL, password_hash=main.get_password_hash(ADMIN_PASSWORD), name="Shop Admin"),
    )
    return mongo["admin"].find_one({"_id": ObjectId(admin_id)})


@pytest.fixture
def auth_headers(client, admin):
    res = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
def category(client, auth_headers):
    res = client.post("/api/categories", data={"name": "Sofas", "description": "Seating"}, headers=auth_headers)
    assert res.status_code == 201
    return res.json()


@pytest.fixture
def make_product(client, auth_headers, category):
    def _make(name, category_id=None, **fields):
        data = {
            "name": name,
            "description": f"{name} in solid wood",
            "price": "1000",
            "category": category_id or category["id"],
        }
        data.update({k: json.dumps(v) if isinstance(v, (list, dict)) else str(v) for k, v in fields.items()})
        return client.post("/api/products", data=data, headers=auth_headers)

    return _make
