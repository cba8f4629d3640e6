"""
Shared fixtures: an app wired to an in-memory MongoDB (mongomock) and a
mocked image uploader, so no network or real database is needed.
"""

from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database
from main import create_app
from storage import ImageUploader

ADMIN_KEY = "test-admin-key"
IMAGE_URL = "https://shop-images.s3.us-east-2.amazonaws.com/ecommerce_products/abc123.png"

# Smallest PNG signature plus IHDR tag; enough for a multipart upload
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


@pytest.fixture
def settings():
    return Settings(admin_key=ADMIN_KEY, database_name="shop_test", cors_origin="https://shop.example.org")


@pytest.fixture
def database(settings):
    db = Database(name=settings.database_name, client=mongomock.MongoClient())
    db.ensure_indexes()
    return db


@pytest.fixture
def uploader():
    mock = MagicMock(spec=ImageUploader)
    mock.upload.return_value = IMAGE_URL
    return mock


@pytest.fixture
def app(settings, database, uploader):
    return create_app(settings=settings, database=database, uploader=uploader)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def signup(client):
    def _signup(name="Asha", email="asha@shop.io", password="p4ssw0rd"):
        return client.post("/signup", json={"name": name, "email": email, "password": password})
    return _signup


@pytest.fixture
def add_product(client):
    def _add_product(name="Mug", price="12.5", filename="mug.png", key=ADMIN_KEY):
        return client.post(
            "/admin",
            params={"adminKey": key},
            data={"pro_name": name, "pro_price": price},
            files={"pro_image": (filename, PNG_BYTES, "image/png")},
        )
    return _add_product
