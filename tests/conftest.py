import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from aceops.core.config import settings
from aceops.core.security import create_access_token
from aceops.db import mongo
from aceops.main import app
from aceops.services.user_service import new_user_document
from utils.constants import ROLE_ADMIN, ROLE_GENERAL


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def db(monkeypatch, tmp_path):
    """Fresh in-memory database per test, uploads written under tmp_path."""
    client = AsyncMongoMockClient()
    database = client["aceops_test"]
    monkeypatch.setattr(mongo, "_client", client)
    monkeypatch.setattr(mongo, "_database", database)
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    return database


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(name="Staff", email=None, role=ROLE_GENERAL, roles=None, super_admin=False, verified=True, password="secret1"):
        doc = new_user_document(name, email or f"{name.lower().replace(' ', '.')}@example.com", password, role=role, is_verified=verified)
        doc["roles"] = roles or []
        doc["isSuperAdmin"] = super_admin
        run(db.users.insert_one(doc))
        return doc
    return _make


def auth(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role=ROLE_ADMIN)


@pytest.fixture
def super_admin(make_user):
    return make_user("Boss", role=ROLE_ADMIN, super_admin=True)


@pytest.fixture
def staff(make_user):
    return make_user("Staff")
