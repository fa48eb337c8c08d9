# tests/conftest.py
import os

# Set environment variables for testing before the app reads its config
os.environ["SECRET_KEY"] = "testing_secret_key_for_development_only"
os.environ["DISABLE_RATE_LIMIT"] = "1"
os.environ["ENABLE_CLEANUP_SERVICE"] = "0"
os.environ["SCHEDULE_TIMEZONE"] = "UTC"

from datetime import date, timedelta

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

import app.db
from app.utils.auth import get_current_user
from main import app as fastapi_app


@pytest.fixture
def mongo(monkeypatch):
    """Fresh in-memory database swapped in for the Motor one"""
    database = AsyncMongoMockClient()["employee_scheduling_test"]
    monkeypatch.setattr(app.db, "db", database)
    return database


@pytest_asyncio.fixture
async def people(mongo):
    """An admin and two employees, each employee with a user account"""
    admin = {"_id": ObjectId(), "name": "Ada Admin", "email": "ada@example.com", "role": "admin", "isActive": True}
    alice = {"_id": ObjectId(), "name": "Alice", "email": "alice@example.com", "role": "employee", "isActive": True}
    bob = {"_id": ObjectId(), "name": "Bob", "email": "bob@example.com", "role": "employee", "isActive": True}
    await mongo["users"].insert_many([admin, alice, bob])

    alice_emp = {"_id": ObjectId(), "user_id": str(alice["_id"]), "name": "Alice", "email": alice["email"]}
    bob_emp = {"_id": ObjectId(), "user_id": str(bob["_id"]), "name": "Bob", "email": bob["email"]}
    await mongo["employees"].insert_many([alice_emp, bob_emp])

    return {
        "admin": admin,
        "alice": alice,
        "bob": bob,
        "alice_emp_id": str(alice_emp["_id"]),
        "bob_emp_id": str(bob_emp["_id"]),
    }


@pytest.fixture
def future_date():
    """A date far enough ahead that every shift on it is still releasable"""
    return (date.today() + timedelta(days=3)).strftime("%Y-%m-%d")


@pytest.fixture
def login():
    """Authenticate API calls as the given user document"""
    def _login(user):
        fastapi_app.dependency_overrides[get_current_user] = lambda: user
    yield _login
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(mongo):
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as async_client:
        yield async_client
