"""
pytest configuration and fixtures for the users API test suite
The application runs against the in-memory users store; no database is needed.
"""

import os
import sys
from datetime import date
from pathlib import Path

import httpx
import pytest

# Settings are read at import time, so the store must be chosen first
os.environ["USERS_STORE"] = "memory"
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fastapi.testclient import TestClient

from app import app
from clients.users_client import UsersApiClient
from database.users_repository import InMemoryUsersRepository
from services.users_service import UsersService, get_users_service


SAMPLE_USERS = [
    {"name": "Alice", "rut": "12345678-9", "email": "alice@example.com", "birthday": date(1990, 1, 1)},
    {"name": "Bob", "rut": "98765432-1", "email": "bob@example.com", "birthday": date(1985, 5, 15)},
    {"name": "Charlie", "rut": "11223344-5", "email": "charlie@example.com", "birthday": date(2000, 10, 20)},
]


@pytest.fixture
def repository() -> InMemoryUsersRepository:
    """Store seeded with Alice (1), Bob (2) and Charlie (3)"""
    return InMemoryUsersRepository(SAMPLE_USERS)


@pytest.fixture
def empty_repository() -> InMemoryUsersRepository:
    return InMemoryUsersRepository()


@pytest.fixture
def users_service(repository) -> UsersService:
    return UsersService(repository)


@pytest.fixture
def client(users_service):
    """HTTP client wired to a fresh seeded store"""
    app.dependency_overrides[get_users_service] = lambda: users_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_client(users_service):
    """UsersApiClient talking to the application in-process"""
    app.dependency_overrides[get_users_service] = lambda: users_service
    yield UsersApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))
    app.dependency_overrides.clear()
