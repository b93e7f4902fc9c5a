"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

import auth.password_utils as password_utils
from config import Settings
from database import InMemoryStore
from main import create_app

JWT_SECRET = "test-secret-that-is-long-enough-for-hs256"


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Lower the bcrypt cost so the suite stays fast."""
    monkeypatch.setattr(password_utils, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def settings() -> Settings:
    return Settings(postgres_url="postgresql://unused", jwt_secret=JWT_SECRET)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as client:
        yield client


@pytest.fixture
def open_client(settings, store):
    """Client for an app with the account-owner check switched off."""
    settings = settings.model_copy(update={"auth_enabled": False})
    with TestClient(create_app(settings, store)) as client:
        yield client


def create_account(client, first_name="Anna", last_name="Adler", password="hunter2"):
    body = {"first_name": first_name, "last_name": last_name}
    if password is not None:
        body["password"] = password
    response = client.post("/accounts", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def login(client, number, password="hunter2"):
    response = client.post("/login", json={"number": number, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]
