"""Shared test configuration."""

import os

# Settings are read at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient

from task_api.core.database import Base, SessionLocal, engine
from task_api.core.middleware import rate_limiter, request_metrics
from task_api.main import app
from task_api.models.user import User, UserRole

API = "/api/v1"
DEFAULT_PASSWORD = "Pa$$word20"


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    request_metrics.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def register_user(client):
    """Register an account and return the response body"""
    def _register(name="Test User", email="user@example.com", password=DEFAULT_PASSWORD):
        response = client.post(
            f"{API}/auth/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        # Tests choose their credentials explicitly
        client.cookies.clear()
        return response.json()
    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(register_user):
    return bearer(register_user()["access_token"])


@pytest.fixture
def manager_headers(register_user, db):
    body = register_user(name="Boss", email="manager@example.com")
    user = db.get(User, body["id"])
    user.role = UserRole.MANAGER.value
    db.commit()
    return bearer(body["access_token"])
