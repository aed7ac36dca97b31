import os

# Settings are read on first import of the app package
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.models.user import UserRole
from app.services.auth_service import AuthService
from app.tasks.inventory_tasks import process_inventory_event


class FakeRedis:
    """In-memory stand-in for the few Redis commands the cache uses."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def ping(self):
        return True

    def close(self):
        pass


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture(scope="function")
def client(fake_redis):
    """Create test client with a fresh in-memory database for each test."""
    app = create_app(cache_client=fake_redis)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def dispatched_events():
    """Capture background task dispatch instead of sending to a broker."""
    with patch.object(process_inventory_event, "delay") as delay:
        yield delay


@pytest.fixture(scope="function")
def db_session(client):
    """Database session on the same store the client's app uses."""
    session = client.app.state.database.session()
    yield session
    session.close()


def _auth_headers(user):
    return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}


@pytest.fixture
def admin_user(db_session):
    return AuthService(db_session).register("admin@sweetshop.com", "adminpass", UserRole.ADMIN)


@pytest.fixture
def customer_user(db_session):
    return AuthService(db_session).register("customer@sweetshop.com", "custpass", UserRole.CUSTOMER)


@pytest.fixture
def admin_headers(admin_user):
    return _auth_headers(admin_user)


@pytest.fixture
def customer_headers(customer_user):
    return _auth_headers(customer_user)


@pytest.fixture
def make_product(client, admin_headers):
    """Create a product through the API and return its JSON."""
    def _make(**overrides):
        payload = {
            "name": "Truffle",
            "category": "Chocolate",
            "price": 2.50,
            "quantity": 10,
            "description": "Dark chocolate truffle",
        }
        payload.update(overrides)
        response = client.post("/api/v1/products", json=payload, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
