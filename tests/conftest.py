import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("MOCK_PAYMENT_DELAY_SECONDS", "0")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models.delivery  # noqa: F401
import models.log  # noqa: F401
import models.order  # noqa: F401
import models.product  # noqa: F401
import models.users  # noqa: F401
from database import Base, enable_sqlite_foreign_keys, get_db
from main import app
from services.auth import AuthService, SessionContext
from utils.data_client import DataClient
from utils.hashing import get_password_hash
from utils.local_storage import MemoryStorage
from utils.payments import MockPaymentGateway, get_payment_gateway
from utils.tokenJWT import create_access_token


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def data_client(db):
    return DataClient(db)


@pytest.fixture
def gateway():
    return MockPaymentGateway(delay=0, should_fail=False)


@pytest.fixture
def client(session_factory, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(data_client):
    def _make(email="customer@example.com", password="secret123", role="user", **profile):
        return data_client.insert("users", [{
            "email": email,
            "password_hash": get_password_hash(password),
            "role": role,
            "first_name": profile.pop("first_name", "Jane"),
            "last_name": profile.pop("last_name", "Doe"),
            **profile,
        }])[0]
    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin", first_name="Ada", last_name="Admin")


def bearer(user):
    token = create_access_token(data={"sub": user["auth_id"], "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer):
    return bearer(customer)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def products(data_client):
    return data_client.insert("products", [
        {"name": "Whole Milk", "category": "milk", "price": Decimal("3.99"), "is_organic": True, "stock_quantity": 50},
        {"name": "Farmhouse Cheddar", "category": "cheese", "price": Decimal("4.99"), "stock_quantity": 20},
        {"name": "Greek Yogurt", "category": "yogurt", "price": Decimal("2.49"), "is_organic": True, "stock_quantity": 0},
        {"name": "Salted Butter", "category": "butter", "price": Decimal("3.25"), "available": False},
    ])


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def signed_in(data_client, customer):
    """Session context with the customer signed in."""
    context = SessionContext()
    AuthService(data_client, context).sign_in(customer["email"], "secret123")
    return context
