from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

# Settings are read on first import of the app; pin a hermetic setup first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CART_STORAGE_BACKEND"] = "memory"
os.environ["NOVA_POSHTA_API_KEY"] = "demo-api-key"
os.environ["LIQPAY_PUBLIC_KEY"] = "demo-public-key"
os.environ["LIQPAY_PRIVATE_KEY"] = "test-private-key"
os.environ["JWT_SECRET"] = "test-jwt-secret"
for _smtp_var in ("SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD"):
    os.environ.pop(_smtp_var, None)

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import poliprint.database as database
from poliprint.core.config import get_settings
from poliprint.models import order as _order_models  # noqa: F401
from poliprint.repositories.cart_repo import reset_memory_storage

CART_SESSION = "test-session-0001"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.engine = engine
    yield engine


@pytest.fixture(autouse=True)
def fresh_state(configure_test_engine):
    from poliprint.routers.cart import registry

    SQLModel.metadata.drop_all(configure_test_engine)
    SQLModel.metadata.create_all(configure_test_engine)
    registry.reset()
    reset_memory_storage()
    yield
    registry.reset()
    reset_memory_storage()


@pytest.fixture()
def client(configure_test_engine):
    from poliprint.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def session(configure_test_engine):
    with Session(configure_test_engine) as s:
        yield s


def _token(role: str) -> str:
    settings = get_settings()
    claims = {
        "sub": f"{role}-1",
        "email": f"{role}@poliprint.ua",
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {_token('admin')}"}


@pytest.fixture()
def user_headers():
    return {"Authorization": f"Bearer {_token('user')}"}


@pytest.fixture()
def cart_headers():
    return {"X-Cart-Session": CART_SESSION}
