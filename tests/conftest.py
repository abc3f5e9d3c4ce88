"""
Shared pytest fixtures.

The whole suite runs against one in-memory SQLite database. The schema is
dropped and recreated for every test, so tests never see each other's rows.
"""
import os

# Must be set before anything imports chaintrack.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTHENTICITY_SECRET"] = "test-authenticity-secret"
os.environ["SECRET_KEY"] = "test-jwt-secret"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest

from chaintrack.database import Base, SessionLocal, engine
from chaintrack.models import User, Role, Product
from chaintrack.services import catalog
from chaintrack.utils.hashing import get_password_hash

import chaintrack.models  # noqa: F401


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def reset_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def make_user(db, role: Role, email: str, name: str = None) -> User:
    user = User(email=email, password_hash=get_password_hash("secret-pass"), role=role.value, name=name or email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def db():
    reset_schema()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def manufacturer(db) -> User:
    return make_user(db, Role.MANUFACTURER, "maker@example.com", "Maker Co")


@pytest.fixture
def other_manufacturer(db) -> User:
    return make_user(db, Role.MANUFACTURER, "rival@example.com", "Rival Co")


@pytest.fixture
def seller(db) -> User:
    return make_user(db, Role.SELLER, "shop@example.com", "Corner Shop")


@pytest.fixture
def other_seller(db) -> User:
    return make_user(db, Role.SELLER, "mall@example.com", "Mall Store")


@pytest.fixture
def buyer(db) -> User:
    return make_user(db, Role.BUYER, "alice@example.com", "Alice")


@pytest.fixture
def other_buyer(db) -> User:
    return make_user(db, Role.BUYER, "bob@example.com", "Bob")


@pytest.fixture
def bulk_product(db, manufacturer) -> Product:
    return catalog.create_product(db, name="Copper wire 10m", manufacturer_id=manufacturer.id, is_serialized=False)


@pytest.fixture
def serial_product(db, manufacturer) -> Product:
    return catalog.create_product(db, name="Trail camera", manufacturer_id=manufacturer.id, is_serialized=True)


@pytest.fixture
def stocked_units(db, serial_product, manufacturer, seller):
    """Five units of the serialized product, already at the seller."""
    from chaintrack.services import units
    created = units.create_batch(db, serial_product.id, manufacturer.id, [f"SN-00{i}" for i in range(1, 6)])
    ids = [u.id for u in created]
    units.dispatch_to_seller(db, ids, seller.id)
    return ids


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from chaintrack.main import app
    with TestClient(app) as c:
        yield c
