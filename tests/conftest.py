"""Pytest fixtures for checkout service tests."""

import os

os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.db import database
from storefront.errors import Unavailable
from storefront.models import Cart, CartLine, Item


class HealthyStorage:
    def check(self):
        return True

    def ensure_available(self):
        return None


class DownStorage:
    def check(self):
        return False

    def ensure_available(self):
        raise Unavailable("Database not connected. Please try again later.")


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = database.init_database("sqlite://")
    database.create_tables()
    yield engine
    database.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def healthy():
    return HealthyStorage()


@pytest.fixture
def make_item(db):
    """Create a catalog item."""
    def _make(
        title="Gift Hamper",
        price="300",
        stock=5,
        discount=0,
        discount_start=None,
        discount_end=None,
        is_active=True,
        image="https://cdn.example.com/hamper.jpg",
    ):
        item = Item(
            title=title,
            price=Decimal(str(price)),
            stock=stock,
            discount=Decimal(str(discount)),
            discount_start=discount_start,
            discount_end=discount_end,
            image=image,
            image_type="image/jpeg",
            is_active=is_active,
        )
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture
def make_cart(db):
    """Create a cart; lines are (item, quantity) or (item, quantity, message)."""
    def _make(user_id, lines):
        cart = Cart(user_id=user_id)
        for line in lines:
            item, quantity = line[0], line[1]
            message = line[2] if len(line) > 2 else None
            cart.lines.append(CartLine(item_id=item.id, quantity=quantity, custom_message=message))
        db.add(cart)
        db.commit()
        return cart

    return _make


@pytest.fixture
def address():
    return {
        "full_name": "Asha Rao",
        "phone": "9876543210",
        "email": "asha@example.com",
        "address_line1": "12 MG Road",
        "address_line2": "Flat 4B",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560001",
    }


@pytest.fixture
def api_address(address):
    return {
        "fullName": address["full_name"],
        "phone": address["phone"],
        "email": address["email"],
        "addressLine1": address["address_line1"],
        "city": address["city"],
        "state": address["state"],
        "pincode": address["pincode"],
    }


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def client(engine):
    from storefront.main import app

    return TestClient(app)


def stock_of(db, item_id):
    db.expire_all()
    return db.get(Item, item_id).stock
