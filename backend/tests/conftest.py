"""
Shared fixtures for cart engine tests.
"""
from datetime import datetime, timezone

import pytest

from cart_engine.core.config import Settings
from cart_engine.core.storage import InMemoryKeyValueStore
from cart_engine.models.cart import Product
from cart_engine.services.cart_service import CartService
from cart_engine.services.coupon_catalog import CouponCatalog


FIXED_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _make_product(product_id="1", name="Hand-painted Mug", price=100.0, category="Ceramics"):
    return Product(
        id=product_id,
        name=name,
        price=price,
        image=f"images/{product_id}.jpg",
        category=category
    )


@pytest.fixture
def make_product():
    """Factory for products used in tests."""
    return _make_product


@pytest.fixture
def fixed_time():
    """Timestamp returned by the test clock."""
    return FIXED_TIME


@pytest.fixture
def config():
    """Settings with the storefront's default pricing."""
    return Settings(SHIPPING_RATE=99, FREE_SHIPPING_THRESHOLD=699)


@pytest.fixture
def catalog():
    """Default coupon catalog."""
    return CouponCatalog.default()


@pytest.fixture
def store():
    """Fresh in-memory durable store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def cart(store, catalog, config):
    """Cart service over an empty store with a fixed clock."""
    return CartService(store, catalog=catalog, config=config, clock=lambda: FIXED_TIME)
