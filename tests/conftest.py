"""
Shared fixtures: an in-process Redis (fakeredis with Lua support) wired
into the services and the FastAPI app.
"""
import os

os.environ["SEED_ON_STARTUP"] = "false"
os.environ.pop("REDIS_SECRET_NAME", None)

import fakeredis
import pytest
from fastapi.testclient import TestClient

from storefront.redis_client import RedisClient, set_redis_client
from storefront.product_store import ProductStore
from storefront.cart_service import CartService
from storefront.checkout_service import CheckoutService
from storefront.models import ProductDraft


@pytest.fixture
def redis_wrapper():
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    wrapper = RedisClient(client=client)
    set_redis_client(wrapper)
    yield wrapper
    set_redis_client(None)


@pytest.fixture
def product_store(redis_wrapper) -> ProductStore:
    return ProductStore(redis_wrapper)


@pytest.fixture
def products(product_store):
    """Three catalog products keyed by a short name"""
    inserted = product_store.insert_many([
        ProductDraft(name="Wireless Headphones", price=99.99, category="electronics"),
        ProductDraft(name="Smartphone", price=699.99, category="electronics"),
        ProductDraft(name="Backpack", price=79.99, category="accessories"),
    ])
    return {
        "headphones": inserted[0],
        "smartphone": inserted[1],
        "backpack": inserted[2],
    }


@pytest.fixture
def cart_service(redis_wrapper, product_store) -> CartService:
    return CartService(redis_client=redis_wrapper, product_store=product_store)


@pytest.fixture
def checkout_service(cart_service) -> CheckoutService:
    return CheckoutService(cart_service=cart_service)


@pytest.fixture
def test_client(redis_wrapper) -> TestClient:
    from storefront.main import app
    return TestClient(app)
