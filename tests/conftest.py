"""Pytest configuration and fixtures"""
import os
from unittest.mock import Mock

import pytest

# Keep the client singletons from ever reaching real services
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from shoppingcart.cart import (  # noqa: E402
    Cart,
    InMemoryCartRecordStore,
    InMemorySessionStore,
    ModelResolver,
)

from helpers import BuyableProduct, ProductModel, RecordingEventSink  # noqa: E402


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def record_store():
    return InMemoryCartRecordStore()


@pytest.fixture
def event_sink():
    return RecordingEventSink()


@pytest.fixture
def resolver():
    resolver = ModelResolver()
    resolver.register("product", ProductModel, lambda key: ProductModel(id=key))
    resolver.register("buyable_product", BuyableProduct, lambda key: BuyableProduct(id=key))
    return resolver


@pytest.fixture
def make_cart(session_store, record_store, event_sink, resolver):
    """Factory for carts sharing one session, record store and event sink."""

    def _make(discount=None, session_id="session-1"):
        cart = Cart(
            session_store,
            records=record_store,
            events_sink=event_sink,
            resolver=resolver,
            session_id=session_id,
        )
        if discount is not None:
            cart.set_global_discount(discount)
        return cart

    return _make


@pytest.fixture
def cart(make_cart):
    return make_cart()


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client"""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.delete.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.limit.return_value = table_mock

    client.table.return_value = table_mock

    return client


@pytest.fixture
def mock_redis():
    """Mock Upstash Redis client"""
    redis = Mock()
    redis.get.return_value = None
    return redis
