"""
Cart storage gateways.

Two kinds of storage back a cart:
- SessionStore: live per-instance state, rewritten after every mutation
- CartRecordStore: explicit store/restore/merge snapshots keyed by
  (identifier, instance)

The in-memory implementations are used for local runs and tests; the
Redis and Supabase ones for deployments.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from shoppingcart.db import RedisKeys, TTL
from shoppingcart.errors import AlreadyStoredError
from shoppingcart.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


class StoredCart(BaseModel):
    """One persisted cart, unique on (identifier, instance)."""

    identifier: str
    instance: str
    content: dict[str, dict[str, Any]] = Field(default_factory=dict)
    tax_rate: Decimal | None = None  # storing cart's global tax rate
    discount: dict[str, Any] | None = None  # storing cart's global discount
    created_at: datetime
    updated_at: datetime


# ============================================================
# Session gateway
# ============================================================


class SessionStore(ABC):
    """Live cart state keyed by instance key."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored payload, or None."""

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """Write the payload for `key`."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Drop the payload for `key` (missing keys are ignored)."""

    def key_for(self, session_id: str, instance: str) -> str:
        return RedisKeys.cart_session_key(session_id, instance)


class InMemorySessionStore(SessionStore):
    """Dict-backed session store for development and tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def put(self, key: str, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisSessionStore(SessionStore):
    """
    Upstash Redis session store.

    Every write refreshes the TTL so abandoned carts expire after TTL.CART.
    """

    def __init__(self, redis=None, ttl: int = TTL.CART) -> None:
        self._redis = redis
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            from shoppingcart.db import get_redis_sync

            self._redis = get_redis_sync()
        return self._redis

    def get(self, key: str) -> str | None:
        data = self.redis.get(key)
        if isinstance(data, bytes):
            data = data.decode()
        return data or None

    def put(self, key: str, value: str) -> None:
        self.redis.set(key, value, ex=self.ttl)

    def delete(self, key: str) -> None:
        self.redis.delete(key)


# ============================================================
# Persistence gateway
# ============================================================


class CartRecordStore(ABC):
    """Stored carts keyed by (identifier, instance)."""

    @abstractmethod
    def find(self, identifier: str, instance: str) -> StoredCart | None:
        """Return the record, or None."""

    @abstractmethod
    def insert(self, record: StoredCart) -> StoredCart:
        """
        Create a record.

        Raises:
            AlreadyStoredError: If (identifier, instance) already exists
        """

    @abstractmethod
    def update(self, record: StoredCart) -> StoredCart:
        """Overwrite an existing record."""

    @abstractmethod
    def delete(self, identifier: str, instance: str) -> None:
        """Delete the record if present."""


class InMemoryCartRecordStore(CartRecordStore):
    """Dict-backed record store for development and tests."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], StoredCart] = {}

    def find(self, identifier: str, instance: str) -> StoredCart | None:
        record = self._records.get((identifier, instance))
        return record.model_copy(deep=True) if record else None

    def insert(self, record: StoredCart) -> StoredCart:
        key = (record.identifier, record.instance)
        if key in self._records:
            raise AlreadyStoredError(record.identifier)
        self._records[key] = record.model_copy(deep=True)
        logger.debug(
            "Inserted cart record %s/%s", sanitize_id_for_logging(record.identifier), record.instance
        )
        return record

    def update(self, record: StoredCart) -> StoredCart:
        self._records[(record.identifier, record.instance)] = record.model_copy(deep=True)
        return record

    def delete(self, identifier: str, instance: str) -> None:
        self._records.pop((identifier, instance), None)

    def __len__(self) -> int:
        return len(self._records)
