"""Cart event notifications.

Events are fire-and-forget: the cart never looks at what a sink does with
them. The Redis sink mirrors the realtime stream pattern (XADD of a JSON
payload) so other services can tail cart activity.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from shoppingcart.db import RedisKeys
from shoppingcart.logging import get_logger, sanitize_id_for_logging

from .models import CartItem

logger = get_logger(__name__)

ITEM_ADDED = "item.added"
ITEM_UPDATED = "item.updated"
ITEM_REMOVED = "item.removed"
CART_STORED = "cart.stored"
CART_RESTORED = "cart.restored"
CART_ERASED = "cart.erased"
CART_MERGED = "cart.merged"


@dataclass(frozen=True)
class CartEvent:
    """Something happened to a cart instance."""

    name: str
    instance: str
    item: CartItem | None = None
    identifier: str | None = None
    items: tuple[CartItem, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe view of the event."""
        payload: dict[str, Any] = {"event": self.name, "instance": self.instance}
        if self.item is not None:
            payload["item"] = self.item.to_dict()
        if self.identifier is not None:
            payload["identifier"] = self.identifier
        if self.items:
            payload["items"] = [item.to_dict() for item in self.items]
        return payload


class EventSink(ABC):
    """Receives cart events."""

    @abstractmethod
    def dispatch(self, event: CartEvent) -> None:
        """Handle one event. Must not raise into the cart."""


class LoggingEventSink(EventSink):
    """Default sink: writes each event to the log."""

    def dispatch(self, event: CartEvent) -> None:
        row_id = event.item.row_id if event.item is not None else None
        logger.debug(
            "Cart event %s instance=%s row=%s identifier=%s",
            event.name,
            event.instance,
            sanitize_id_for_logging(row_id),
            sanitize_id_for_logging(event.identifier),
        )


class RedisStreamEventSink(EventSink):
    """Append events to a Redis stream."""

    def __init__(self, redis=None, stream_key: str = RedisKeys.CART_EVENTS) -> None:
        self._redis = redis
        self.stream_key = stream_key

    @property
    def redis(self):
        if self._redis is None:
            from shoppingcart.db import get_redis_sync

            self._redis = get_redis_sync()
        return self._redis

    def dispatch(self, event: CartEvent) -> None:
        try:
            self.redis.xadd(self.stream_key, "*", {"data": json.dumps(event.to_payload())})
            logger.debug(f"Emitted {event.name} for instance {event.instance}")
        except Exception as e:
            logger.warning(f"Failed to emit {event.name}: {e}", exc_info=True)
