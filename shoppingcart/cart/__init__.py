"""Cart package: money-aware items, the cart service, storage gateways and events."""
from .events import CartEvent, EventSink, LoggingEventSink, RedisStreamEventSink
from .identity import generate_row_id
from .models import Buyable, CanBeBought, CartItem, InstanceIdentifier, ItemSpec
from .options import CartItemOptions
from .resolver import ModelReference, ModelResolver
from .service import Cart
from .storage import (
    CartRecordStore,
    InMemoryCartRecordStore,
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    StoredCart,
)

__all__ = [
    "Buyable",
    "CanBeBought",
    "Cart",
    "CartEvent",
    "CartItem",
    "CartItemOptions",
    "CartRecordStore",
    "EventSink",
    "InMemoryCartRecordStore",
    "InMemorySessionStore",
    "InstanceIdentifier",
    "ItemSpec",
    "LoggingEventSink",
    "ModelReference",
    "ModelResolver",
    "RedisSessionStore",
    "RedisStreamEventSink",
    "SessionStore",
    "StoredCart",
    "generate_row_id",
]
