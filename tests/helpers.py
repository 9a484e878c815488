"""Test doubles shared by the test modules."""
from dataclasses import dataclass, field

from shoppingcart.cart import CanBeBought, EventSink
from shoppingcart.money import Money


class RecordingEventSink(EventSink):
    """Collects dispatched events for assertions."""

    def __init__(self):
        self.events = []

    def dispatch(self, event):
        self.events.append(event)

    def names(self):
        return [event.name for event in self.events]

    def count(self, name):
        return self.names().count(name)

    def clear(self):
        self.events.clear()


@dataclass
class BuyableProduct(CanBeBought):
    """Product fixture that can be added to the cart directly."""

    id: int | str = 1
    name: str = "Item name"
    price: Money = field(default_factory=lambda: Money(1000, "USD"))
    weight: int = 0


@dataclass
class DescribedProduct(CanBeBought):
    """Buyable whose label comes from its description when the name is blank."""

    id: int | str = 1
    name: str = ""
    description: str = "Description"
    price: Money = field(default_factory=lambda: Money(1000, "USD"))
    weight: int = 0


class ProductModel:
    """External model loaded lazily through the resolver."""

    some_value = "Some value"

    def __init__(self, id=None):
        self.id = id


@dataclass
class Identifiable:
    """Instance owner with its own default discount."""

    identifier: str
    discount: float = 0

    def instance_identifier(self):
        return self.identifier

    def instance_global_discount(self):
        return self.discount
