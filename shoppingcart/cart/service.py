"""Cart service: mutation, totals, persistence and merge."""
import copy
import json
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from shoppingcart.config import DEFAULT_CURRENCY, DEFAULT_INSTANCE, DEFAULT_TAX_RATE
from shoppingcart.errors import (
    AlreadyStoredError,
    CurrencyMismatch,
    RowNotFound,
    UnknownModelReference,
    ValidationError,
)
from shoppingcart.logging import get_logger, sanitize_id_for_logging
from shoppingcart.money import Money, Numeric, sum_money

from . import events
from .events import CartEvent, EventSink, LoggingEventSink
from .identity import generate_row_id
from .models import (
    Buyable,
    CartContext,
    CartItem,
    InstanceIdentifier,
    ItemSpec,
    discount_from_dict,
    discount_to_dict,
    parse_discount,
    parse_rate,
    validate_changes,
)
from .resolver import ModelResolver
from .storage import CartRecordStore, SessionStore, StoredCart

logger = get_logger(__name__)


class Cart:
    """
    Shopping cart bound to one session.

    Holds any number of named instances ("default", "wishlist", ...). Every
    mutating call writes the current instance back to the session store;
    ``store``/``restore``/``merge`` move whole instances in and out of the
    record store.

    Usage:
        cart = Cart(RedisSessionStore(), session_id=session_id)
        item = cart.add("sku-1", "T-shirt", 2, Money(1999, "USD"), options={"size": "L"})
        cart.update(item.row_id, {"qty": 3})
        cart.total()
        cart.store(user_id)
    """

    DEFAULT_INSTANCE = DEFAULT_INSTANCE

    def __init__(
        self,
        session: SessionStore,
        records: CartRecordStore | None = None,
        events_sink: EventSink | None = None,
        resolver: ModelResolver | None = None,
        session_id: str = "",
        tax_rate: Numeric = DEFAULT_TAX_RATE,
        discount: Numeric | Money = 0,
    ) -> None:
        self._session = session
        self._records = records  # Lazy initialization
        self._events = events_sink or LoggingEventSink()
        self._session_id = session_id
        self._context = CartContext(
            tax_rate=parse_rate(tax_rate, "tax_rate"),
            discount=parse_discount(discount),
            resolver=resolver,
        )
        self._instance = DEFAULT_INSTANCE
        self._instances: dict[str, dict[str, CartItem]] = {}
        self._created_at: datetime | None = None
        self._updated_at: datetime | None = None

    @property
    def records(self) -> CartRecordStore:
        """Get the record store (Supabase unless one was injected)."""
        if self._records is None:
            from shoppingcart.repositories import SupabaseCartRepository

            self._records = SupabaseCartRepository()
        return self._records

    @property
    def created_at(self) -> datetime | None:
        return self._created_at

    @property
    def updated_at(self) -> datetime | None:
        return self._updated_at

    # ------------------------------------------------------------------
    # Instances and session state
    # ------------------------------------------------------------------

    def instance(self, name: str | InstanceIdentifier | None = None) -> "Cart":
        """Switch to another named partition; the others keep their items."""
        if name is None:
            name = DEFAULT_INSTANCE
        if isinstance(name, InstanceIdentifier):
            self.set_global_discount(name.instance_global_discount())
            name = name.instance_identifier()
        name = str(name)
        if not name:
            raise ValidationError("instance", "instance name must not be empty")
        self._instance = name
        return self

    def current_instance(self) -> str:
        return self._instance

    @property
    def _session_key(self) -> str:
        return self._session.key_for(self._session_id, self._instance)

    @property
    def _items(self) -> dict[str, CartItem]:
        if self._instance not in self._instances:
            self._instances[self._instance] = self._load()
        return self._instances[self._instance]

    def _load(self) -> dict[str, CartItem]:
        data = self._session.get(self._session_key)
        if not data:
            return {}
        try:
            return self._deserialize(json.loads(data))
        except (
            json.JSONDecodeError,
            AttributeError,
            KeyError,
            TypeError,
            ValueError,
            InvalidOperation,
            ValidationError,
        ) as e:
            # Corrupted data - clear it and start empty
            logger.warning(f"Corrupted cart session for instance {self._instance}: {e}")
            self._session.delete(self._session_key)
            return {}

    def _save(self) -> None:
        items = self._items
        if items:
            self._session.put(self._session_key, json.dumps(self._serialize(items)))
        else:
            self._session.delete(self._session_key)

    def _serialize(self, items: dict[str, CartItem]) -> dict[str, dict]:
        return {row_id: item.to_dict() for row_id, item in items.items()}

    def _deserialize(self, content: Mapping[str, dict]) -> dict[str, CartItem]:
        return {row_id: CartItem.from_dict(data, self._context) for row_id, data in content.items()}

    def _dispatch(
        self,
        name: str,
        item: CartItem | None = None,
        identifier: str | None = None,
        items: tuple[CartItem, ...] = (),
    ) -> None:
        # Events carry copies of the rows; later mutations do not show through
        self._events.dispatch(
            CartEvent(
                name=name,
                instance=self._instance,
                item=None if item is None else copy.copy(item),
                identifier=identifier,
                items=tuple(copy.copy(entry) for entry in items),
            )
        )

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _to_spec(
        self,
        item: Any,
        name: str | None = None,
        qty: int | None = None,
        price: Money | None = None,
        weight: Numeric = 0,
        options: Mapping[str, Any] | None = None,
        tax_rate: Numeric | None = None,
    ) -> ItemSpec:
        if isinstance(item, ItemSpec):
            return item
        if isinstance(item, Buyable):
            return ItemSpec.from_buyable(item, 1 if qty is None else qty, options, self._context.resolver)
        if isinstance(item, Mapping):
            return ItemSpec.from_mapping(item)
        return ItemSpec.from_fields(
            item, name, 1 if qty is None else qty, price, weight, options, tax_rate
        )

    def _add_spec(self, spec: ItemSpec) -> CartItem:
        items = self._items
        row_id = spec.row_id
        existing = items.get(row_id)
        if existing is not None:
            existing.qty += spec.qty
            return existing
        item = CartItem.from_spec(spec, self._context)
        items[row_id] = item
        return item

    def add(
        self,
        item: Any,
        name: str | None = None,
        qty: int | None = None,
        price: Money | None = None,
        weight: Numeric = 0,
        options: Mapping[str, Any] | None = None,
        tax_rate: Numeric | None = None,
    ) -> CartItem | list[CartItem]:
        """
        Add an item, or a list of items, to the current instance.

        Accepted shapes:
            cart.add(product)                           # Buyable
            cart.add(product, qty=2, options={...})
            cart.add({"id": 1, "name": "...", "price": Money(...)})
            cart.add(1, "Name", 1, Money(1000, "USD"), weight=550)
            cart.add([product_a, {"id": 2, ...}])       # returns a list

        Adding a (product, options) pair already in the cart increases that
        row's quantity instead of creating a second row.

        Raises:
            ValidationError: If any field is invalid (nothing is added)
        """
        if isinstance(item, (list, tuple)):
            specs = [self._to_spec(entry) for entry in item]
            added = [self._add_spec(spec) for spec in specs]
            self._save()
            for cart_item in added:
                self._dispatch(events.ITEM_ADDED, item=cart_item)
            return added

        spec = self._to_spec(item, name, qty, price, weight, options, tax_rate)
        cart_item = self._add_spec(spec)
        self._save()
        logger.debug(
            "Added %s x%s to %s", sanitize_id_for_logging(cart_item.row_id), spec.qty, self._instance
        )
        self._dispatch(events.ITEM_ADDED, item=cart_item)
        return cart_item

    def update(self, row_id: str, changes: int | Mapping[str, Any] | Buyable) -> CartItem | None:
        """
        Update a row.

        Args:
            row_id: Row to update
            changes: New quantity, attribute map, or Buyable with fresh
                name/price/weight

        Returns:
            The updated row, or None if the new quantity removed it

        Raises:
            RowNotFound: If the row is not in the current instance
            ValidationError: If a changed value is invalid
        """
        item = self.get(row_id)

        if isinstance(changes, bool):
            raise ValidationError("qty", f"{changes!r} is not an integer")
        if isinstance(changes, int):
            values = validate_changes({"qty": changes})
        elif isinstance(changes, Buyable):
            values = validate_changes(
                {
                    "name": changes.buyable_description(item.options),
                    "price": changes.buyable_price(item.options),
                    "weight": changes.buyable_weight(item.options),
                }
            )
        elif isinstance(changes, Mapping):
            values = validate_changes(changes)
        else:
            raise ValidationError("changes", f"unsupported update value {changes!r}")

        if values.get("qty", item.qty) <= 0:
            self.remove(row_id)
            return None

        price = values.get("price", item.price)
        discount = values["discount"] if "discount" in values else item.discount
        if isinstance(discount, Money) and discount.currency != price.currency:
            raise CurrencyMismatch(price.currency, discount.currency)

        for key, value in values.items():
            setattr(item, key, value)

        new_row_id = generate_row_id(item.product_id, item.options)
        if new_row_id != row_id:
            item = self._rekey(row_id, new_row_id)

        self._save()
        logger.debug("Updated %s in %s", sanitize_id_for_logging(item.row_id), self._instance)
        self._dispatch(events.ITEM_UPDATED, item=item)
        return item

    def _rekey(self, old_row_id: str, new_row_id: str) -> CartItem:
        """Move a row to its new identity, merging into an existing row on collision."""
        items = self._items
        item = items[old_row_id]
        survivor = items.get(new_row_id)
        if survivor is not None:
            survivor.qty += item.qty
            del items[old_row_id]
            return survivor
        item.row_id = new_row_id
        self._instances[self._instance] = {
            (new_row_id if key == old_row_id else key): value for key, value in items.items()
        }
        return item

    def remove(self, row_id: str) -> None:
        """
        Remove a row.

        Raises:
            RowNotFound: If the row is not in the current instance
        """
        item = self.get(row_id)
        del self._items[row_id]
        self._save()
        logger.debug("Removed %s from %s", sanitize_id_for_logging(row_id), self._instance)
        self._dispatch(events.ITEM_REMOVED, item=item)

    def get(self, row_id: str) -> CartItem:
        """
        Get a row.

        Raises:
            RowNotFound: If the row is not in the current instance
        """
        item = self._items.get(row_id)
        if item is None:
            raise RowNotFound(row_id)
        return item

    def content(self) -> list[CartItem]:
        """Rows of the current instance in insertion order."""
        return list(self._items.values())

    def destroy(self) -> None:
        """Empty the current instance."""
        self._instances[self._instance] = {}
        self._session.delete(self._session_key)

    def search(self, predicate: Callable[[CartItem, str], bool]) -> list[CartItem]:
        """Rows for which ``predicate(item, row_id)`` is true."""
        return [item for row_id, item in self._items.items() if predicate(item, row_id)]

    def associate(self, row_id: str, model: Any) -> CartItem:
        """
        Link a row to an external model (instance, class or registered tag).

        The model itself is not loaded; ``item.model()`` resolves it on demand.

        Raises:
            RowNotFound: If the row is not in the current instance
            UnknownModelReference: If the resolver does not know the model type
        """
        item = self.get(row_id)
        resolver = self._context.resolver
        if resolver is None:
            name = model if isinstance(model, str) else getattr(model, "__name__", type(model).__name__)
            raise UnknownModelReference(name)
        item.associated_model = resolver.reference_for(model, item.product_id)
        self._save()
        return item

    def set_tax(self, row_id: str, rate: Numeric | None) -> CartItem:
        """Override the tax rate of one row (None falls back to the global rate)."""
        item = self.get(row_id)
        item.tax_rate = None if rate is None else parse_rate(rate, "tax_rate")
        self._save()
        return item

    def set_discount(self, row_id: str, discount: Numeric | Money | None) -> CartItem:
        """Override the discount of one row: a fraction of the price or an amount per unit."""
        item = self.get(row_id)
        value = parse_discount(discount)
        if isinstance(value, Money) and value.currency != item.price.currency:
            raise CurrencyMismatch(item.price.currency, value.currency)
        item.discount = value
        self._save()
        return item

    def set_global_tax(self, rate: Numeric) -> None:
        """Tax rate for every row without its own override."""
        self._context.tax_rate = parse_rate(rate, "tax_rate")

    def set_global_discount(self, discount: Numeric | Money) -> None:
        """Discount for every row without its own override."""
        value = parse_discount(discount)
        self._context.discount = value if value is not None else Decimal("0")

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    def _currency(self) -> str:
        items = self._items
        return next(iter(items.values())).price.currency if items else DEFAULT_CURRENCY

    def price(self) -> Money:
        """Sum of unit price x quantity, before discounts."""
        return sum_money((item.price_total() for item in self._items.values()), self._currency())

    def discount(self) -> Money:
        return sum_money((item.discount_amount() for item in self._items.values()), self._currency())

    def subtotal(self) -> Money:
        """Sum of taxable bases (after discount, before tax)."""
        return sum_money((item.subtotal() for item in self._items.values()), self._currency())

    def tax(self) -> Money:
        return sum_money((item.tax() for item in self._items.values()), self._currency())

    def total(self) -> Money:
        return sum_money((item.total() for item in self._items.values()), self._currency())

    def weight(self) -> Decimal:
        return sum((item.weight_total() for item in self._items.values()), Decimal("0"))

    def count(self) -> int:
        """Number of units (sum of quantities)."""
        return sum(item.qty for item in self._items.values())

    count_items = count

    def count_rows(self) -> int:
        return len(self._items)

    def summary(self) -> dict:
        """Cart summary for display and API responses."""
        items = self.content()
        return {
            "instance": self._instance,
            "is_empty": not items,
            "count": self.count(),
            "rows": len(items),
            "items": [item.to_summary() for item in items],
            "price": self.price().format(),
            "discount": self.discount().format(),
            "subtotal": self.subtotal().format(),
            "tax": self.tax().format(),
            "total": self.total().format(),
            "weight": self.weight(),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def _identifier_key(identifier: Any) -> str:
        if isinstance(identifier, InstanceIdentifier):
            identifier = identifier.instance_identifier()
        if isinstance(identifier, bool) or not isinstance(identifier, (str, int)):
            raise ValidationError("identifier", f"{identifier!r} is not a valid identifier")
        key = str(identifier)
        if not key:
            raise ValidationError("identifier", "identifier must not be empty")
        return key

    def store(self, identifier: Any, overwrite: bool = False) -> StoredCart:
        """
        Persist the current instance under (identifier, instance).

        Args:
            identifier: Owner key (str, int or InstanceIdentifier)
            overwrite: Replace an existing record instead of failing

        Raises:
            AlreadyStoredError: If a record exists and overwrite is False
        """
        key = self._identifier_key(identifier)
        now = datetime.now(UTC)

        # Read-then-write: not atomic against another process storing the same
        # key. The Supabase table's unique key rejects the loser of that race.
        existing = self.records.find(key, self._instance)
        if existing is not None and not overwrite:
            raise AlreadyStoredError(key)

        record = StoredCart(
            identifier=key,
            instance=self._instance,
            content=self._serialize(self._items),
            tax_rate=self._context.tax_rate,
            discount=discount_to_dict(self._context.discount),
            created_at=existing.created_at if existing else (self._created_at or now),
            updated_at=now,
        )
        if existing is not None:
            self.records.update(record)
        else:
            self.records.insert(record)

        logger.info(
            "Stored cart instance %s under %s", self._instance, sanitize_id_for_logging(key)
        )
        self._dispatch(events.CART_STORED, identifier=key, items=tuple(self.content()))
        return record

    def restore(self, identifier: Any) -> None:
        """
        Replace the current instance with the stored one and delete the record.

        Does nothing when no record exists for (identifier, instance).
        """
        key = self._identifier_key(identifier)
        record = self.records.find(key, self._instance)
        if record is None:
            logger.debug("No stored cart for %s/%s", sanitize_id_for_logging(key), self._instance)
            return

        self._instances[self._instance] = self._deserialize(record.content)
        self._save()
        self._created_at = record.created_at
        self._updated_at = record.updated_at
        self.records.delete(key, self._instance)

        logger.info(
            "Restored cart instance %s from %s", self._instance, sanitize_id_for_logging(key)
        )
        self._dispatch(events.CART_RESTORED, identifier=key, items=tuple(self.content()))

    def erase(self, identifier: Any) -> None:
        """Delete the stored record for (identifier, instance), if any."""
        key = self._identifier_key(identifier)
        if self.records.find(key, self._instance) is None:
            return
        self.records.delete(key, self._instance)
        logger.info("Erased stored cart %s/%s", sanitize_id_for_logging(key), self._instance)
        self._dispatch(events.CART_ERASED, identifier=key)

    def merge(
        self,
        identifier: Any,
        keep_discount: bool = False,
        keep_tax: bool = False,
        dispatch_add: bool = True,
        instance: str | None = None,
    ) -> bool:
        """
        Add every item of a stored cart to the current instance.

        The stored record is left in place. Without ``keep_discount`` /
        ``keep_tax`` merged rows use this cart's global rates; with them,
        each row keeps its own override or the stored cart's global value.

        Args:
            instance: Stored instance to read; defaults to the current one

        Returns:
            False if no record exists for (identifier, instance), else True
        """
        key = self._identifier_key(identifier)
        source_instance = self._instance if instance is None else str(instance)
        record = self.records.find(key, source_instance)
        if record is None:
            return False

        source_discount = discount_from_dict(record.discount)
        items = self._items
        merged: list[CartItem] = []
        for data in record.content.values():
            incoming = CartItem.from_dict(data, self._context)
            if not keep_discount:
                incoming.discount = None
            elif incoming.discount is None:
                incoming.discount = source_discount
            if not keep_tax:
                incoming.tax_rate = None
            elif incoming.tax_rate is None:
                incoming.tax_rate = record.tax_rate

            # An existing row keeps its own (possibly differently tagged) discount
            existing = items.get(incoming.row_id)
            if existing is not None:
                existing.qty += incoming.qty
                merged.append(existing)
            else:
                items[incoming.row_id] = incoming
                merged.append(incoming)

        self._save()
        if dispatch_add:
            for item in merged:
                self._dispatch(events.ITEM_ADDED, item=item)

        logger.info(
            "Merged %d rows from %s into %s", len(merged), sanitize_id_for_logging(key), self._instance
        )
        self._dispatch(events.CART_MERGED, identifier=key, items=tuple(merged))
        return True
