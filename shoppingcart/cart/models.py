"""Cart models with minor-unit pricing."""
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from shoppingcart.config import DEFAULT_TAX_RATE
from shoppingcart.errors import CurrencyMismatch, ValidationError
from shoppingcart.money import Money, Numeric, to_decimal

from .identity import generate_row_id
from .options import CartItemOptions
from .resolver import ModelReference, ModelResolver

Discount = Decimal | Money


@runtime_checkable
class Buyable(Protocol):
    """Anything that can be put in the cart directly (a product model, a DTO...)."""

    def buyable_identifier(self, options: CartItemOptions | None = None) -> str | int: ...

    def buyable_description(self, options: CartItemOptions | None = None) -> str: ...

    def buyable_price(self, options: CartItemOptions | None = None) -> Money: ...

    def buyable_weight(self, options: CartItemOptions | None = None) -> Numeric: ...


class CanBeBought:
    """
    Mixin implementing Buyable from plain attributes.

    Reads ``id``, then ``name``/``title``/``description`` for the label,
    ``price`` and ``weight`` (0 when missing).
    """

    def buyable_identifier(self, options: CartItemOptions | None = None) -> str | int:
        return getattr(self, "id")

    def buyable_description(self, options: CartItemOptions | None = None) -> str:
        for attr in ("name", "title", "description"):
            value = getattr(self, attr, None)
            if value:
                return value
        return ""

    def buyable_price(self, options: CartItemOptions | None = None) -> Money:
        return getattr(self, "price")

    def buyable_weight(self, options: CartItemOptions | None = None) -> Numeric:
        return getattr(self, "weight", 0)


@runtime_checkable
class InstanceIdentifier(Protocol):
    """A user (or similar) owning a cart instance, with its own default discount."""

    def instance_identifier(self) -> str | int: ...

    def instance_global_discount(self) -> Numeric | Money: ...


def parse_rate(value: Numeric, field_name: str) -> Decimal:
    """Validate a fraction such as 0.19 (19%)."""
    try:
        rate = to_decimal(value)
    except ValueError as e:
        raise ValidationError(field_name, str(e)) from None
    if rate < 0:
        raise ValidationError(field_name, f"rate {value!r} must not be negative")
    return rate


def parse_discount(value: Numeric | Money | None) -> Discount | None:
    """Validate a discount: a fraction of the unit price in [0, 1] or an absolute Money amount."""
    if value is None or isinstance(value, Money):
        if isinstance(value, Money) and value.amount < 0:
            raise ValidationError("discount", "amount must not be negative")
        return value
    rate = parse_rate(value, "discount")
    if rate > 1:
        raise ValidationError("discount", f"fraction {value!r} must be between 0 and 1")
    return rate


def discount_to_dict(discount: Discount | None) -> dict | None:
    if discount is None:
        return None
    if isinstance(discount, Money):
        return {"type": "money", **discount.to_dict()}
    return {"type": "rate", "value": str(discount)}


def discount_from_dict(data: dict | None) -> Discount | None:
    if data is None:
        return None
    if data["type"] == "money":
        return Money.from_dict(data)
    if data["type"] == "rate":
        return Decimal(data["value"])
    raise ValidationError("discount", f"unknown discount type {data['type']!r}")


def _check_product_id(value: Any) -> str | int:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError("id", f"{value!r} is not a valid identifier")
    if isinstance(value, str) and not value.strip():
        raise ValidationError("id", "identifier must not be empty")
    return value


def _check_qty(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("qty", f"{value!r} is not an integer")
    return value


def _check_weight(value: Any) -> Decimal:
    try:
        weight = to_decimal(value)
    except ValueError as e:
        raise ValidationError("weight", str(e)) from None
    if weight < 0:
        raise ValidationError("weight", "weight must not be negative")
    return weight


def _check_price(value: Any) -> Money:
    if not isinstance(value, Money):
        raise ValidationError("price", f"{value!r} is not a Money value")
    return value


def _check_name(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("name", f"{value!r} is not a string")
    return value


_MAPPING_KEYS = {
    "id": "product_id",
    "product_id": "product_id",
    "name": "name",
    "qty": "qty",
    "quantity": "qty",
    "price": "price",
    "weight": "weight",
    "options": "options",
    "tax_rate": "tax_rate",
    "taxRate": "tax_rate",
    "discount": "discount",
}


def normalize_attributes(attributes: Mapping[str, Any]) -> dict[str, Any]:
    """Map accepted attribute spellings onto ItemSpec field names."""
    normalized = {}
    for key, value in attributes.items():
        target = _MAPPING_KEYS.get(key)
        if target is None:
            raise ValidationError(str(key), "unknown cart item attribute")
        normalized[target] = value
    return normalized


@dataclass(frozen=True)
class ItemSpec:
    """
    Validated description of a line to add.

    Every input shape accepted by ``Cart.add`` ends up here through one of
    the three factories, so validation happens in exactly one place.
    """

    product_id: str | int
    name: str
    qty: int
    price: Money
    weight: Decimal = Decimal("0")
    options: CartItemOptions = field(default_factory=CartItemOptions)
    tax_rate: Decimal | None = None
    discount: Discount | None = None
    model: ModelReference | None = None

    def __post_init__(self):
        object.__setattr__(self, "product_id", _check_product_id(self.product_id))
        object.__setattr__(self, "name", _check_name(self.name))
        qty = _check_qty(self.qty)
        if qty < 1:
            raise ValidationError("qty", f"quantity must be positive, got {qty}")
        object.__setattr__(self, "price", _check_price(self.price))
        object.__setattr__(self, "weight", _check_weight(self.weight))
        object.__setattr__(self, "options", CartItemOptions.coerce(self.options))
        if self.tax_rate is not None:
            object.__setattr__(self, "tax_rate", parse_rate(self.tax_rate, "tax_rate"))
        discount = parse_discount(self.discount)
        if isinstance(discount, Money) and discount.currency != self.price.currency:
            raise CurrencyMismatch(self.price.currency, discount.currency)
        object.__setattr__(self, "discount", discount)

    @property
    def row_id(self) -> str:
        return generate_row_id(self.product_id, self.options)

    @classmethod
    def from_fields(
        cls,
        product_id: str | int,
        name: str,
        qty: int = 1,
        price: Money | None = None,
        weight: Numeric = 0,
        options: CartItemOptions | Mapping[str, Any] | None = None,
        tax_rate: Numeric | None = None,
        discount: Numeric | Money | None = None,
    ) -> "ItemSpec":
        return cls(
            product_id=product_id,
            name=name,
            qty=qty,
            price=price,
            weight=weight,
            options=CartItemOptions.coerce(options),
            tax_rate=tax_rate,
            discount=discount,
        )

    @classmethod
    def from_mapping(cls, attributes: Mapping[str, Any]) -> "ItemSpec":
        """Build from ``{"id": 1, "name": "...", "qty": 1, "price": Money(...), ...}``."""
        values = normalize_attributes(attributes)
        for required in ("product_id", "name", "price"):
            if required not in values:
                raise ValidationError("id" if required == "product_id" else required, "is required")
        values.setdefault("qty", 1)
        values.setdefault("weight", 0)
        values["options"] = CartItemOptions.coerce(values.get("options"))
        return cls(**values)

    @classmethod
    def from_buyable(
        cls,
        buyable: Buyable,
        qty: int = 1,
        options: CartItemOptions | Mapping[str, Any] | None = None,
        resolver: ModelResolver | None = None,
    ) -> "ItemSpec":
        """Build from a Buyable; registered model types are associated automatically."""
        options = CartItemOptions.coerce(options)
        product_id = buyable.buyable_identifier(options)
        model = None
        if resolver is not None and resolver.tag_for(buyable) is not None:
            model = resolver.reference_for(buyable, product_id)
        return cls(
            product_id=product_id,
            name=buyable.buyable_description(options),
            qty=qty,
            price=buyable.buyable_price(options),
            weight=buyable.buyable_weight(options),
            options=options,
            model=model,
        )


@dataclass
class CartContext:
    """
    Cart-wide settings shared by every item of a cart.

    Items read these at calculation time, so changing a global rate
    re-prices every item without its own override.
    """

    tax_rate: Decimal = DEFAULT_TAX_RATE
    discount: Discount = Decimal("0")
    resolver: ModelResolver | None = None


@dataclass
class CartItem:
    """Single line in the cart."""

    row_id: str
    product_id: str | int
    name: str
    qty: int
    price: Money
    weight: Decimal = Decimal("0")
    options: CartItemOptions = field(default_factory=CartItemOptions)
    tax_rate: Decimal | None = None
    discount: Discount | None = None
    associated_model: ModelReference | None = None
    _context: CartContext = field(default_factory=CartContext, repr=False, compare=False)

    @classmethod
    def from_spec(cls, spec: ItemSpec, context: CartContext | None = None) -> "CartItem":
        return cls(
            row_id=spec.row_id,
            product_id=spec.product_id,
            name=spec.name,
            qty=spec.qty,
            price=spec.price,
            weight=spec.weight,
            options=spec.options,
            tax_rate=spec.tax_rate,
            discount=spec.discount,
            associated_model=spec.model,
            _context=context or CartContext(),
        )

    def bind(self, context: CartContext) -> "CartItem":
        self._context = context
        return self

    @property
    def effective_tax_rate(self) -> Decimal:
        return self.tax_rate if self.tax_rate is not None else self._context.tax_rate

    @property
    def effective_discount(self) -> Discount:
        return self.discount if self.discount is not None else self._context.discount

    def price_total(self) -> Money:
        """Unit price times quantity, before discount."""
        return self.price.multiply(self.qty)

    def discount_amount(self) -> Money:
        """Discount for the whole line, never more than the line price."""
        gross = self.price_total()
        discount = self.effective_discount
        if isinstance(discount, Money):
            if discount.currency != gross.currency:
                raise CurrencyMismatch(gross.currency, discount.currency)
            amount = discount.multiply(self.qty)
        else:
            amount = gross.multiply(discount)
        return min(amount, gross)

    def subtotal(self) -> Money:
        """Taxable base: line price after discount, before tax."""
        return self.price_total() - self.discount_amount()

    def tax(self) -> Money:
        return self.subtotal().multiply(self.effective_tax_rate)

    def total(self) -> Money:
        return self.subtotal() + self.tax()

    def weight_total(self) -> Decimal:
        return self.weight * self.qty

    def model(self) -> Any | None:
        """Load the associated model through the cart's resolver (None when unassociated)."""
        if self.associated_model is None:
            return None
        resolver = self._context.resolver
        if resolver is None:
            return None
        return resolver.resolve(self.associated_model.type, self.associated_model.key)

    def to_dict(self) -> dict:
        """Full attribute set, enough to rebuild the item exactly."""
        return {
            "rowId": self.row_id,
            "id": self.product_id,
            "name": self.name,
            "qty": self.qty,
            "price": self.price.to_dict(),
            "weight": str(self.weight),
            "options": self.options.to_dict(),
            "taxRate": None if self.tax_rate is None else str(self.tax_rate),
            "discount": discount_to_dict(self.discount),
            "associatedModel": (
                None if self.associated_model is None else self.associated_model.to_dict()
            ),
        }

    @classmethod
    def from_dict(cls, data: dict, context: CartContext | None = None) -> "CartItem":
        tax_rate = data.get("taxRate")
        model = data.get("associatedModel")
        return cls(
            row_id=data["rowId"],
            product_id=data["id"],
            name=data["name"],
            qty=int(data["qty"]),
            price=Money.from_dict(data["price"]),
            weight=Decimal(data.get("weight", "0")),
            options=CartItemOptions(data.get("options") or {}),
            tax_rate=None if tax_rate is None else Decimal(tax_rate),
            discount=discount_from_dict(data.get("discount")),
            associated_model=None if model is None else ModelReference.from_dict(model),
            _context=context or CartContext(),
        )

    def to_summary(self) -> dict:
        """Display-ready row with formatted amounts."""
        return {
            "rowId": self.row_id,
            "id": self.product_id,
            "name": self.name,
            "qty": self.qty,
            "price": self.price.format(),
            "subtotal": self.subtotal().format(),
            "tax": self.tax().format(),
            "total": self.total().format(),
            "options": self.options.to_dict(),
            "discount": self.discount_amount().format(),
            "weight": self.weight,
        }


def validate_changes(attributes: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate an update attribute map without applying it.

    ``qty`` is only type-checked: a value <= 0 is a removal request, not an error.
    ``tax_rate``/``discount`` may be None to clear a per-item override.
    """
    values = normalize_attributes(attributes)
    checked: dict[str, Any] = {}
    for key, value in values.items():
        if key == "product_id":
            checked[key] = _check_product_id(value)
        elif key == "name":
            checked[key] = _check_name(value)
        elif key == "qty":
            checked[key] = _check_qty(value)
        elif key == "price":
            checked[key] = _check_price(value)
        elif key == "weight":
            checked[key] = _check_weight(value)
        elif key == "options":
            checked[key] = CartItemOptions.coerce(value)
        elif key == "tax_rate":
            checked[key] = None if value is None else parse_rate(value, "tax_rate")
        elif key == "discount":
            checked[key] = parse_discount(value)
    return checked
