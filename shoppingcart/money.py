"""
Money Value - exact minor-unit amounts.

Amounts are stored as integers in the currency's minor unit (cents).
Every multiplication rounds back to a whole minor unit with ROUND_HALF_UP
so item and cart totals always agree to the cent.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from shoppingcart.config import (
    DEFAULT_CURRENCY,
    FORMAT_DECIMAL_POINT,
    FORMAT_DECIMALS,
    FORMAT_THOUSANDS_SEPARATOR,
)
from shoppingcart.errors import CurrencyMismatch, ValidationError

Numeric = Union[str, int, float, Decimal]

# Currencies whose minor unit is not 1/100
MINOR_UNIT_EXPONENTS: dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
}


def minor_unit_exponent(currency: str) -> int:
    return MINOR_UNIT_EXPONENTS.get(currency, 2)


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through their string form to avoid binary noise
    (0.19 -> Decimal("0.19"), not 0.190000000000000002220...).

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not numeric")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise ValueError(f"{value!r} is not numeric") from None
    else:
        raise ValueError(f"{value!r} is not numeric")
    if not result.is_finite():
        raise ValueError(f"{value!r} is not finite")
    return result


def round_half_up(value: Decimal) -> int:
    """Round to a whole minor unit."""
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Money:
    """Immutable amount of a single currency."""

    amount: int
    currency: str

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError("price", f"amount {self.amount!r} must be an integer of minor units")
        if not isinstance(self.currency, str) or len(self.currency) != 3 or not self.currency.isalpha():
            raise ValidationError("price", f"currency {self.currency!r} must be a 3-letter code")
        object.__setattr__(self, "currency", self.currency.upper())

    @classmethod
    def of(cls, value: Numeric, currency: str = DEFAULT_CURRENCY) -> "Money":
        """Build from a major-unit amount, e.g. Money.of("10.50") -> 1050 cents."""
        try:
            decimal_value = to_decimal(value)
        except ValueError as e:
            raise ValidationError("price", str(e)) from None
        scale = Decimal(10) ** minor_unit_exponent(currency.upper())
        return cls(round_half_up(decimal_value * scale), currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(0, currency)

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise TypeError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def multiply(self, factor: Numeric) -> "Money":
        """Multiply by a quantity or rate, rounding half-up to the minor unit."""
        return Money(round_half_up(Decimal(self.amount) * to_decimal(factor)), self.currency)

    def __mul__(self, factor: Numeric) -> "Money":
        return self.multiply(factor)

    __rmul__ = __mul__

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        return self.amount == 0

    def to_decimal(self) -> Decimal:
        """Amount in major units (1050 cents -> Decimal("10.50"))."""
        exponent = minor_unit_exponent(self.currency)
        return Decimal(self.amount).scaleb(-exponent)

    def format(
        self,
        decimals: int | None = None,
        decimal_point: str | None = None,
        thousands_separator: str | None = None,
    ) -> str:
        """
        Format the major-unit amount with the configured number format.

        Money(123456, "USD").format() -> "1,234.56"
        """
        decimals = FORMAT_DECIMALS if decimals is None else decimals
        decimal_point = FORMAT_DECIMAL_POINT if decimal_point is None else decimal_point
        thousands_separator = (
            FORMAT_THOUSANDS_SEPARATOR if thousands_separator is None else thousands_separator
        )
        quantum = Decimal(1).scaleb(-decimals)
        value = self.to_decimal().quantize(quantum, rounding=ROUND_HALF_UP)
        text = f"{value:,.{decimals}f}"
        # Swap through a placeholder so "," and "." can trade places
        return text.replace(",", "\0").replace(".", decimal_point).replace("\0", thousands_separator)

    def to_dict(self) -> dict:
        return {"amount": self.amount, "currency": self.currency}

    @classmethod
    def from_dict(cls, data: dict) -> "Money":
        return cls(int(data["amount"]), data["currency"])

    def __str__(self) -> str:
        return f"{self.format()} {self.currency}"


def sum_money(values, currency: str = DEFAULT_CURRENCY) -> Money:
    """Sum left to right; an empty sequence yields zero in `currency`."""
    total = None
    for value in values:
        total = value if total is None else total + value
    return total if total is not None else Money.zero(currency)
