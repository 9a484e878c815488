"""
Cart errors.

Message templates are kept as constants so tests and callers can match on
them without duplicating strings.
"""

from typing import Any

ERROR_INVALID_FIELD = "Invalid cart item {field}: {reason}"
ERROR_ROW_NOT_FOUND = "The cart does not contain rowId {row_id}."
ERROR_UNKNOWN_MODEL = "The supplied model {model} does not exist."
ERROR_ALREADY_STORED = "A cart with identifier {identifier} was already stored."
ERROR_CURRENCY_MISMATCH = "Currency mismatch: {left} != {right}"


class CartError(Exception):
    """Base class for every error raised by the cart."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(CartError):
    """Bad input to add/update."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(ERROR_INVALID_FIELD.format(field=field, reason=reason), code="VALIDATION")
        self.field = field


class RowNotFound(CartError):
    """Operation referenced a row id the current instance does not hold."""

    def __init__(self, row_id: str) -> None:
        super().__init__(ERROR_ROW_NOT_FOUND.format(row_id=row_id), code="ROW_NOT_FOUND")
        self.row_id = row_id


class UnknownModelReference(CartError):
    """associate() was given a model the resolver does not know."""

    def __init__(self, model: Any) -> None:
        super().__init__(ERROR_UNKNOWN_MODEL.format(model=model), code="UNKNOWN_MODEL")
        self.model = model


class AlreadyStoredError(CartError):
    """A record already exists for (identifier, instance)."""

    def __init__(self, identifier: str) -> None:
        super().__init__(
            ERROR_ALREADY_STORED.format(identifier=identifier), code="ALREADY_STORED"
        )
        self.identifier = identifier


class CurrencyMismatch(CartError):
    """Arithmetic attempted across two currencies."""

    def __init__(self, left: str, right: str) -> None:
        super().__init__(
            ERROR_CURRENCY_MISMATCH.format(left=left, right=right), code="CURRENCY_MISMATCH"
        )
        self.left = left
        self.right = right
