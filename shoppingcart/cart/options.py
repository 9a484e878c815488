"""Immutable option set (size, color, ...) that takes part in row identity."""
import json
from collections.abc import Iterator, Mapping
from typing import Any

from shoppingcart.errors import ValidationError

_SCALARS = (str, int, float, bool, type(None))


class CartItemOptions(Mapping):
    """
    Read-only mapping of option name to scalar value.

    Values are reachable both as keys and as attributes:
    ``options["size"] == options.size``. Missing attributes read as None.
    """

    __slots__ = ("_data",)

    def __init__(self, options: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        data = dict(options or {})
        data.update(kwargs)
        for key, value in data.items():
            if not isinstance(key, str) or not key:
                raise ValidationError("options", f"option names must be non-empty strings, got {key!r}")
            if not isinstance(value, _SCALARS):
                raise ValidationError("options", f"option {key!r} must be a scalar value")
        object.__setattr__(self, "_data", data)

    @classmethod
    def coerce(cls, options: "CartItemOptions | Mapping[str, Any] | None") -> "CartItemOptions":
        if isinstance(options, cls):
            return options
        if options is not None and not isinstance(options, Mapping):
            raise ValidationError("options", "options must be a mapping")
        return cls(options)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._data.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("CartItemOptions is immutable")

    def __hash__(self) -> int:
        return hash(self.canonical())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CartItemOptions):
            return self.canonical() == other.canonical()
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"CartItemOptions({self._data!r})"

    def has(self, key: str) -> bool:
        return key in self._data

    def canonical(self) -> str:
        """Sorted keys, stringified values: the form used for identity hashing."""
        return json.dumps(
            {key: str(self._data[key]) for key in sorted(self._data)},
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)
