"""
External model resolution.

Cart items never hold the product object itself, only a ModelReference
(type tag + key). The resolver turns a reference back into an object when
``CartItem.model()`` is called.
"""
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from shoppingcart.errors import UnknownModelReference
from shoppingcart.logging import get_logger

logger = get_logger(__name__)

Loader = Callable[[Any], Any]


@dataclass(frozen=True)
class ModelReference:
    """Opaque pointer to an external model."""

    type: str
    key: str | int

    def to_dict(self) -> dict:
        return {"type": self.type, "key": self.key}

    @classmethod
    def from_dict(cls, data: dict) -> "ModelReference":
        return cls(type=data["type"], key=data["key"])


class ModelResolver:
    """
    Registry of model types the cart may reference.

    Usage:
        resolver = ModelResolver()
        resolver.register("product", Product, product_repo.get_by_id)
        cart = Cart(session, resolver=resolver)
        cart.associate(row_id, Product)
        cart.get(row_id).model()  # -> product_repo.get_by_id(<product id>)
    """

    def __init__(self) -> None:
        self._loaders: dict[str, Loader] = {}
        self._tags: dict[type, str] = {}

    def register(self, tag: str, model_type: type, loader: Loader) -> None:
        """Register a model type under `tag`; `loader(key)` returns the object or None."""
        self._loaders[tag] = loader
        self._tags[model_type] = tag

    def knows(self, tag: str) -> bool:
        return tag in self._loaders

    def tag_for(self, model: Any) -> str | None:
        """Type tag for a tag string, a registered class or one of its instances."""
        if isinstance(model, str):
            return model if model in self._loaders else None
        model_type = model if isinstance(model, type) else type(model)
        for registered, tag in self._tags.items():
            if issubclass(model_type, registered):
                return tag
        return None

    def reference_for(self, model: Any, default_key: str | int) -> ModelReference:
        """
        Build a reference to `model`.

        Instances supply their own key (buyable identifier or ``id``);
        classes and tags fall back to `default_key`.

        Raises:
            UnknownModelReference: If the model type is not registered
        """
        tag = self.tag_for(model)
        if tag is None:
            name = model if isinstance(model, str) else getattr(model, "__name__", type(model).__name__)
            raise UnknownModelReference(name)

        key = default_key
        if not isinstance(model, (str, type)):
            if hasattr(model, "buyable_identifier"):
                key = model.buyable_identifier()
            elif getattr(model, "id", None) is not None:
                key = model.id
        return ModelReference(type=tag, key=key)

    def resolve(self, tag: str, key: Any) -> Any | None:
        """
        Load the referenced object.

        Returns:
            The object, or None if the loader does not find it

        Raises:
            UnknownModelReference: If no loader is registered for `tag`
        """
        loader = self._loaders.get(tag)
        if loader is None:
            raise UnknownModelReference(tag)
        result = loader(key)
        if result is None:
            logger.debug("Model %s:%s not found", tag, key)
        return result
