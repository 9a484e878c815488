"""Tests for external model resolution"""
import pytest

from shoppingcart.cart import ModelReference, ModelResolver
from shoppingcart.errors import UnknownModelReference
from shoppingcart.money import Money

from helpers import BuyableProduct, ProductModel


class SpecialProduct(ProductModel):
    pass


class TestModelResolver:
    """Tests for ModelResolver."""

    def test_tag_for(self, resolver):
        """Test tags resolve from strings, classes and instances"""
        assert resolver.tag_for("product") == "product"
        assert resolver.tag_for(ProductModel) == "product"
        assert resolver.tag_for(ProductModel(id=5)) == "product"
        assert resolver.tag_for("unknown") is None
        assert resolver.tag_for(object()) is None

    def test_tag_for_subclass(self, resolver):
        """Test subclasses of a registered type share its tag"""
        assert resolver.tag_for(SpecialProduct) == "product"

    def test_reference_from_class(self, resolver):
        """Test classes take the default key"""
        assert resolver.reference_for(ProductModel, 42) == ModelReference("product", 42)

    def test_reference_from_instance(self, resolver):
        """Test instances supply their own key"""
        assert resolver.reference_for(ProductModel(id=7), 42) == ModelReference("product", 7)
        assert resolver.reference_for(BuyableProduct(id="sku"), 42).key == "sku"

    def test_reference_unknown(self, resolver):
        """Test unknown models are rejected by name"""
        with pytest.raises(UnknownModelReference) as exc:
            resolver.reference_for(object, 1)
        assert str(exc.value) == "The supplied model object does not exist."

    def test_resolve(self, resolver):
        """Test the loader receives the stored key"""
        model = resolver.resolve("product", 3)

        assert isinstance(model, ProductModel)
        assert model.id == 3

    def test_resolve_not_found(self):
        """Test a loader miss resolves to None"""
        resolver = ModelResolver()
        resolver.register("product", ProductModel, lambda key: None)

        assert resolver.resolve("product", 3) is None

    def test_resolve_unknown_tag(self):
        """Test resolving an unregistered tag fails"""
        with pytest.raises(UnknownModelReference):
            ModelResolver().resolve("product", 1)

    def test_reference_serialization(self):
        """Test references survive a dict round trip"""
        reference = ModelReference("product", "sku-1")

        assert ModelReference.from_dict(reference.to_dict()) == reference


class TestItemModel:
    """Tests for CartItem.model()."""

    def test_unassociated_item(self, cart):
        """Test rows without a reference have no model"""
        item = cart.add(1, "Test item", 1, Money(1000, "USD"))

        assert item.model() is None

    def test_reference_survives_session_reload(self, cart, make_cart):
        """Test a reloaded row still resolves its model"""
        item = cart.add(BuyableProduct(id=4))

        reloaded = make_cart().get(item.row_id)

        assert reloaded.associated_model == ModelReference("buyable_product", 4)
        assert reloaded.model() == BuyableProduct(id=4)
