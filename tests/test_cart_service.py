"""
Tests for CartService

These run the real Lua scripts against an in-process Redis, so quantity
clamping and the one-line-item-per-product rule are checked where they
are enforced.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from storefront.cart_service import CartService
from storefront.models import ProductDraft
from storefront.exceptions import (
    CartItemNotFoundError,
    ProductNotFoundError,
    ValidationError
)


class TestAddOrIncrement:
    """Adding products creates or increments a single line item"""

    @pytest.mark.parametrize("requested, expected", [(1, 1), (7, 7), (20, 20), (21, 20), (500, 20)])
    def test_new_line_item_is_clamped_to_max(self, cart_service, products, requested, expected):
        # Act
        item = cart_service.add_or_increment(products["headphones"].id, requested)

        # Assert
        assert item.quantity == expected
        assert item.product_id == products["headphones"].id
        assert item.product.name == "Wireless Headphones"

    @pytest.mark.parametrize("existing, added, expected", [(1, 1, 2), (5, 10, 15), (18, 5, 20), (20, 1, 20)])
    def test_existing_line_item_is_incremented_and_clamped(self, cart_service, products, existing, added, expected):
        # Arrange
        first = cart_service.add_or_increment(products["smartphone"].id, existing)

        # Act
        second = cart_service.add_or_increment(products["smartphone"].id, added)

        # Assert
        assert second.id == first.id
        assert second.quantity == expected
        assert second.quantity >= first.quantity

    def test_default_quantity_is_one(self, cart_service, products):
        item = cart_service.add_or_increment(products["backpack"].id)
        assert item.quantity == 1

    def test_same_product_keeps_one_line_item(self, cart_service, products):
        # Arrange / Act
        for _ in range(3):
            cart_service.add_or_increment(products["headphones"].id)
        cart_service.add_or_increment(products["backpack"].id)

        # Assert
        cart = cart_service.get_cart()
        assert len(cart.items) == 2
        quantities = {item.product_id: item.quantity for item in cart.items}
        assert quantities[products["headphones"].id] == 3
        assert quantities[products["backpack"].id] == 1

    def test_numeric_string_quantity_is_accepted(self, cart_service, products):
        item = cart_service.add_or_increment(products["headphones"].id, "3")
        assert item.quantity == 3

    def test_fractional_quantity_is_truncated(self, cart_service, products):
        item = cart_service.add_or_increment(products["headphones"].id, 2.7)
        assert item.quantity == 2

    @pytest.mark.parametrize("quantity", [0, -1, 0.5, "abc", None, True, float("nan"), float("inf")])
    def test_invalid_quantity_is_rejected(self, cart_service, products, quantity):
        # Act / Assert
        with pytest.raises(ValidationError):
            cart_service.add_or_increment(products["headphones"].id, quantity)

        assert cart_service.get_cart().items == []

    @pytest.mark.parametrize("product_id", [None, "", "   "])
    def test_missing_product_id_is_rejected(self, cart_service, products, product_id):
        with pytest.raises(ValidationError):
            cart_service.add_or_increment(product_id, 1)

    def test_unknown_product_is_not_found(self, cart_service, products):
        # Act / Assert
        with pytest.raises(ProductNotFoundError):
            cart_service.add_or_increment("9999", 1)

        assert cart_service.get_cart().items == []


class TestSetQuantity:
    """Setting a quantity clamps into [1, 20] and never deletes"""

    @pytest.mark.parametrize("quantity, expected", [(0, 1), (-4, 1), (25, 20), (5, 5), ("12", 12), (19.9, 19)])
    def test_quantity_is_clamped(self, cart_service, products, quantity, expected):
        # Arrange
        item = cart_service.add_or_increment(products["headphones"].id, 3)

        # Act
        updated = cart_service.set_quantity(item.id, quantity)

        # Assert
        assert updated.id == item.id
        assert updated.quantity == expected
        assert cart_service.get_cart().items[0].quantity == expected

    @pytest.mark.parametrize("quantity", ["abc", None, float("nan"), {"value": 2}])
    def test_non_numeric_quantity_is_rejected(self, cart_service, products, quantity):
        # Arrange
        item = cart_service.add_or_increment(products["headphones"].id, 3)

        # Act / Assert
        with pytest.raises(ValidationError):
            cart_service.set_quantity(item.id, quantity)

        assert cart_service.get_cart().items[0].quantity == 3

    def test_unknown_line_item_is_not_found(self, cart_service, products):
        with pytest.raises(CartItemNotFoundError):
            cart_service.set_quantity("404", 2)

    def test_does_not_create_line_item(self, cart_service, products):
        # Act
        with pytest.raises(CartItemNotFoundError):
            cart_service.set_quantity("1", 2)

        # Assert
        assert cart_service.get_cart().items == []

    def test_vanished_product_leaves_quantity_untouched(self, cart_service, redis_wrapper, products):
        # Arrange
        item = cart_service.add_or_increment(products["backpack"].id, 2)
        redis_wrapper.client.hdel("products", products["backpack"].id)

        # Act
        with pytest.raises(ProductNotFoundError):
            cart_service.set_quantity(item.id, 7)

        # Assert
        assert redis_wrapper.client.hget("cart:default:quantity", item.id) == "2"


class TestRemove:
    """Removing line items"""

    def test_remove_deletes_line_item(self, cart_service, products):
        # Arrange
        item = cart_service.add_or_increment(products["headphones"].id, 2)

        # Act
        cart_service.remove(item.id)

        # Assert
        assert cart_service.get_cart().items == []

    def test_repeated_remove_is_not_found(self, cart_service, products):
        # Arrange
        item = cart_service.add_or_increment(products["headphones"].id, 2)
        cart_service.remove(item.id)

        # Act / Assert
        with pytest.raises(CartItemNotFoundError):
            cart_service.remove(item.id)

    def test_re_adding_after_remove_creates_new_line_item(self, cart_service, products):
        # Arrange
        first = cart_service.add_or_increment(products["headphones"].id, 5)
        cart_service.remove(first.id)

        # Act
        second = cart_service.add_or_increment(products["headphones"].id, 1)

        # Assert
        assert second.id != first.id
        assert second.quantity == 1


class TestGetCart:
    """Cart reads join products and recompute the total"""

    def test_empty_cart(self, cart_service):
        cart = cart_service.get_cart()
        assert cart.items == []
        assert cart.total == 0

    def test_total_is_rounded_sum(self, cart_service, products):
        # Arrange
        cart_service.add_or_increment(products["headphones"].id, 2)
        cart_service.add_or_increment(products["smartphone"].id, 1)

        # Act
        cart = cart_service.get_cart()

        # Assert
        assert cart.total == 899.97

    def test_items_are_returned_in_insertion_order(self, cart_service, products):
        # Arrange
        cart_service.add_or_increment(products["backpack"].id)
        cart_service.add_or_increment(products["headphones"].id)
        cart_service.add_or_increment(products["smartphone"].id)

        # Act
        names = [item.product.name for item in cart_service.get_cart().items]

        # Assert
        assert names == ["Backpack", "Wireless Headphones", "Smartphone"]

    def test_total_uses_current_product_price(self, cart_service, product_store, products):
        # Arrange
        cart_service.add_or_increment(products["backpack"].id, 2)
        draft = products["backpack"].model_dump(exclude={"id"})
        draft["price"] = 10.005
        product_store.update(products["backpack"].id, ProductDraft(**draft))

        # Act
        cart = cart_service.get_cart()

        # Assert
        assert cart.items[0].product.price == 10.005
        assert cart.total == round(10.005 * 2, 2)

    def test_line_item_with_missing_product_is_skipped(self, cart_service, redis_wrapper, products):
        # Arrange
        cart_service.add_or_increment(products["backpack"].id, 1)
        cart_service.add_or_increment(products["headphones"].id, 1)
        redis_wrapper.client.hdel("products", products["backpack"].id)

        # Act
        cart = cart_service.get_cart()

        # Assert
        assert [item.product_id for item in cart.items] == [products["headphones"].id]
        assert cart.total == 99.99


class TestCartScoping:
    """Every operation is scoped by cart id"""

    def test_carts_are_independent(self, cart_service, products):
        # Arrange
        cart_service.add_or_increment(products["headphones"].id, 2, cart_id="alice")
        cart_service.add_or_increment(products["headphones"].id, 5, cart_id="bob")

        # Act
        alice = cart_service.get_cart("alice")
        bob = cart_service.get_cart("bob")

        # Assert
        assert alice.items[0].quantity == 2
        assert bob.items[0].quantity == 5
        assert cart_service.get_cart().items == []

    def test_line_item_of_other_cart_is_not_found(self, cart_service, products):
        # Arrange
        item = cart_service.add_or_increment(products["headphones"].id, 2, cart_id="alice")

        # Act / Assert
        with pytest.raises(CartItemNotFoundError):
            cart_service.remove(item.id, cart_id="bob")

    def test_blank_cart_id_uses_default_cart(self, cart_service, products):
        cart_service.add_or_increment(products["headphones"].id, 1, cart_id="  ")
        assert len(cart_service.get_cart().items) == 1

    @pytest.mark.parametrize("cart_id, expected", [(None, "default"), ("", "default"), ("  bob ", "bob")])
    def test_resolve_cart_id(self, cart_service, cart_id, expected):
        assert cart_service.resolve_cart_id(cart_id) == expected

    def test_clear_empties_only_that_cart(self, cart_service, products):
        # Arrange
        cart_service.add_or_increment(products["headphones"].id, 2, cart_id="alice")
        cart_service.add_or_increment(products["backpack"].id, 1, cart_id="bob")

        # Act
        cleared = cart_service.clear("alice")

        # Assert
        assert cleared is True
        assert cart_service.get_cart("alice").items == []
        assert len(cart_service.get_cart("bob").items) == 1


class TestConcurrentIncrements:
    """Concurrent adds to one product never lose an increment"""

    @pytest.mark.parametrize("workers", [10, 20, 35])
    def test_parallel_adds_sum_to_clamped_count(self, redis_wrapper, product_store, products, workers):
        # Arrange
        product_id = products["headphones"].id

        def add_one(_):
            return CartService(redis_client=redis_wrapper, product_store=product_store).add_or_increment(product_id, 1)

        # Act
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(add_one, range(workers)))

        # Assert
        cart = CartService(redis_client=redis_wrapper, product_store=product_store).get_cart()
        assert len(cart.items) == 1
        assert cart.items[0].quantity == min(workers, 20)
        assert len({item.id for item in results}) == 1
        assert max(item.quantity for item in results) == min(workers, 20)
