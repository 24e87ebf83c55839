"""
Tests for cart state management, persistence and coupon application.
"""

import json

import pytest

from cart_engine.core.exceptions import StorageWriteError
from cart_engine.core.storage import InMemoryKeyValueStore
from cart_engine.models.cart import CartChangeReason, CartState, Product
from cart_engine.schemas.cart import CouponError
from cart_engine.services.cart_service import CartService, deserialize_items


@pytest.fixture
def events(cart):
    """Change events emitted by the cart."""
    received = []
    cart.subscribe(received.append)
    return received


class TestAddItem:
    """Test adding products to the cart."""

    def test_add_new_item(self, cart, make_product, fixed_time):
        """Test adding a product creates a line item."""
        assert cart.add_item(make_product("1", price=100)) is True

        state = cart.snapshot()
        assert len(state.items) == 1
        assert state.items[0].id == "1"
        assert state.items[0].quantity == 1
        assert state.items[0].added_at == fixed_time

    def test_add_existing_item_accumulates(self, cart, make_product):
        """Test adding the same product again increases quantity."""
        cart.add_item(make_product("1"), 2)
        cart.add_item(make_product("1"), 3)

        state = cart.snapshot()
        assert len(state.items) == 1
        assert state.items[0].quantity == 5

    def test_insertion_order_preserved(self, cart, make_product):
        """Test items keep the order they were first added in."""
        cart.add_item(make_product("b"))
        cart.add_item(make_product("a"))
        cart.add_item(make_product("b"))

        assert [item.id for item in cart.snapshot().items] == ["b", "a"]

    def test_add_zero_quantity_is_noop(self, cart, make_product, events, store):
        """Test quantities below 1 change nothing."""
        assert cart.add_item(make_product("1"), 0) is False
        assert cart.add_item(make_product("1"), -2) is False

        assert cart.snapshot().items == ()
        assert events == []
        assert store.get("cart") is None

    def test_numeric_product_id(self, cart):
        """Test numeric product ids are handled as strings."""
        cart.add_item(Product(id=7, name="Vase", price=350))
        assert cart.snapshot().find_item("7") is not None

    def test_add_emits_event(self, cart, make_product, events):
        """Test adding emits an item_added event with the item."""
        cart.add_item(make_product("1", name="Mug"))

        assert len(events) == 1
        assert events[0].reason == CartChangeReason.ITEM_ADDED
        assert events[0].item.name == "Mug"
        assert events[0].snapshot == cart.snapshot()


class TestRemoveItem:
    """Test removing items."""

    def test_remove_existing(self, cart, make_product):
        """Test removing an item in the cart."""
        cart.add_item(make_product("1"))
        cart.add_item(make_product("2"))

        assert cart.remove_item("1") is True
        assert [item.id for item in cart.snapshot().items] == ["2"]

    def test_remove_missing(self, cart):
        """Test removing an absent item returns False."""
        assert cart.remove_item("404") is False

    def test_remove_twice_is_idempotent(self, cart, make_product, events, store):
        """Test the second removal changes nothing and emits nothing."""
        cart.add_item(make_product("1"))
        cart.add_item(make_product("2"))
        cart.remove_item("1")

        state_after_first = cart.snapshot()
        stored_after_first = store.get("cart")
        event_count = len(events)

        assert cart.remove_item("1") is False
        assert cart.snapshot() == state_after_first
        assert store.get("cart") == stored_after_first
        assert len(events) == event_count


class TestSetQuantity:
    """Test quantity updates."""

    def test_set_quantity(self, cart, make_product, events):
        """Test setting a new quantity."""
        cart.add_item(make_product("1"))

        assert cart.set_quantity("1", 4) is True
        assert cart.snapshot().items[0].quantity == 4
        assert events[-1].reason == CartChangeReason.QUANTITY_UPDATED

    def test_set_zero_removes(self, cart, make_product, events):
        """Test quantity 0 removes the item."""
        cart.add_item(make_product("1"))

        assert cart.set_quantity("1", 0) is True
        assert cart.snapshot().items == ()
        assert events[-1].reason == CartChangeReason.ITEM_REMOVED

    def test_set_negative_removes(self, cart, make_product):
        """Test negative quantity removes the item."""
        cart.add_item(make_product("1"))

        assert cart.set_quantity("1", -3) is True
        assert cart.snapshot().find_item("1") is None

    def test_set_missing_item(self, cart, events):
        """Test updating an absent item returns False without events."""
        assert cart.set_quantity("404", 2) is False
        assert events == []


class TestTotals:
    """Test item count and subtotal."""

    def test_empty_cart(self, cart):
        """Test empty cart totals."""
        assert cart.total_item_count() == 0
        assert cart.subtotal() == 0

    def test_totals(self, cart, make_product):
        """Test count sums quantities and subtotal sums line totals."""
        cart.add_item(make_product("1", price=100), 2)
        cart.add_item(make_product("2", price=250), 1)

        assert cart.total_item_count() == 3
        assert cart.subtotal() == 450

    def test_pricing(self, cart, make_product):
        """Test pricing reflects the current cart."""
        cart.add_item(make_product("1", price=250), 2)
        pricing = cart.pricing()

        assert pricing.subtotal == 500
        assert pricing.shipping_cost == 99
        assert pricing.total == 599


class TestApplyCoupon:
    """Test coupon validation and application."""

    def test_apply_save10_at_minimum(self, cart, make_product):
        """Test SAVE10 on a 500 subtotal succeeds with a 50 discount."""
        cart.add_item(make_product("1", price=500))

        result = cart.apply_coupon("save10")

        assert result.success is True
        assert result.discount == 50
        assert result.message == "Coupon applied! 10% off on orders above ₹500"
        assert cart.snapshot().applied_coupon_code == "SAVE10"

    def test_apply_save10_below_minimum(self, cart, make_product):
        """Test SAVE10 on a 499 subtotal fails."""
        cart.add_item(make_product("1", price=499))

        result = cart.apply_coupon("save10")

        assert result.success is False
        assert result.error == CouponError.MINIMUM_ORDER_NOT_MET
        assert result.message == "Minimum order of ₹500 required for this coupon"
        assert result.discount is None
        assert cart.snapshot().applied_coupon_code is None

    def test_apply_invalid_code(self, cart, make_product):
        """Test unknown codes fail."""
        cart.add_item(make_product("1", price=1000))

        result = cart.apply_coupon("BOGUS")

        assert result.success is False
        assert result.error == CouponError.INVALID_COUPON
        assert result.message == "Invalid coupon code"

    def test_invalid_code_checked_before_minimum(self, cart):
        """Test an unknown code on an empty cart reports the invalid code."""
        assert cart.apply_coupon("BOGUS").error == CouponError.INVALID_COUPON

    def test_apply_same_coupon_twice(self, cart, make_product, events):
        """Test re-applying the active coupon fails without events."""
        cart.add_item(make_product("1", price=600))
        cart.apply_coupon("SAVE10")
        event_count = len(events)

        result = cart.apply_coupon(" Save10 ")

        assert result.success is False
        assert result.error == CouponError.COUPON_ALREADY_APPLIED
        assert result.message == "Coupon already applied"
        assert len(events) == event_count

    def test_new_coupon_replaces_previous(self, cart, make_product):
        """Test only one coupon is active at a time."""
        cart.add_item(make_product("1", price=1000))
        cart.apply_coupon("SAVE10")

        result = cart.apply_coupon("WELCOME20")

        assert result.success is True
        assert result.discount == 200
        assert cart.snapshot().applied_coupon_code == "WELCOME20"
        assert cart.pricing().discount == 200

    def test_apply_free_shipping(self, cart, make_product):
        """Test FREESHIP reports the shipping rate as its discount."""
        cart.add_item(make_product("1", price=200))

        result = cart.apply_coupon("freeship")

        assert result.success is True
        assert result.discount == 99
        assert cart.pricing().shipping_cost == 0

    def test_apply_persists_coupon(self, cart, make_product, store):
        """Test the applied code is stored under the coupon key."""
        cart.add_item(make_product("1", price=300))
        cart.apply_coupon("flat50")
        assert store.get("appliedCoupon") == "FLAT50"


class TestLazyCouponRevalidation:
    """Test a coupon stays recorded when its minimum order stops being met."""

    def test_discount_zero_after_removal(self, cart, make_product):
        """Test removing items below the minimum keeps the code but zeroes the discount."""
        cart.add_item(make_product("1", price=400))
        cart.add_item(make_product("2", price=200))
        assert cart.apply_coupon("SAVE10").discount == 60

        cart.remove_item("2")

        assert cart.snapshot().applied_coupon_code == "SAVE10"
        assert cart.pricing().discount == 0

    def test_discount_returns_when_minimum_met_again(self, cart, make_product):
        """Test the discount comes back once the subtotal reaches the minimum again."""
        cart.add_item(make_product("1", price=400))
        cart.add_item(make_product("2", price=200))
        cart.apply_coupon("SAVE10")
        cart.remove_item("2")
        assert cart.pricing().discount == 0

        cart.add_item(make_product("3", price=100))

        assert cart.pricing().discount == 50


class TestRemoveCouponAndClear:
    """Test coupon removal and clearing the cart."""

    def test_remove_coupon(self, cart, make_product, store, events):
        """Test removing the coupon clears code and stored key."""
        cart.add_item(make_product("1", price=500))
        cart.apply_coupon("SAVE10")

        cart.remove_coupon()

        assert cart.snapshot().applied_coupon_code is None
        assert store.get("appliedCoupon") is None
        assert events[-1].reason == CartChangeReason.COUPON_REMOVED

    def test_remove_coupon_idempotent(self, cart):
        """Test removing when no coupon is applied is harmless."""
        cart.remove_coupon()
        cart.remove_coupon()
        assert cart.snapshot() == CartState()

    def test_clear(self, cart, make_product, store, events):
        """Test clear empties items and coupon in one step."""
        cart.add_item(make_product("1", price=500))
        cart.apply_coupon("SAVE10")
        event_count = len(events)

        cart.clear()

        assert cart.snapshot() == CartState()
        assert store.get("cart") is None
        assert store.get("appliedCoupon") is None
        assert len(events) == event_count + 1
        assert events[-1].reason == CartChangeReason.CLEARED


class TestPersistence:
    """Test durable persistence and rehydration."""

    def test_round_trip(self, store, catalog, config, make_product):
        """Test a reloaded cart equals the persisted one."""
        cart = CartService(store, catalog=catalog, config=config)
        cart.add_item(make_product("3", price=120.5), 2)
        cart.add_item(make_product("1", price=80))
        cart.add_item(make_product("2", price=600), 1)
        cart.apply_coupon("SAVE10")

        reloaded = CartService(store, catalog=catalog, config=config)

        assert reloaded.snapshot() == cart.snapshot()

    def test_stored_format(self, cart, make_product, store, fixed_time):
        """Test the cart key holds a JSON list of line item records."""
        cart.add_item(make_product("1", name="Mug", price=100), 2)

        records = json.loads(store.get("cart"))
        assert records == [{
            "id": "1",
            "name": "Mug",
            "price": 100.0,
            "image": "images/1.jpg",
            "category": "Ceramics",
            "quantity": 2,
            "addedAt": fixed_time.isoformat().replace("+00:00", "Z")
        }]

    def test_persisted_before_notification(self, cart, make_product, store):
        """Test listeners read the new state from the store."""
        seen = []
        cart.subscribe(lambda event: seen.append(deserialize_items(store.get("cart"))))

        cart.add_item(make_product("1"))

        assert seen == [cart.snapshot().items]

    def test_unknown_stored_coupon_ignored(self, catalog, config):
        """Test a stored code missing from the catalog is not restored."""
        store = InMemoryKeyValueStore()
        store.set("appliedCoupon", "EXPIRED99")

        cart = CartService(store, catalog=catalog, config=config)

        assert cart.snapshot().applied_coupon_code is None

    def test_corrupt_cart_data_starts_empty(self, catalog, config):
        """Test unreadable cart data yields an empty cart."""
        store = InMemoryKeyValueStore()
        store.set("cart", "{not json")

        assert CartService(store, catalog=catalog, config=config).snapshot().items == ()

    def test_invalid_records_skipped(self):
        """Test malformed records are dropped and duplicate ids merged."""
        raw = json.dumps([
            {"id": 1, "name": "Mug", "price": 10, "quantity": 1},
            {"id": "2", "name": "Bad", "price": 10, "quantity": 0},
            "junk",
            {"id": "1", "name": "Mug", "price": 10, "quantity": 2},
        ])

        items = deserialize_items(raw)

        assert len(items) == 1
        assert items[0].id == "1"
        assert items[0].quantity == 3

    def test_non_list_data(self):
        """Test stored data that is not a list yields no items."""
        assert deserialize_items(json.dumps({"id": "1"})) == ()


class TestStorageFailure:
    """Test fail-fast behaviour when the store rejects a write."""

    def test_failed_write_leaves_state_unchanged(self, catalog, config, make_product):
        """Test a write over quota raises and keeps the previous state."""
        store = InMemoryKeyValueStore(quota_bytes=400)
        cart = CartService(store, catalog=catalog, config=config)
        received = []
        cart.subscribe(received.append)

        cart.add_item(make_product("1"))
        before = cart.snapshot()

        with pytest.raises(StorageWriteError):
            cart.add_item(make_product("2", name="x" * 500))

        assert cart.snapshot() == before
        assert len(received) == 1


class TestStorageNotifications:
    """Test the storage events a cart produces."""

    def test_unobserved_writes_not_queued(self, cart, make_product, store):
        """Test repeated mutations with no other instance listening leave nothing queued."""
        for index in range(500):
            cart.add_item(make_product(str(index % 5)))

        assert cart.total_item_count() == 500
        assert store.bus.pending_count == 0

    def test_own_subscription_does_not_queue(self, cart, make_product, store):
        """Test a subscription under the writer's own source does not keep events."""
        store.bus.subscribe("cart", lambda event: None, source=store.source)

        cart.add_item(make_product("1"))
        cart.clear()

        assert store.bus.pending_count == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
