"""
Unit tests for the cart reducer and the storage-backed cart store.
"""
import json

import pytest

from storefront.constants import CART_STORAGE_KEY
from storefront.services.cart import (
    ADD_ITEM,
    CLEAR_CART,
    LOAD_CART,
    REMOVE_ITEM,
    UPDATE_QUANTITY,
    CartItem,
    CartState,
    CartStore,
    cart_reducer,
)
from storefront.services.storage import LocalStorage

TEE = CartItem(id="1", title="Black Tee", price=30.0, category="T-Shirts")
HOODIE = CartItem(id="7", title="Hoodie", price=55.5, quantity=2)


class TestCartReducer:
    def test_add_new_item(self):
        state = cart_reducer(CartState(), {"type": ADD_ITEM, "payload": TEE})

        assert [i.id for i in state.items] == ["1"]
        assert state.total == 30.0
        assert state.item_count == 1

    def test_add_existing_id_accumulates_quantity(self):
        """Items are keyed by id: a second add bumps quantity instead of adding a line."""
        state = cart_reducer(CartState(), {"type": ADD_ITEM, "payload": TEE})
        state = cart_reducer(state, {"type": ADD_ITEM, "payload": CartItem(id="1", title="Black Tee", price=30.0, quantity=3)})

        assert len(state.items) == 1
        assert state.items[0].quantity == 4
        assert state.total == 120.0

    def test_reducer_does_not_mutate_input(self):
        before = CartState([TEE])
        after = cart_reducer(before, {"type": ADD_ITEM, "payload": TEE})

        assert before.items[0].quantity == 1
        assert after.items[0].quantity == 2
        assert after is not before

    def test_remove_item(self):
        state = CartState([TEE, HOODIE])
        state = cart_reducer(state, {"type": REMOVE_ITEM, "payload": "1"})

        assert [i.id for i in state.items] == ["7"]
        assert state.total == 111.0

    def test_remove_unknown_id_is_noop(self):
        state = CartState([TEE])
        assert cart_reducer(state, {"type": REMOVE_ITEM, "payload": "nope"}) is state

    def test_update_quantity(self):
        state = cart_reducer(CartState([TEE]), {"type": UPDATE_QUANTITY, "payload": {"id": "1", "quantity": 5}})
        assert state.items[0].quantity == 5
        assert state.total == 150.0

    def test_update_quantity_to_zero_removes_line(self):
        state = cart_reducer(CartState([TEE, HOODIE]), {"type": UPDATE_QUANTITY, "payload": {"id": "1", "quantity": 0}})
        assert [i.id for i in state.items] == ["7"]

    def test_clear_and_load(self):
        state = cart_reducer(CartState([TEE]), {"type": CLEAR_CART})
        assert state.items == []
        assert state.total == 0.0

        state = cart_reducer(state, {"type": LOAD_CART, "payload": [HOODIE]})
        assert state.item_count == 2

    def test_load_merges_duplicate_ids_and_drops_empty_lines(self):
        payload = [
            TEE,
            HOODIE,
            CartItem(id="1", title="Black Tee", price=30.0, quantity=2),
            CartItem(id="9", title="Cap", price=12.0, quantity=0),
            CartItem(id="8", title="Socks", price=5.0, quantity=-3),
        ]

        state = cart_reducer(CartState(), {"type": LOAD_CART, "payload": payload})

        assert [(i.id, i.quantity) for i in state.items] == [("1", 3), ("7", 2)]
        assert state.total == 201.0

    def test_unknown_action_returns_same_state(self):
        state = CartState([TEE])
        assert cart_reducer(state, {"type": "SOMETHING_ELSE"}) is state


class TestCartStorePersistence:
    def test_every_change_is_persisted(self, storage: LocalStorage):
        cart = CartStore(storage)
        cart.add_item(TEE)

        stored = json.loads(storage.get_item(CART_STORAGE_KEY))
        assert stored[0]["id"] == "1"
        assert stored[0]["quantity"] == 1

        cart.update_quantity("1", 3)
        assert json.loads(storage.get_item(CART_STORAGE_KEY))[0]["quantity"] == 3

        cart.clear_cart()
        assert json.loads(storage.get_item(CART_STORAGE_KEY)) == []

    def test_rehydrates_on_load(self, storage: LocalStorage):
        CartStore(storage).add_item(HOODIE)

        reloaded = CartStore(storage)

        assert reloaded.state.items == [HOODIE]
        assert reloaded.state.total == 111.0

    def test_corrupt_storage_starts_empty(self, storage: LocalStorage):
        storage.set_item(CART_STORAGE_KEY, "{not json")

        cart = CartStore(storage)

        assert cart.state.items == []

    def test_malformed_items_start_empty(self, storage: LocalStorage):
        storage.set_item(CART_STORAGE_KEY, json.dumps([{"title": "no id"}]))
        assert CartStore(storage).state.items == []

    def test_carts_are_scoped_per_client(self):
        CartStore(LocalStorage("a")).add_item(TEE)
        assert CartStore(LocalStorage("b")).state.items == []

    def test_tampered_quantities_are_cleaned_on_load(self, storage: LocalStorage):
        storage.set_item(
            CART_STORAGE_KEY,
            json.dumps([
                {"id": "1", "title": "Black Tee", "price": 30.0, "quantity": 0},
                {"id": "7", "title": "Hoodie", "price": 55.5, "quantity": -2},
                {"id": "7", "title": "Hoodie", "price": 55.5, "quantity": 1},
                {"id": "7", "title": "Hoodie", "price": 55.5},
            ]),
        )

        cart = CartStore(storage)

        assert [(i.id, i.quantity) for i in cart.state.items] == [("7", 2)]
        assert cart.state.total == 111.0


class TestCartItem:
    def test_missing_quantity_defaults_to_one(self):
        assert CartItem.from_dict({"id": 1, "title": "Tee", "price": "30"}).quantity == 1

    def test_zero_quantity_is_kept_as_zero(self):
        assert CartItem.from_dict({"id": "1", "title": "Tee", "price": 30, "quantity": 0}).quantity == 0

    def test_line_total(self):
        assert HOODIE.line_total == 111.0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_add_item_needs_positive_quantity(self, storage: LocalStorage, quantity):
        cart = CartStore(storage)
        with pytest.raises(ValueError, match="quantity must be > 0"):
            cart.add_item(CartItem(id="1", title="Tee", price=30.0, quantity=quantity))
        assert cart.state.items == []
