import json

import pytest

from storefront.constants import WISHLIST_STORAGE_KEY
from storefront.errors import NotFoundError
from storefront.services.cart import CartStore
from storefront.services.wishlist import (
    ADD_ITEM,
    CLEAR_WISHLIST,
    REMOVE_ITEM,
    WishlistItem,
    WishlistState,
    WishlistStore,
    wishlist_reducer,
)

TEE = WishlistItem(id="1", title="Black Tee", price="$30.00", image="/tee.jpg", category="T-Shirts")
CAP = WishlistItem(id="9", title="Cap", price="$1,200.50", category="Hats")


class TestWishlistReducer:
    def test_add_is_deduplicated_by_id(self):
        state = wishlist_reducer(WishlistState(), {"type": ADD_ITEM, "payload": TEE})
        again = wishlist_reducer(state, {"type": ADD_ITEM, "payload": TEE})

        assert again is state
        assert len(again.items) == 1

    def test_remove_and_clear(self):
        state = WishlistState([TEE, CAP])
        state = wishlist_reducer(state, {"type": REMOVE_ITEM, "payload": "1"})
        assert [i.id for i in state.items] == ["9"]

        state = wishlist_reducer(state, {"type": CLEAR_WISHLIST})
        assert state.items == []


class TestWishlistStore:
    def test_toggle_adds_then_removes(self, storage):
        wishlist = WishlistStore(storage)

        wishlist.toggle_wishlist(TEE)
        assert wishlist.is_in_wishlist("1")

        wishlist.toggle_wishlist(TEE)
        assert not wishlist.is_in_wishlist("1")

    def test_persisted_and_rehydrated(self, storage):
        WishlistStore(storage).add_item(TEE)

        assert json.loads(storage.get_item(WISHLIST_STORAGE_KEY))[0]["title"] == "Black Tee"
        assert WishlistStore(storage).is_in_wishlist("1")

    def test_corrupt_storage_is_ignored(self, storage):
        storage.set_item(WISHLIST_STORAGE_KEY, "[oops")
        assert WishlistStore(storage).state.items == []

    def test_move_to_cart_parses_display_price(self, storage):
        wishlist = WishlistStore(storage)
        cart = CartStore(storage)
        wishlist.add_item(CAP)

        state = wishlist.move_to_cart("9", cart)

        assert state.items[0].price == 1200.5
        assert state.items[0].category == "Hats"
        assert not wishlist.is_in_wishlist("9")

    def test_move_unknown_item_raises(self, storage):
        with pytest.raises(NotFoundError):
            WishlistStore(storage).move_to_cart("missing", CartStore(storage))
