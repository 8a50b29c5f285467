from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from storefront.constants import WISHLIST_STORAGE_KEY
from storefront.errors import NotFoundError
from storefront.services.cart import CartItem, CartState, CartStore
from storefront.services.storage import LocalStorage
from storefront.utils.formatters import parse_price

logger = logging.getLogger(__name__)

ADD_ITEM = "ADD_ITEM"
REMOVE_ITEM = "REMOVE_ITEM"
CLEAR_WISHLIST = "CLEAR_WISHLIST"
LOAD_WISHLIST = "LOAD_WISHLIST"


@dataclass(frozen=True)
class WishlistItem:
    id: str
    title: str
    price: str  # display string, e.g. "$30.00"
    image: str = ""
    category: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WishlistItem":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            price=str(data["price"]),
            image=data.get("image") or "",
            category=data.get("category") or "",
        )


@dataclass(frozen=True)
class WishlistState:
    items: List[WishlistItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"items": [asdict(i) for i in self.items], "count": len(self.items)}


def wishlist_reducer(state: WishlistState, action: Dict[str, Any]) -> WishlistState:
    kind = action.get("type")
    payload = action.get("payload")

    if kind == ADD_ITEM:
        if any(i.id == payload.id for i in state.items):
            return state
        return WishlistState(state.items + [payload])

    if kind == REMOVE_ITEM:
        return WishlistState([i for i in state.items if i.id != payload])

    if kind == CLEAR_WISHLIST:
        return WishlistState()

    if kind == LOAD_WISHLIST:
        return WishlistState(list(payload))

    return state


class WishlistStore:
    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.state = WishlistState()
        stored = storage.get_json_list(WISHLIST_STORAGE_KEY)
        if stored is not None:
            try:
                items = [WishlistItem.from_dict(d) for d in stored]
            except (KeyError, TypeError) as e:
                logger.error("Discarding malformed wishlist for client %s: %s", storage.client_id, e)
            else:
                self.state = wishlist_reducer(self.state, {"type": LOAD_WISHLIST, "payload": items})

    def dispatch(self, action: Dict[str, Any]) -> WishlistState:
        self.state = wishlist_reducer(self.state, action)
        self.storage.set_json(WISHLIST_STORAGE_KEY, [asdict(i) for i in self.state.items])
        return self.state

    def add_item(self, item: WishlistItem) -> WishlistState:
        return self.dispatch({"type": ADD_ITEM, "payload": item})

    def remove_item(self, item_id: str) -> WishlistState:
        return self.dispatch({"type": REMOVE_ITEM, "payload": item_id})

    def clear_wishlist(self) -> WishlistState:
        return self.dispatch({"type": CLEAR_WISHLIST})

    def is_in_wishlist(self, item_id: str) -> bool:
        return any(i.id == item_id for i in self.state.items)

    def get(self, item_id: str) -> Optional[WishlistItem]:
        return next((i for i in self.state.items if i.id == item_id), None)

    def toggle_wishlist(self, item: WishlistItem) -> WishlistState:
        if self.is_in_wishlist(item.id):
            return self.remove_item(item.id)
        return self.add_item(item)

    def move_to_cart(self, item_id: str, cart: CartStore) -> CartState:
        item = self.get(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found in wishlist")
        state = cart.add_item(
            CartItem(
                id=item.id,
                title=item.title,
                price=parse_price(item.price),
                image=item.image,
                category=item.category or None,
            )
        )
        self.remove_item(item_id)
        return state
