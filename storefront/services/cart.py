from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional

from storefront.config import settings
from storefront.constants import CART_STORAGE_KEY
from storefront.services.storage import LocalStorage
from storefront.utils.validators import require_positive_number

logger = logging.getLogger(__name__)

ADD_ITEM = "ADD_ITEM"
REMOVE_ITEM = "REMOVE_ITEM"
UPDATE_QUANTITY = "UPDATE_QUANTITY"
CLEAR_CART = "CLEAR_CART"
LOAD_CART = "LOAD_CART"


@dataclass(frozen=True)
class CartItem:
    id: str
    title: str
    price: float
    image: str = ""
    category: Optional[str] = None
    quantity: int = 1
    size: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            price=float(data["price"]),
            image=data.get("image") or "",
            category=data.get("category"),
            quantity=int(data["quantity"]) if data.get("quantity") is not None else 1,
            size=data.get("size"),
        )

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, settings.decimals)


@dataclass(frozen=True)
class CartState:
    items: List[CartItem] = field(default_factory=list)

    @property
    def total(self) -> float:
        return round(sum(i.line_total for i in self.items), settings.decimals)

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def find(self, item_id: str) -> Optional[CartItem]:
        return next((i for i in self.items if i.id == item_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [asdict(i) for i in self.items],
            "total": self.total,
            "item_count": self.item_count,
        }


def cart_reducer(state: CartState, action: Dict[str, Any]) -> CartState:
    kind = action.get("type")
    payload = action.get("payload")

    if kind == ADD_ITEM:
        item: CartItem = payload
        existing = state.find(item.id)
        if existing:
            merged = replace(existing, quantity=existing.quantity + item.quantity)
            return CartState([merged if i.id == item.id else i for i in state.items])
        return CartState(state.items + [item])

    if kind == REMOVE_ITEM:
        if state.find(payload) is None:
            return state
        return CartState([i for i in state.items if i.id != payload])

    if kind == UPDATE_QUANTITY:
        item_id, quantity = payload["id"], int(payload["quantity"])
        if state.find(item_id) is None:
            return state
        if quantity <= 0:
            return CartState([i for i in state.items if i.id != item_id])
        return CartState([replace(i, quantity=quantity) if i.id == item_id else i for i in state.items])

    if kind == CLEAR_CART:
        return CartState()

    if kind == LOAD_CART:
        loaded: List[CartItem] = []
        for item in payload:
            if item.quantity <= 0:
                continue
            pos = next((n for n, i in enumerate(loaded) if i.id == item.id), None)
            if pos is None:
                loaded.append(item)
            else:
                loaded[pos] = replace(loaded[pos], quantity=loaded[pos].quantity + item.quantity)
        return CartState(loaded)

    return state


class CartStore:
    """Holds one client's cart state and writes it back to storage after every dispatch."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.state = CartState()
        self._rehydrate()

    def _rehydrate(self) -> None:
        stored = self.storage.get_json_list(CART_STORAGE_KEY)
        if stored is None:
            return
        try:
            items = [CartItem.from_dict(d) for d in stored]
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Discarding malformed cart for client %s: %s", self.storage.client_id, e)
            return
        self.state = cart_reducer(self.state, {"type": LOAD_CART, "payload": items})

    def dispatch(self, action: Dict[str, Any]) -> CartState:
        self.state = cart_reducer(self.state, action)
        self.storage.set_json(CART_STORAGE_KEY, [asdict(i) for i in self.state.items])
        return self.state

    def add_item(self, item: CartItem) -> CartState:
        require_positive_number(item.quantity, "quantity")
        return self.dispatch({"type": ADD_ITEM, "payload": item})

    def remove_item(self, item_id: str) -> CartState:
        return self.dispatch({"type": REMOVE_ITEM, "payload": item_id})

    def update_quantity(self, item_id: str, quantity: int) -> CartState:
        return self.dispatch({"type": UPDATE_QUANTITY, "payload": {"id": item_id, "quantity": quantity}})

    def clear_cart(self) -> CartState:
        return self.dispatch({"type": CLEAR_CART})
