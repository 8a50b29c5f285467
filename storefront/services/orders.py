from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from storefront.config import settings
from storefront.constants import COLLECTIONS, ORDER_STATUSES
from storefront.db.sqlite import (
    add_doc,
    get_doc,
    increment_field,
    query_docs,
    server_timestamp,
    update_doc,
)
from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.services.cache import TTLCache
from storefront.services.cart import CartState, CartStore
from storefront.services.marketing import MarketingService, marketing_service
from storefront.services.storage import LocalStorage
from storefront.utils.validators import sanitize_input, validate_checkout_info

logger = logging.getLogger(__name__)

STEP_INFO = 1
STEP_PAYMENT = 2
STEP_CONFIRMATION = 3

CHECKOUT_STORAGE_KEY = "checkout_state"


def calculate_totals(
    subtotal: float,
    discount: float = 0.0,
    free_shipping: bool = False,
) -> Dict[str, float]:
    d = settings.decimals
    discount = min(max(discount, 0.0), subtotal)
    taxable = subtotal - discount
    tax = round(taxable * settings.tax_rate, d)
    shipping = 0.0 if free_shipping or subtotal <= 0 else round(settings.shipping_fee, d)
    return {
        "subtotal": round(subtotal, d),
        "discount": round(discount, d),
        "tax": tax,
        "shipping": shipping,
        "total": round(taxable + tax + shipping, d),
    }


class CheckoutFlow:
    """
    info -> payment -> confirmation, kept in the client's storage so a
    reload resumes where the shopper left off.
    """

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        self.step = STEP_INFO
        self.info: Dict[str, str] = {}
        self.coupon_code: Optional[str] = None
        self.order_id: Optional[str] = None
        state = storage.get_json(CHECKOUT_STORAGE_KEY)
        if state:
            self.step = int(state.get("step", STEP_INFO))
            self.info = state.get("info") or {}
            self.coupon_code = state.get("coupon_code")
            self.order_id = state.get("order_id")

    def _save(self) -> None:
        self.storage.set_json(CHECKOUT_STORAGE_KEY, self.to_dict())

    def submit_info(self, info: Dict[str, str], coupon_code: Optional[str] = None) -> int:
        cleaned = {k: sanitize_input(v) for k, v in info.items() if isinstance(v, str)}
        errors = validate_checkout_info(cleaned)
        if errors:
            raise ValidationError("; ".join(errors.values()))
        self.info = cleaned
        self.coupon_code = coupon_code or None
        self.step = STEP_PAYMENT
        self._save()
        return self.step

    def back(self) -> Optional[int]:
        """Previous step, or None when the shopper should go back to the cart."""
        if self.step <= STEP_INFO:
            return None
        self.step -= 1
        self._save()
        return self.step

    def confirm(self, order_id: str) -> None:
        self.step = STEP_CONFIRMATION
        self.order_id = order_id
        self._save()

    def reset(self) -> None:
        self.storage.remove_item(CHECKOUT_STORAGE_KEY)
        self.step, self.info, self.coupon_code, self.order_id = STEP_INFO, {}, None, None

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "info": self.info, "coupon_code": self.coupon_code, "order_id": self.order_id}


def _order_items(cart: CartState) -> List[Dict[str, Any]]:
    return [
        {
            "product_id": i.id,
            "title": i.title,
            "price": i.price,
            "quantity": i.quantity,
            "size": i.size,
            "image": i.image,
            "category": i.category,
        }
        for i in cart.items
    ]


class OrderService:
    def __init__(self, marketing: Optional[MarketingService] = None, cache: Optional[TTLCache] = None):
        self.marketing = marketing or marketing_service
        self.cache: TTLCache[List[Dict[str, Any]]] = cache or TTLCache()

    def quote(self, cart: CartState, coupon_code: Optional[str] = None) -> Tuple[Dict[str, float], Optional[Dict[str, Any]]]:
        coupon = None
        if coupon_code:
            coupon = self.marketing.validate_coupon(coupon_code, cart.total, cart.items)
        totals = calculate_totals(
            cart.total,
            discount=coupon["discount"] if coupon else 0.0,
            free_shipping=bool(coupon and coupon["free_shipping"]),
        )
        return totals, coupon

    def place_order(
        self,
        cart: CartStore,
        flow: CheckoutFlow,
        user: Optional[Dict[str, Any]] = None,
        payment_method: str = "card",
    ) -> Dict[str, Any]:
        if not cart.state.items:
            raise ValidationError("Your cart is empty")
        if flow.step != STEP_PAYMENT:
            raise ValidationError("Shipping information is required before payment")

        totals, coupon = self.quote(cart.state, flow.coupon_code)
        info = flow.info
        now = server_timestamp()
        order = {
            "order_number": uuid.uuid4().hex[:8].upper(),
            "user_id": (user or {}).get("id"),
            "customer_name": f"{info['first_name']} {info['last_name']}".strip(),
            "customer_email": info["email"].lower(),
            "items": _order_items(cart.state),
            **totals,
            "currency": settings.currency,
            "coupon_code": coupon["code"] if coupon else None,
            "status": "pending",
            "payment_method": payment_method,
            "payment_status": "pending",
            "shipping_address": {
                "full_name": f"{info['first_name']} {info['last_name']}".strip(),
                "address_line1": info["address"],
                "city": info["city"],
                "postal_code": info["zip_code"],
                "country": info["country"],
            },
            "notes": [],
            "tracking_number": None,
            "created_at": now,
            "updated_at": now,
        }
        order_id = add_doc(COLLECTIONS["ORDERS"], order)
        order["id"] = order_id
        logger.info("Order %s placed: %d items, total %.2f", order_id, len(order["items"]), order["total"])

        if coupon:
            increment_field(COLLECTIONS["COUPONS"], coupon["coupon_id"], "used_count")
            self.marketing.clear_coupons_cache()

        cart.clear_cart()
        flow.confirm(order_id)
        self.clear_cache()
        return order

    def get_all_orders(self) -> List[Dict[str, Any]]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["ORDERS"], order_by="created_at", descending=True)
        except Exception:
            logger.exception("Error fetching orders")
            return []
        if not docs:
            return []
        return self.cache.set(docs)

    def get_order_by_id(self, order_id: str) -> Optional[Dict[str, Any]]:
        return get_doc(COLLECTIONS["ORDERS"], order_id)

    def get_orders_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        return query_docs(
            COLLECTIONS["ORDERS"],
            where=[("user_id", "==", user_id)],
            order_by="created_at",
            descending=True,
        )

    def get_orders_by_status(self, status: str) -> List[Dict[str, Any]]:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {status!r}")
        return query_docs(
            COLLECTIONS["ORDERS"],
            where=[("status", "==", status)],
            order_by="created_at",
            descending=True,
        )

    def update_order_status(self, order_id: str, status: str, tracking_number: Optional[str] = None) -> None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {status!r}")
        data: Dict[str, Any] = {"status": status, "updated_at": server_timestamp()}
        if tracking_number:
            data["tracking_number"] = tracking_number
        if status == "refunded":
            data["payment_status"] = "refunded"
        update_doc(COLLECTIONS["ORDERS"], order_id, data)
        self.clear_cache()

    def update_tracking_number(self, order_id: str, tracking_number: str) -> None:
        tracking_number = sanitize_input(tracking_number)
        if not tracking_number:
            raise ValidationError("Tracking number is required")
        try:
            update_doc(
                COLLECTIONS["ORDERS"],
                order_id,
                {"tracking_number": tracking_number, "updated_at": server_timestamp()},
            )
        except NotFoundError:
            raise NotFoundError(f"Order with ID {order_id} not found")
        self.clear_cache()

    def process_refund(self, order_id: str, amount: Optional[float] = None) -> Dict[str, Any]:
        """Marks the order refunded. Without `amount` the whole total is refunded."""
        order = self.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order with ID {order_id} not found")
        if order.get("payment_status") == "refunded":
            raise ConflictError(f"Order {order_id} has already been refunded")
        total = float(order.get("total") or 0)
        refund = total if amount is None else round(float(amount), settings.decimals)
        if refund <= 0 or refund > total:
            raise ValidationError(f"Refund amount must be between 0 and {total:.{settings.decimals}f}")

        now = server_timestamp()
        data = {
            "status": "refunded",
            "payment_status": "refunded",
            "refund_amount": refund,
            "refunded_at": now,
            "updated_at": now,
        }
        update_doc(COLLECTIONS["ORDERS"], order_id, data)
        logger.info("Refunded %.2f on order %s", refund, order_id)
        self.clear_cache()
        return {**order, **data}

    def add_order_note(self, order_id: str, text: str, created_by: str) -> Dict[str, Any]:
        order = self.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order with ID {order_id} not found")
        text = sanitize_input(text)
        if not text:
            raise ValidationError("Note text is required")
        note = {"id": uuid.uuid4().hex[:12], "text": text, "created_at": server_timestamp(), "created_by": created_by}
        update_doc(COLLECTIONS["ORDERS"], order_id, {"notes": (order.get("notes") or []) + [note]})
        self.clear_cache()
        return note

    def clear_cache(self) -> None:
        self.cache.clear()


order_service = OrderService()
