"""
Marketing data: coupons, email campaigns and banners.

Each list read is cached for the configured TTL (5 minutes by default) and the
cache for a collection is cleared after any write to it. List reads swallow
backend failures and return an empty list; writes propagate.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from storefront.config import settings
from storefront.constants import (
    BANNER_POSITIONS,
    CAMPAIGN_AUDIENCES,
    CAMPAIGN_STATUSES,
    COLLECTIONS,
    COUPON_FIXED,
    COUPON_FREE_SHIPPING,
    COUPON_PERCENTAGE,
    COUPON_TYPES,
)
from storefront.db.sqlite import (
    add_doc,
    delete_doc,
    get_doc,
    query_docs,
    server_timestamp,
    update_doc,
)
from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.services.cache import TTLCache
from storefront.utils.dates import parse_timestamp, utcnow, within_window

logger = logging.getLogger(__name__)

INACTIVE_AFTER_DAYS = 90

_templates = SandboxedEnvironment(autoescape=True)


def _to_coupon(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": doc["id"],
        "code": doc.get("code", ""),
        "type": doc.get("type"),
        "value": float(doc.get("value") or 0),
        "min_purchase": doc.get("min_purchase"),
        "max_uses": doc.get("max_uses"),
        "used_count": doc.get("used_count") or 0,
        "valid_from": doc.get("valid_from"),
        "valid_to": doc.get("valid_to"),
        "is_active": bool(doc.get("is_active", False)),
        "products": doc.get("products"),
        "categories": doc.get("categories"),
        "created_at": doc.get("created_at"),
    }


def _to_campaign(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": doc["id"],
        "name": doc.get("name", ""),
        "subject": doc.get("subject", ""),
        "content": doc.get("content", ""),
        "audience": doc.get("audience", "all"),
        "custom_audience": doc.get("custom_audience"),
        "scheduled_date": doc.get("scheduled_date"),
        "sent_date": doc.get("sent_date"),
        "status": doc.get("status", "draft"),
        "open_rate": doc.get("open_rate"),
        "click_rate": doc.get("click_rate"),
        "created_at": doc.get("created_at"),
    }


def _to_banner(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": doc["id"],
        "title": doc.get("title", ""),
        "image": doc.get("image", ""),
        "link": doc.get("link", ""),
        "position": doc.get("position", "custom"),
        "start_date": doc.get("start_date"),
        "end_date": doc.get("end_date"),
        "is_active": bool(doc.get("is_active", False)),
        "created_at": doc.get("created_at"),
    }


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _check_choice(value: Any, choices: Iterable[str], name: str) -> None:
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {name}: {value!r}")


def _check_dates(data: Dict[str, Any], *keys: str) -> None:
    for key in keys:
        try:
            parse_timestamp(data.get(key))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid date for {key}: {data.get(key)!r}")


def _check_coupon(data: Dict[str, Any], stored: Optional[Dict[str, Any]] = None) -> None:
    """Checks a new coupon, or an update when `stored` holds the saved coupon."""
    partial = stored is not None
    if not partial or "code" in data:
        if not normalize_code(data.get("code")):
            raise ValidationError("Coupon code is required")
    if not partial or "type" in data:
        _check_choice(data.get("type"), COUPON_TYPES, "coupon type")
        if data.get("type") is None:
            raise ValidationError("Coupon type is required")
    _check_dates(data, "valid_from", "valid_to")
    if partial and "value" not in data and "type" not in data:
        return
    coupon_type = data.get("type") or (stored or {}).get("type")
    value = data.get("value", (stored or {}).get("value"))
    if value is not None:
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid coupon value: {value!r}")
        if value < 0:
            raise ValidationError("Coupon value must be >= 0")
        if coupon_type == COUPON_PERCENTAGE and value > 100:
            raise ValidationError("Percentage coupons cannot exceed 100")


def _check_template(*sources: str) -> None:
    for src in sources:
        try:
            _templates.parse(src or "")
        except TemplateError as e:
            raise ValidationError(f"Invalid template: {e}")


class MarketingService:
    def __init__(self, ttl_seconds: Optional[float] = None):
        self.coupons_cache: TTLCache[List[Dict[str, Any]]] = TTLCache(ttl_seconds)
        self.campaigns_cache: TTLCache[List[Dict[str, Any]]] = TTLCache(ttl_seconds)
        self.banners_cache: TTLCache[List[Dict[str, Any]]] = TTLCache(ttl_seconds)

    # ---------------- coupons ----------------

    def get_all_coupons(self) -> List[Dict[str, Any]]:
        cached = self.coupons_cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["COUPONS"], order_by="created_at", descending=True)
        except Exception:
            logger.exception("Error fetching coupons")
            return []
        if not docs:
            return []
        return self.coupons_cache.set([_to_coupon(d) for d in docs])

    def get_coupon_by_id(self, coupon_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = get_doc(COLLECTIONS["COUPONS"], coupon_id)
        except Exception:
            logger.exception("Error fetching coupon with ID %s", coupon_id)
            return None
        return _to_coupon(doc) if doc else None

    def find_coupon_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        docs = query_docs(COLLECTIONS["COUPONS"], where=[("code", "==", normalize_code(code))], limit=1)
        return _to_coupon(docs[0]) if docs else None

    def create_coupon(self, data: Dict[str, Any]) -> str:
        _check_coupon(data)
        code = normalize_code(data["code"])
        if self.find_coupon_by_code(code):
            raise ConflictError("Coupon code already exists")

        payload = {k: v for k, v in data.items() if k not in ("id", "used_count", "created_at")}
        payload.update(code=code, used_count=0, created_at=server_timestamp())
        payload.setdefault("is_active", True)

        coupon_id = add_doc(COLLECTIONS["COUPONS"], payload)
        logger.info("Created coupon %s (%s)", coupon_id, code)
        self.clear_coupons_cache()
        return coupon_id

    def update_coupon(self, coupon_id: str, data: Dict[str, Any]) -> None:
        stored = get_doc(COLLECTIONS["COUPONS"], coupon_id)
        if stored is None:
            raise NotFoundError(f"Coupon with ID {coupon_id} not found")
        _check_coupon(data, stored)
        payload = {k: v for k, v in data.items() if k != "id"}
        if "code" in payload:
            payload["code"] = normalize_code(payload["code"])
            existing = self.find_coupon_by_code(payload["code"])
            if existing and existing["id"] != coupon_id:
                raise ConflictError("Coupon code already exists")
        payload["updated_at"] = server_timestamp()
        update_doc(COLLECTIONS["COUPONS"], coupon_id, payload)
        self.clear_coupons_cache()

    def delete_coupon(self, coupon_id: str) -> None:
        if not delete_doc(COLLECTIONS["COUPONS"], coupon_id):
            raise NotFoundError(f"Coupon with ID {coupon_id} not found")
        self.clear_coupons_cache()

    def validate_coupon(self, code: str, subtotal: float, items: Iterable[Any] = ()) -> Dict[str, Any]:
        """
        Check a coupon against an order and work out its discount.

        `items` are cart items (anything with id, category, price, quantity).
        Product/category restrictions narrow the discount base to the matching
        lines. Raises ValidationError with a user-facing message.
        """
        code = normalize_code(code)
        if not code:
            raise ValidationError("Please enter a coupon code")
        coupon = self.find_coupon_by_code(code)
        if coupon is None or not coupon["is_active"]:
            raise ValidationError("Invalid coupon code")
        try:
            in_window = within_window(coupon["valid_from"], coupon["valid_to"])
        except (TypeError, ValueError) as e:
            logger.error("Coupon %s has unparseable dates: %s", coupon["id"], e)
            raise ValidationError("This coupon is not valid")
        if not in_window:
            raise ValidationError("This coupon has expired or is not yet valid")
        if coupon["max_uses"] is not None and coupon["used_count"] >= int(coupon["max_uses"]):
            raise ValidationError("This coupon has reached its usage limit")
        if coupon["min_purchase"] is not None and subtotal < float(coupon["min_purchase"]):
            raise ValidationError(f"Minimum purchase of {float(coupon['min_purchase']):.2f} required")

        base = subtotal
        products, categories = coupon["products"] or [], coupon["categories"] or []
        if products or categories:
            eligible = [
                i for i in items
                if i.id in products or (i.category and i.category in categories)
            ]
            if not eligible:
                raise ValidationError("This coupon does not apply to items in your cart")
            base = sum(i.price * i.quantity for i in eligible)

        discount = 0.0
        if coupon["type"] == COUPON_PERCENTAGE:
            discount = base * coupon["value"] / 100
        elif coupon["type"] == COUPON_FIXED:
            discount = min(coupon["value"], base)

        return {
            "coupon_id": coupon["id"],
            "code": coupon["code"],
            "type": coupon["type"],
            "discount": round(discount, settings.decimals),
            "free_shipping": coupon["type"] == COUPON_FREE_SHIPPING,
        }

    # ---------------- email campaigns ----------------

    def get_all_email_campaigns(self) -> List[Dict[str, Any]]:
        cached = self.campaigns_cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["CAMPAIGNS"], order_by="created_at", descending=True)
        except Exception:
            logger.exception("Error fetching email campaigns")
            return []
        if not docs:
            return []
        return self.campaigns_cache.set([_to_campaign(d) for d in docs])

    def get_email_campaign_by_id(self, campaign_id: str) -> Optional[Dict[str, Any]]:
        doc = get_doc(COLLECTIONS["CAMPAIGNS"], campaign_id)
        return _to_campaign(doc) if doc else None

    def create_email_campaign(self, data: Dict[str, Any]) -> str:
        if not (data.get("name") or "").strip():
            raise ValidationError("Campaign name is required")
        _check_choice(data.get("audience", "all"), CAMPAIGN_AUDIENCES, "audience")
        _check_choice(data.get("status", "draft"), CAMPAIGN_STATUSES, "status")
        _check_template(data.get("subject", ""), data.get("content", ""))

        payload = {k: v for k, v in data.items() if k not in ("id", "created_at")}
        payload.setdefault("audience", "all")
        payload.setdefault("status", "draft")
        payload["created_at"] = server_timestamp()

        campaign_id = add_doc(COLLECTIONS["CAMPAIGNS"], payload)
        self.clear_campaigns_cache()
        return campaign_id

    def update_email_campaign(self, campaign_id: str, data: Dict[str, Any]) -> None:
        _check_choice(data.get("audience"), CAMPAIGN_AUDIENCES, "audience")
        _check_choice(data.get("status"), CAMPAIGN_STATUSES, "status")
        _check_template(data.get("subject", ""), data.get("content", ""))
        payload = {k: v for k, v in data.items() if k != "id"}
        payload["updated_at"] = server_timestamp()
        update_doc(COLLECTIONS["CAMPAIGNS"], campaign_id, payload)
        self.clear_campaigns_cache()

    def delete_email_campaign(self, campaign_id: str) -> None:
        if not delete_doc(COLLECTIONS["CAMPAIGNS"], campaign_id):
            raise NotFoundError(f"Email campaign with ID {campaign_id} not found")
        self.clear_campaigns_cache()

    def render_campaign(self, campaign: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        ctx = dict(context or {})
        try:
            subject = _templates.from_string(campaign.get("subject") or "").render(**ctx)
            body = _templates.from_string(campaign.get("content") or "").render(**ctx)
        except TemplateError as e:
            raise ValidationError(f"Could not render campaign: {e}")
        return {"subject": subject, "content": body}

    def resolve_audience(self, campaign: Dict[str, Any]) -> List[str]:
        """Recipient emails for a campaign, from the users and orders collections."""
        audience = campaign.get("audience", "all")
        if audience == "custom":
            return sorted({e.strip().lower() for e in campaign.get("custom_audience") or [] if e.strip()})

        users = [u for u in query_docs(COLLECTIONS["USERS"]) if u.get("email")]
        if audience == "all":
            return sorted({u["email"].lower() for u in users})

        order_counts: Dict[str, int] = {}
        for order in query_docs(COLLECTIONS["ORDERS"]):
            uid = order.get("user_id")
            if uid:
                order_counts[uid] = order_counts.get(uid, 0) + 1

        if audience == "new_customers":
            picked = [u for u in users if order_counts.get(u["id"], 0) <= 1]
        elif audience == "returning_customers":
            picked = [u for u in users if order_counts.get(u["id"], 0) >= 2]
        else:  # inactive
            cutoff = utcnow() - timedelta(days=INACTIVE_AFTER_DAYS)
            picked = []
            for u in users:
                last = parse_timestamp(u.get("last_login"))
                if last is None or last < cutoff:
                    picked.append(u)
        return sorted({u["email"].lower() for u in picked})

    # ---------------- banners ----------------

    def get_all_banners(self) -> List[Dict[str, Any]]:
        cached = self.banners_cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["BANNERS"], order_by="created_at", descending=True)
        except Exception:
            logger.exception("Error fetching banners")
            return []
        if not docs:
            return []
        return self.banners_cache.set([_to_banner(d) for d in docs])

    def get_active_banners(self, position: Optional[str] = None) -> List[Dict[str, Any]]:
        banners = []
        for b in self.get_all_banners():
            if not b["is_active"]:
                continue
            if position and b["position"] != position:
                continue
            try:
                if not within_window(b["start_date"], b["end_date"]):
                    continue
            except ValueError:
                logger.warning("Banner %s has unparseable dates, skipping", b["id"])
                continue
            banners.append(b)
        return banners

    def create_banner(self, data: Dict[str, Any]) -> str:
        if not (data.get("title") or "").strip():
            raise ValidationError("Banner title is required")
        _check_choice(data.get("position", "custom"), BANNER_POSITIONS, "banner position")
        _check_dates(data, "start_date", "end_date")
        payload = {k: v for k, v in data.items() if k not in ("id", "created_at")}
        payload.setdefault("position", "custom")
        payload.setdefault("is_active", True)
        payload["created_at"] = server_timestamp()
        banner_id = add_doc(COLLECTIONS["BANNERS"], payload)
        self.clear_banners_cache()
        return banner_id

    def update_banner(self, banner_id: str, data: Dict[str, Any]) -> None:
        _check_choice(data.get("position"), BANNER_POSITIONS, "banner position")
        _check_dates(data, "start_date", "end_date")
        payload = {k: v for k, v in data.items() if k != "id"}
        payload["updated_at"] = server_timestamp()
        update_doc(COLLECTIONS["BANNERS"], banner_id, payload)
        self.clear_banners_cache()

    def delete_banner(self, banner_id: str) -> None:
        if not delete_doc(COLLECTIONS["BANNERS"], banner_id):
            raise NotFoundError(f"Banner with ID {banner_id} not found")
        self.clear_banners_cache()

    # ---------------- cache ----------------

    def clear_coupons_cache(self) -> None:
        self.coupons_cache.clear()

    def clear_campaigns_cache(self) -> None:
        self.campaigns_cache.clear()

    def clear_banners_cache(self) -> None:
        self.banners_cache.clear()


marketing_service = MarketingService()
