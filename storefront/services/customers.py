"""
Customer accounts as the admin panel sees them: user profiles without the
admins, each with order count and total spent worked out from their orders.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from storefront.config import settings
from storefront.constants import COLLECTIONS, CUSTOMER_ACTIVE, CUSTOMER_STATUSES, ROLE_ADMIN
from storefront.db.sqlite import delete_user_sessions, get_doc, query_docs, server_timestamp, update_doc
from storefront.errors import NotFoundError, ValidationError
from storefront.services.cache import TTLCache
from storefront.utils.validators import sanitize_input

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("display_name", "photo_url", "phone", "shipping_address")

# orders that no longer count towards total spent
_NOT_SPENT = ("cancelled", "refunded")


def _with_stats(profile: Dict[str, Any], orders: List[Dict[str, Any]]) -> Dict[str, Any]:
    mine = [o for o in orders if o.get("user_id") == profile["id"]]
    spent = sum(float(o.get("total") or 0) for o in mine if o.get("status") not in _NOT_SPENT)
    return {
        **profile,
        "status": profile.get("status") or CUSTOMER_ACTIVE,
        "order_count": len(mine),
        "total_spent": round(spent, settings.decimals),
    }


class CustomerService:
    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache: TTLCache[List[Dict[str, Any]]] = cache or TTLCache()

    def get_all_customers(self) -> List[Dict[str, Any]]:
        """Newest first."""
        cached = self.cache.get()
        if cached is not None:
            return cached
        try:
            users = query_docs(
                COLLECTIONS["USERS"],
                where=[("role", "!=", ROLE_ADMIN)],
                order_by="created_at",
                descending=True,
            )
            orders = query_docs(COLLECTIONS["ORDERS"])
        except Exception:
            logger.exception("Error fetching customers")
            return []
        if not users:
            return []
        return self.cache.set([_with_stats(u, orders) for u in users])

    def get_customer_by_id(self, customer_id: str) -> Optional[Dict[str, Any]]:
        profile = get_doc(COLLECTIONS["USERS"], customer_id)
        if profile is None or profile.get("role") == ROLE_ADMIN:
            return None
        orders = query_docs(COLLECTIONS["ORDERS"], where=[("user_id", "==", customer_id)])
        return _with_stats(profile, orders)

    def _require(self, customer_id: str) -> Dict[str, Any]:
        customer = self.get_customer_by_id(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer with ID {customer_id} not found")
        return customer

    def update_customer(self, customer_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self._require(customer_id)
        unknown = sorted(set(data) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be changed here: {', '.join(unknown)}")
        payload = {k: sanitize_input(v) if isinstance(v, str) else v for k, v in data.items()}
        payload["updated_at"] = server_timestamp()
        update_doc(COLLECTIONS["USERS"], customer_id, payload)
        self.clear_cache()
        return self._require(customer_id)

    def update_customer_status(self, customer_id: str, status: str) -> Dict[str, Any]:
        """Suspending or banning a customer also signs them out everywhere."""
        if status not in CUSTOMER_STATUSES:
            raise ValidationError(f"Invalid customer status: {status!r}")
        self._require(customer_id)
        update_doc(COLLECTIONS["USERS"], customer_id, {"status": status, "updated_at": server_timestamp()})
        if status != CUSTOMER_ACTIVE:
            dropped = delete_user_sessions(customer_id)
            logger.info("Customer %s set to %s, %d sessions ended", customer_id, status, dropped)
        self.clear_cache()
        return self._require(customer_id)

    def get_high_value_customers(self, limit: int = 10) -> List[Dict[str, Any]]:
        customers = [c for c in self.get_all_customers() if c["total_spent"] > 0]
        return sorted(customers, key=lambda c: c["total_spent"], reverse=True)[:limit]

    def get_recent_customers(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.get_all_customers()[:limit]

    def clear_cache(self) -> None:
        self.cache.clear()


customer_service = CustomerService()
