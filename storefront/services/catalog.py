"""
Catalog reads and writes: categories and products.

Reads go through a 5 minute TTL cache and fall back to the hardcoded defaults
below when the store is empty or unreachable. Every write clears the cache.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from storefront.constants import (
    CATEGORY_AVAILABLE,
    CATEGORY_COMING_SOON,
    COLLECTIONS,
    DEFAULT_SIZES,
)
from storefront.db.sqlite import (
    add_doc,
    delete_doc,
    get_doc,
    query_docs,
    server_timestamp,
    set_doc,
    update_doc,
)
from storefront.errors import NotFoundError, ValidationError
from storefront.services.cache import TTLCache
from storefront.utils.formatters import parse_price

logger = logging.getLogger(__name__)

FALLBACK_CATEGORIES: List[Dict[str, Any]] = [
    {
        "id": 1,
        "name": "T-Shirts",
        "description": "Premium quality T-Shirts with unique designs and comfortable fabrics.",
        "image": "/images/categories/t-shirts.jpg",
        "product_count": 3,
        "status": CATEGORY_AVAILABLE,
        "order": 1,
    },
    {
        "id": 2,
        "name": "Men's Shorts",
        "description": "High-quality shorts designed for comfort and style.",
        "image": "/images/categories/shorts.jpg",
        "product_count": 0,
        "status": CATEGORY_COMING_SOON,
        "order": 2,
    },
    {
        "id": 3,
        "name": "Joggers",
        "description": "Comfortable and stylish joggers for everyday wear.",
        "image": "/images/categories/joggers.jpg",
        "product_count": 0,
        "status": CATEGORY_COMING_SOON,
        "order": 3,
    },
    {
        "id": 4,
        "name": "Hoodies",
        "description": "Premium hoodies to keep you warm and stylish.",
        "image": "/images/categories/hoodies.jpg",
        "product_count": 0,
        "status": CATEGORY_COMING_SOON,
        "order": 4,
    },
]

FALLBACK_PRODUCTS: List[Dict[str, Any]] = [
    {
        "id": "1",
        "title": "True Believer Black T-Shirt",
        "description": "Premium quality True Believer black T-Shirt with unique design.",
        "price": "$30.00",
        "image": "/images/products/true-believer-black.jpg",
        "category": "T-Shirts",
        "featured": True,
        "inventory": 10,
        "sizes": list(DEFAULT_SIZES),
        "tags": [],
        "sale_price": None,
        "is_published": True,
    },
    {
        "id": "2",
        "title": "True Believer White T-Shirt",
        "description": "Premium quality True Believer white T-Shirt with unique design.",
        "price": "$30.00",
        "image": "/images/products/true-believer-white.jpg",
        "category": "T-Shirts",
        "featured": True,
        "inventory": 8,
        "sizes": list(DEFAULT_SIZES),
        "tags": [],
        "sale_price": None,
        "is_published": True,
    },
    {
        "id": "3",
        "title": "Believe in the Designs T-Shirt, Black",
        "description": "Premium quality Believe in the Designs black T-Shirt.",
        "price": "$35.00",
        "image": "/images/products/believe-designs-black.jpg",
        "category": "T-Shirts",
        "featured": True,
        "inventory": 12,
        "sizes": list(DEFAULT_SIZES),
        "tags": [],
        "sale_price": None,
        "is_published": True,
    },
]


def _to_category(doc: Dict[str, Any]) -> Dict[str, Any]:
    raw_id = doc.get("id")
    try:
        cat_id = int(raw_id)
    except (TypeError, ValueError):
        cat_id = raw_id
    return {
        "id": cat_id,
        "name": doc.get("name", ""),
        "description": doc.get("description", ""),
        "image": doc.get("image", ""),
        "product_count": doc.get("product_count") or 0,
        "status": doc.get("status") or CATEGORY_COMING_SOON,
        "order": doc.get("order"),
    }


def _to_product(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc["id"]),
        "title": doc.get("title", ""),
        "description": doc.get("description") or "",
        "price": doc.get("price", ""),
        "image": doc.get("image", ""),
        "category": doc.get("category", ""),
        "featured": bool(doc.get("featured", False)),
        "inventory": doc.get("inventory") or 0,
        "sizes": doc.get("sizes") or list(DEFAULT_SIZES),
        "tags": doc.get("tags") or [],
        "sale_price": doc.get("sale_price"),
        "is_published": doc.get("is_published", True),
        "created_at": doc.get("created_at"),
    }


def _check_product(data: Dict[str, Any], partial: bool = False) -> None:
    """Checks a new product, or only the fields present when `partial`."""
    if not partial or "title" in data:
        if not (data.get("title") or "").strip():
            raise ValidationError("Product title is required")
    for key, label in (("price", "price"), ("sale_price", "sale price")):
        if partial and key not in data:
            continue
        value = data.get(key)
        if value is None and key == "sale_price":
            continue
        try:
            parse_price(value)
        except ValueError:
            raise ValidationError(f"Invalid {label}: {value!r}")


class CategoryService:
    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache: TTLCache[List[Dict[str, Any]]] = cache or TTLCache()

    def get_all_categories(self) -> List[Dict[str, Any]]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["CATEGORIES"], order_by="order")
        except Exception:
            logger.exception("Error fetching categories")
            return list(FALLBACK_CATEGORIES)
        if not docs:
            return list(FALLBACK_CATEGORIES)
        return self.cache.set([_to_category(d) for d in docs])

    def get_category_by_id(self, category_id: int) -> Optional[Dict[str, Any]]:
        try:
            doc = get_doc(COLLECTIONS["CATEGORIES"], str(category_id))
        except Exception:
            logger.exception("Error fetching category with ID %s", category_id)
            doc = None
        if doc:
            return _to_category(doc)
        return next((c for c in FALLBACK_CATEGORIES if c["id"] == category_id), None)

    def get_available_categories(self) -> List[Dict[str, Any]]:
        fallback = [c for c in FALLBACK_CATEGORIES if c["status"] == CATEGORY_AVAILABLE]
        try:
            docs = query_docs(
                COLLECTIONS["CATEGORIES"],
                where=[("status", "==", CATEGORY_AVAILABLE)],
                order_by="order",
            )
        except Exception:
            logger.exception("Error fetching available categories")
            return fallback
        return [_to_category(d) for d in docs] if docs else fallback

    def clear_cache(self) -> None:
        self.cache.clear()


class ProductService:
    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache: TTLCache[List[Dict[str, Any]]] = cache or TTLCache()

    def get_all_products(self) -> List[Dict[str, Any]]:
        cached = self.cache.get()
        if cached is not None:
            return cached
        try:
            docs = query_docs(COLLECTIONS["PRODUCTS"], order_by="created_at", descending=True)
        except Exception:
            logger.exception("Error fetching products")
            return list(FALLBACK_PRODUCTS)
        if not docs:
            return list(FALLBACK_PRODUCTS)
        return self.cache.set([_to_product(d) for d in docs])

    def get_published_products(self) -> List[Dict[str, Any]]:
        return [p for p in self.get_all_products() if p.get("is_published", True)]

    def get_product_by_id(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = get_doc(COLLECTIONS["PRODUCTS"], product_id)
        except Exception:
            logger.exception("Error fetching product with ID %s", product_id)
            doc = None
        if doc:
            return _to_product(doc)
        return next((p for p in FALLBACK_PRODUCTS if p["id"] == product_id), None)

    def get_products_by_category(self, category: str) -> List[Dict[str, Any]]:
        fallback = [p for p in FALLBACK_PRODUCTS if p["category"] == category]
        try:
            docs = query_docs(
                COLLECTIONS["PRODUCTS"],
                where=[("category", "==", category)],
                order_by="created_at",
                descending=True,
            )
        except Exception:
            logger.exception("Error fetching products for category %s", category)
            return fallback
        return [_to_product(d) for d in docs] if docs else fallback

    def get_featured_products(self, count: int = 3) -> List[Dict[str, Any]]:
        fallback = [p for p in FALLBACK_PRODUCTS if p["featured"]][:count]
        try:
            docs = query_docs(COLLECTIONS["PRODUCTS"], where=[("featured", "==", True)], limit=count)
        except Exception:
            logger.exception("Error fetching featured products")
            return fallback
        return [_to_product(d) for d in docs] if docs else fallback

    def search_products(self, query: str) -> List[Dict[str, Any]]:
        products = self.get_all_products()
        q = (query or "").strip().lower()
        if not q:
            return products
        return [
            p for p in products
            if q in p["title"].lower() or q in p["description"].lower() or q in p["category"].lower()
        ]

    def create_product(self, data: Dict[str, Any]) -> str:
        _check_product(data)

        now = server_timestamp()
        payload = {k: v for k, v in data.items() if k != "id"}
        payload.setdefault("sizes", list(DEFAULT_SIZES))
        payload.setdefault("is_published", True)
        payload.update(created_at=now, updated_at=now)

        product_id = add_doc(COLLECTIONS["PRODUCTS"], payload)
        logger.info("Created product %s (%s)", product_id, payload["title"])
        self.clear_cache()
        return product_id

    def update_product(self, product_id: str, data: Dict[str, Any]) -> None:
        _check_product(data, partial=True)
        payload = {k: v for k, v in data.items() if k != "id"}
        payload["updated_at"] = server_timestamp()
        update_doc(COLLECTIONS["PRODUCTS"], product_id, payload)
        self.clear_cache()

    def delete_product(self, product_id: str) -> None:
        if not delete_doc(COLLECTIONS["PRODUCTS"], product_id):
            raise NotFoundError(f"Product with ID {product_id} not found")
        logger.info("Deleted product %s", product_id)
        self.clear_cache()

    def toggle_product_visibility(self, product_id: str, is_published: bool) -> None:
        self.update_product(product_id, {"is_published": bool(is_published)})

    def clear_cache(self) -> None:
        self.cache.clear()


def seed_categories(replace_existing: bool = False) -> int:
    """Write the default categories, keyed by their numeric id."""
    existing = query_docs(COLLECTIONS["CATEGORIES"])
    if existing and not replace_existing:
        logger.info("Categories already present (%d), skipping seed", len(existing))
        return 0
    for doc in existing:
        delete_doc(COLLECTIONS["CATEGORIES"], str(doc["id"]))
    for cat in FALLBACK_CATEGORIES:
        set_doc(COLLECTIONS["CATEGORIES"], str(cat["id"]), dict(cat))
    category_service.clear_cache()
    logger.info("Seeded %d categories", len(FALLBACK_CATEGORIES))
    return len(FALLBACK_CATEGORIES)


category_service = CategoryService()
product_service = ProductService()
