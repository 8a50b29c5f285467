"""
Catalog reads: cache, fallbacks and write invalidation.
"""
import pytest

from storefront.errors import NotFoundError, ValidationError
from storefront.services import catalog
from storefront.services.catalog import (
    FALLBACK_CATEGORIES,
    FALLBACK_PRODUCTS,
    category_service,
    product_service,
    seed_categories,
)


def _boom(*args, **kwargs):
    raise RuntimeError("database unavailable")


class TestFallbacks:
    def test_empty_store_serves_fallback_products(self):
        products = product_service.get_all_products()

        assert [p["id"] for p in products] == ["1", "2", "3"]
        assert [p["price"] for p in products] == ["$30.00", "$30.00", "$35.00"]

    def test_fallback_is_not_cached(self):
        product_service.get_all_products()
        assert product_service.cache.get() is None

    def test_backend_failure_serves_fallback(self, monkeypatch):
        monkeypatch.setattr(catalog, "query_docs", _boom)
        monkeypatch.setattr(catalog, "get_doc", _boom)

        assert len(product_service.get_all_products()) == 3
        assert len(category_service.get_all_categories()) == 4
        assert [c["name"] for c in category_service.get_available_categories()] == ["T-Shirts"]
        assert product_service.get_product_by_id("2")["title"] == "True Believer White T-Shirt"
        assert category_service.get_category_by_id(3)["name"] == "Joggers"

    def test_fallback_categories_shape(self):
        names = [c["name"] for c in category_service.get_all_categories()]
        assert names == ["T-Shirts", "Men's Shorts", "Joggers", "Hoodies"]
        assert FALLBACK_CATEGORIES[0]["status"] == "available"

    def test_unknown_product(self):
        assert product_service.get_product_by_id("nope") is None


class TestProductWrites:
    def test_create_clears_cache_and_replaces_fallback(self):
        product_service.get_all_products()

        new_id = product_service.create_product({"title": "Hoodie", "price": "$55.00", "category": "Hoodies"})

        products = product_service.get_all_products()
        assert [p["id"] for p in products] == [new_id]
        assert products[0]["sizes"] == ["S", "M", "L", "XL"]
        assert product_service.cache.get() is not None

    def test_newest_first(self):
        first = product_service.create_product({"title": "A", "price": "$1.00"})
        second = product_service.create_product({"title": "B", "price": "$2.00"})
        assert [p["id"] for p in product_service.get_all_products()] == [second, first]

    def test_cached_list_survives_direct_store_changes(self):
        product_service.create_product({"title": "A", "price": "$1.00"})
        cached = product_service.get_all_products()

        catalog.add_doc("products", {"title": "Sneaky", "price": "$9.00"})

        assert product_service.get_all_products() == cached
        product_service.clear_cache()
        assert len(product_service.get_all_products()) == 2

    def test_create_validates(self):
        with pytest.raises(ValidationError):
            product_service.create_product({"title": "  ", "price": "$1.00"})
        with pytest.raises(ValidationError):
            product_service.create_product({"title": "Thing", "price": "free"})

    def test_create_rejects_bad_sale_price(self):
        with pytest.raises(ValidationError, match="sale price"):
            product_service.create_product({"title": "Thing", "price": "$10.00", "sale_price": "soon"})

        pid = product_service.create_product({"title": "Thing", "price": "$10.00", "sale_price": None})
        assert product_service.get_product_by_id(pid)["title"] == "Thing"

    @pytest.mark.parametrize(
        "data",
        [{"price": "TBD"}, {"price": None}, {"sale_price": "soon"}, {"title": ""}],
    )
    def test_update_validates_present_fields(self, data):
        pid = product_service.create_product({"title": "A", "price": "$1.00"})

        with pytest.raises(ValidationError):
            product_service.update_product(pid, data)
        assert product_service.get_product_by_id(pid)["price"] == "$1.00"

    def test_update_accepts_valid_sale_price(self):
        pid = product_service.create_product({"title": "A", "price": "$10.00"})

        product_service.update_product(pid, {"sale_price": "$8.00"})

        assert product_service.get_product_by_id(pid)["sale_price"] == "$8.00"

    def test_update_toggle_delete(self):
        pid = product_service.create_product({"title": "A", "price": "$1.00"})

        product_service.update_product(pid, {"title": "A2"})
        product_service.toggle_product_visibility(pid, False)

        assert product_service.get_product_by_id(pid)["title"] == "A2"
        assert product_service.get_published_products() == []

        product_service.delete_product(pid)
        with pytest.raises(NotFoundError):
            product_service.delete_product(pid)


class TestQueries:
    def test_search_matches_title_description_category(self):
        assert [p["id"] for p in product_service.search_products("white")] == ["2"]
        assert len(product_service.search_products("t-shirts")) == 3
        assert product_service.search_products("zzz") == []
        assert len(product_service.search_products("  ")) == 3

    def test_by_category_and_featured(self):
        pid = product_service.create_product({"title": "Cap", "price": "$10", "category": "Hats", "featured": True})

        assert [p["id"] for p in product_service.get_products_by_category("Hats")] == [pid]
        assert [p["id"] for p in product_service.get_featured_products()] == [pid]
        # no stored T-Shirts, so the fallback list answers
        assert len(product_service.get_products_by_category("T-Shirts")) == 3

    def test_seed_categories(self):
        assert seed_categories() == 4
        assert seed_categories() == 0

        categories = category_service.get_all_categories()
        assert [c["id"] for c in categories] == [1, 2, 3, 4]
        assert category_service.cache.get() is not None
        assert category_service.get_category_by_id(1)["name"] == FALLBACK_CATEGORIES[0]["name"]


def test_fallback_products_match_catalog_prices():
    assert {p["id"]: p["price"] for p in FALLBACK_PRODUCTS} == {"1": "$30.00", "2": "$30.00", "3": "$35.00"}
