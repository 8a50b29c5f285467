"""
Shared fixtures.

Settings are read once at import, so the environment is pointed at a scratch
directory before anything from `storefront` is imported.
"""
import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DB_PATH"] = os.path.join(_TMP_DIR, "storefront.db")
os.environ["EXPORT_DIR"] = os.path.join(_TMP_DIR, "exports")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from storefront.config import settings  # noqa: E402
from storefront.db.sqlite import init_db  # noqa: E402
from storefront.services import auth  # noqa: E402
from storefront.services.catalog import category_service, product_service  # noqa: E402
from storefront.services.customers import customer_service  # noqa: E402
from storefront.services.marketing import marketing_service  # noqa: E402
from storefront.services.orders import order_service  # noqa: E402
from storefront.services.storage import LocalStorage  # noqa: E402
from storefront.web.main import app  # noqa: E402

ADMIN_EMAIL = "admin@shop.test"
ADMIN_PASSWORD = "Admin#Pass2024"
CUSTOMER_EMAIL = "jane@shop.test"
CUSTOMER_PASSWORD = "Customer#2024"


def _clear_caches() -> None:
    category_service.clear_cache()
    product_service.clear_cache()
    marketing_service.clear_coupons_cache()
    marketing_service.clear_campaigns_cache()
    marketing_service.clear_banners_cache()
    order_service.clear_cache()
    customer_service.clear_cache()


@pytest.fixture(autouse=True)
def fresh_db():
    """Every test starts from an empty database and cold caches."""
    if os.path.exists(settings.db_path):
        os.remove(settings.db_path)
    init_db()
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def storage() -> LocalStorage:
    return LocalStorage("client-under-test")


@pytest.fixture
def test_client() -> TestClient:
    client = TestClient(app)
    client.headers["X-Client-Id"] = "browser-1"
    return client


@pytest.fixture
def admin_headers(test_client: TestClient) -> dict:
    auth.seed_admin_user(ADMIN_EMAIL, ADMIN_PASSWORD)
    response = test_client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def customer_headers(test_client: TestClient) -> dict:
    response = test_client.post(
        "/auth/signup",
        json={"email": CUSTOMER_EMAIL, "password": CUSTOMER_PASSWORD, "display_name": "Jane"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def checkout_info() -> dict:
    return {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": CUSTOMER_EMAIL,
        "address": "1 Main Street",
        "city": "Springfield",
        "zip_code": "12345",
        "country": "US",
    }
