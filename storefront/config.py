from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]  # .../storefront repo root
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int | None = None) -> int | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float | None = None) -> float | None:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_path(*keys: str, default: str) -> str:
    v = _get_env(*keys, default=default)
    return str(v)


@dataclass(frozen=True)
class Settings:
    secret_key: str
    db_path: str
    export_dir: str
    currency: str
    decimals: int
    tax_rate: float
    shipping_fee: float
    cache_ttl_seconds: int
    session_ttl_hours: int
    admin_email: str
    admin_password: str
    log_level: str
    host: str
    port: int


settings = Settings(
    secret_key=_get_env("SECRET_KEY", "STOREFRONT_SECRET_KEY", default="") or "",
    db_path=_get_path("DB_PATH", "DATABASE_PATH", default=str(ROOT_DIR / "data" / "storefront.db")),
    export_dir=_get_path("EXPORT_DIR", default=str(ROOT_DIR / "exports")),
    currency=_get_env("CURRENCY", default="USD") or "USD",
    decimals=_get_int("DECIMALS", default=2) or 2,
    tax_rate=_get_float("TAX_RATE", default=0.10),
    shipping_fee=_get_float("SHIPPING_FEE", default=0.0),
    cache_ttl_seconds=_get_int("CACHE_TTL_SECONDS", default=300),
    session_ttl_hours=_get_int("SESSION_TTL_HOURS", default=24 * 7) or 24 * 7,
    admin_email=_get_env("ADMIN_EMAIL", default="admin@example.com") or "admin@example.com",
    admin_password=_get_env("ADMIN_PASSWORD", default="") or "",
    log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
    host=_get_env("HOST", default="127.0.0.1") or "127.0.0.1",
    port=_get_int("PORT", default=8000) or 8000,
)

if not settings.secret_key:
    raise RuntimeError("SECRET_KEY is empty. Set SECRET_KEY in .env")
