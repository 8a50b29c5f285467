import re
from typing import Optional

from storefront.config import settings

_PRICE_CHARS = re.compile(r"[^0-9.\-]")


def money(v: float, currency: Optional[str] = None) -> str:
    return f"{v:.{settings.decimals}f} {currency or settings.currency}"


def display_price(v: float) -> str:
    return f"${v:,.{settings.decimals}f}"


def parse_price(text) -> float:
    """'$3,000.50' -> 3000.5. Raises ValueError when nothing numeric is left."""
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = _PRICE_CHARS.sub("", str(text or ""))
    if not cleaned:
        raise ValueError(f"not a price: {text!r}")
    return float(cleaned)
