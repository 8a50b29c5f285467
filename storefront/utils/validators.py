from __future__ import annotations

import re
from typing import Dict, Optional, Tuple

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SPECIAL_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
ZIP_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 \-]{1,9}$")


def require_positive_number(v: float, name: str = "value") -> None:
    if v <= 0:
        raise ValueError(f"{name} must be > 0")


def sanitize_input(text: Optional[str]) -> str:
    return SCRIPT_RE.sub("", text or "").strip()


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def validate_password(password: str) -> Tuple[bool, str]:
    password = password or ""
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"
    if not re.search(r"[A-Z]", password):
        return False, "Password must contain at least one uppercase letter"
    if not re.search(r"[a-z]", password):
        return False, "Password must contain at least one lowercase letter"
    if not re.search(r"[0-9]", password):
        return False, "Password must contain at least one number"
    if not SPECIAL_RE.search(password):
        return False, "Password must contain at least one special character"
    return True, ""


def password_strength(password: str) -> int:
    """0..100 in steps of 20, one step per satisfied rule."""
    password = password or ""
    checks = [
        len(password) >= 8,
        bool(re.search(r"[A-Z]", password)),
        bool(re.search(r"[a-z]", password)),
        bool(re.search(r"[0-9]", password)),
        bool(SPECIAL_RE.search(password)),
    ]
    return 20 * sum(checks)


CHECKOUT_FIELDS = {
    "first_name": "First name",
    "last_name": "Last name",
    "email": "Email",
    "address": "Address",
    "city": "City",
    "zip_code": "ZIP code",
    "country": "Country",
}


def validate_checkout_info(info: Dict[str, str]) -> Dict[str, str]:
    """Returns field -> error message; empty dict means the form is valid."""
    errors: Dict[str, str] = {}
    for key, label in CHECKOUT_FIELDS.items():
        if not sanitize_input(info.get(key)):
            errors[key] = f"{label} is required"
    if "email" not in errors and not validate_email(sanitize_input(info.get("email"))):
        errors["email"] = "Please enter a valid email address"
    if "zip_code" not in errors and not ZIP_RE.match(sanitize_input(info.get("zip_code"))):
        errors["zip_code"] = "Please enter a valid ZIP code"
    return errors
