"""
Email/password and social sign-in, user profiles and sessions.

Errors are raised as AuthError with provider-style codes (`auth/...`);
`friendly_message` turns a code into the text shown on the login/signup forms.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from storefront.config import settings
from storefront.constants import (
    AUTH_PROVIDERS,
    COLLECTIONS,
    DEFAULT_PERMISSIONS,
    FAILED_LOGIN_WINDOW_MINUTES,
    CUSTOMER_ACTIVE,
    MAX_FAILED_LOGINS,
    ROLE_ADMIN,
    ROLE_CUSTOMER,
)
from storefront.db.sqlite import (
    add_credentials,
    add_session,
    clear_login_failures,
    count_login_failures,
    delete_session,
    find_credentials,
    find_session,
    get_doc,
    prune_expired_sessions,
    prune_login_failures,
    record_login_failure,
    server_timestamp,
    set_doc,
)
from storefront.errors import AuthError
from storefront.utils.dates import parse_timestamp, utcnow
from storefront.utils.validators import sanitize_input, validate_email, validate_password

logger = logging.getLogger(__name__)

AUTH_MESSAGES = {
    "auth/email-already-in-use": "Email address is already in use",
    "auth/invalid-email": "Invalid email address",
    "auth/weak-password": "Password is too weak",
    "auth/invalid-credential": "Invalid email or password",
    "auth/too-many-requests": "Too many failed login attempts. Please try again later",
    "auth/invalid-display-name": "Name must be at least 2 characters long",
    "auth/operation-not-allowed": "This sign-in method is not enabled",
    "auth/session-expired": "Your session has expired. Please sign in again",
    "auth/user-disabled": "This account has been disabled. Please contact support",
}


def friendly_message(code: str) -> str:
    return AUTH_MESSAGES.get(code, "An error occurred. Please try again later")


def _hash_token(token: str) -> str:
    return hmac.new(settings.secret_key.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def _public_user(profile: Dict[str, Any]) -> Dict[str, Any]:
    role = profile.get("role") or ROLE_CUSTOMER
    return {
        "id": profile["id"],
        "email": profile.get("email"),
        "display_name": profile.get("display_name", ""),
        "photo_url": profile.get("photo_url", ""),
        "role": role,
        "permissions": profile.get("permissions") or [],
        "is_admin": role == ROLE_ADMIN,
        "status": profile.get("status") or CUSTOMER_ACTIVE,
    }


def _is_active(profile: Optional[Dict[str, Any]]) -> bool:
    return profile is None or (profile.get("status") or CUSTOMER_ACTIVE) == CUSTOMER_ACTIVE


def _refuse_disabled(uid: str) -> None:
    if not _is_active(get_doc(COLLECTIONS["USERS"], uid)):
        logger.warning("Sign-in refused for disabled account %s", uid)
        raise AuthError("auth/user-disabled", friendly_message("auth/user-disabled"), 403)


def _ensure_profile(uid: str, email: str, display_name: str = "", photo_url: str = "", provider: str = "password") -> Dict[str, Any]:
    """Create the user document on first sign-in, otherwise bump last_login."""
    now = server_timestamp()
    profile = get_doc(COLLECTIONS["USERS"], uid)
    if profile is None:
        profile = {
            "uid": uid,
            "email": email,
            "display_name": display_name,
            "photo_url": photo_url,
            "provider": provider,
            "role": ROLE_CUSTOMER,
            "permissions": list(DEFAULT_PERMISSIONS),
            "status": CUSTOMER_ACTIVE,
            "created_at": now,
            "last_login": now,
        }
        set_doc(COLLECTIONS["USERS"], uid, profile)
        logger.info("Created user profile %s (%s)", uid, email)
    else:
        set_doc(COLLECTIONS["USERS"], uid, {"last_login": now}, merge=True)
        profile["last_login"] = now
    profile["id"] = uid
    return profile


def _start_session(uid: str) -> str:
    token = secrets.token_urlsafe(32)
    prune_expired_sessions(utcnow().isoformat())
    expires_at = (utcnow() + timedelta(hours=settings.session_ttl_hours)).isoformat()
    add_session(_hash_token(token), uid, expires_at)
    return token


def sign_up(email: str, password: str, display_name: str) -> Tuple[str, Dict[str, Any]]:
    email = sanitize_input(email).lower()
    display_name = sanitize_input(display_name)
    if len(display_name) < 2:
        raise AuthError("auth/invalid-display-name", friendly_message("auth/invalid-display-name"), 400)
    if not validate_email(email):
        raise AuthError("auth/invalid-email", "Please enter a valid email address", 400)
    ok, msg = validate_password(password)
    if not ok:
        raise AuthError("auth/weak-password", msg, 400)
    if find_credentials(email):
        raise AuthError("auth/email-already-in-use", friendly_message("auth/email-already-in-use"), 409)

    uid = uuid.uuid4().hex
    add_credentials(uid, email, generate_password_hash(password), "password")
    profile = _ensure_profile(uid, email, display_name)
    return _start_session(uid), _public_user(profile)


def login(email: str, password: str) -> Tuple[str, Dict[str, Any]]:
    email = sanitize_input(email).lower()
    if not validate_email(email):
        raise AuthError("auth/invalid-email", "Please enter a valid email address", 400)
    if len(password or "") < 8:
        raise AuthError("auth/invalid-credential", "Password must be at least 8 characters long", 400)

    since = (utcnow() - timedelta(minutes=FAILED_LOGIN_WINDOW_MINUTES)).isoformat()
    if count_login_failures(email, since) >= MAX_FAILED_LOGINS:
        logger.warning("Login throttled for %s", email)
        raise AuthError("auth/too-many-requests", friendly_message("auth/too-many-requests"), 429)

    creds = find_credentials(email)
    if not creds or not creds["password_hash"] or not check_password_hash(creds["password_hash"], password):
        prune_login_failures(since)
        record_login_failure(email)
        raise AuthError("auth/invalid-credential", friendly_message("auth/invalid-credential"))

    clear_login_failures(email)
    _refuse_disabled(creds["uid"])
    profile = _ensure_profile(creds["uid"], email)
    return _start_session(creds["uid"]), _public_user(profile)


def login_with_provider(
    provider: str,
    provider_uid: str,
    email: str,
    display_name: str = "",
    photo_url: str = "",
) -> Tuple[str, Dict[str, Any]]:
    """
    Sign in with an identity the provider has already verified.

    Accounts are linked by email: a Google sign-in for an address that
    already has a password account reuses that account.
    """
    if provider not in AUTH_PROVIDERS:
        raise AuthError("auth/operation-not-allowed", friendly_message("auth/operation-not-allowed"), 400)
    email = sanitize_input(email).lower()
    if not provider_uid or not validate_email(email):
        raise AuthError("auth/invalid-credential", friendly_message("auth/invalid-credential"))

    creds = find_credentials(email)
    if creds:
        uid = creds["uid"]
        _refuse_disabled(uid)
    else:
        uid = uuid.uuid4().hex
        add_credentials(uid, email, None, provider)
    profile = _ensure_profile(uid, email, sanitize_input(display_name), photo_url or "", provider)
    return _start_session(uid), _public_user(profile)


def logout(token: str) -> None:
    delete_session(_hash_token(token))


def get_current_user(token: Optional[str]) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    token_hash = _hash_token(token)
    session = find_session(token_hash)
    if session is None:
        return None
    if parse_timestamp(session["expires_at"]) <= utcnow():
        delete_session(token_hash)
        return None
    profile = get_doc(COLLECTIONS["USERS"], session["uid"])
    if profile is None or not _is_active(profile):
        return None
    profile["id"] = session["uid"]
    return _public_user(profile)


def seed_admin_user(email: Optional[str] = None, password: Optional[str] = None) -> str:
    """Create (or promote) the admin account from settings."""
    email = (email or settings.admin_email).lower()
    password = password or settings.admin_password
    creds = find_credentials(email)
    if creds:
        uid = creds["uid"]
    else:
        ok, msg = validate_password(password)
        if not ok:
            raise AuthError("auth/weak-password", f"ADMIN_PASSWORD rejected: {msg}", 400)
        uid = uuid.uuid4().hex
        add_credentials(uid, email, generate_password_hash(password), "password")
    _ensure_profile(uid, email, "Admin")
    set_doc(
        COLLECTIONS["USERS"],
        uid,
        {"role": ROLE_ADMIN, "permissions": ["view", "edit", "delete", "admin"]},
        merge=True,
    )
    logger.info("Admin user ready: %s", email)
    return uid
