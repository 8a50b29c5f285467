from __future__ import annotations


class StoreError(Exception):
    """Base class for storefront errors surfaced to the user."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StoreError):
    status_code = 404


class ConflictError(StoreError):
    status_code = 409


class ValidationError(StoreError, ValueError):
    status_code = 400


class AuthError(StoreError):
    """Auth provider failure. `code` follows the provider's `auth/...` naming."""

    status_code = 401

    def __init__(self, code: str, message: str | None = None, status_code: int | None = None):
        super().__init__(message or code)
        self.code = code
        if status_code is not None:
            self.status_code = status_code


class PermissionDenied(StoreError):
    status_code = 403
