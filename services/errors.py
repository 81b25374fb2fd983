from __future__ import annotations

from typing import Optional

GENERIC_UNAUTHORIZED = "Authentication failed"
GENERIC_SERVER_ERROR = "An unexpected error occurred"


class AuthError(Exception):
    """Base class for auth-layer errors mapped to HTTP responses at one boundary.

    Each subclass carries a stable error_code and status_code. ``message`` is
    what the client sees; ``reason`` is the internal cause and is only logged.
    """

    kind: str = "internal"
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    should_log: bool = False

    def __init__(self, message: str, *, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or message

    @property
    def public_message(self) -> str:
        return self.message

    def __str__(self) -> str:
        return f"{self.error_code}: {self.reason}"


class NotFound(AuthError):
    kind = "not_found"
    status_code = 404
    error_code = "NOT_FOUND"


class ValidationFailed(AuthError):
    kind = "validation"
    status_code = 422
    error_code = "VALIDATION_ERROR"


class Unauthorized(AuthError):
    """Every cause renders the same message so nothing leaks about accounts or tokens."""
    kind = "unauthorized"
    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, reason: str) -> None:
        super().__init__(GENERIC_UNAUTHORIZED, reason=reason)


class Conflict(AuthError):
    kind = "conflict"
    status_code = 409
    error_code = "CONFLICT"


class DatabaseError(AuthError):
    kind = "database"
    status_code = 500
    error_code = "DATABASE_ERROR"
    should_log = True

    @property
    def public_message(self) -> str:
        return GENERIC_SERVER_ERROR


class InternalServerError(AuthError):
    kind = "internal"
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
    should_log = True

    @property
    def public_message(self) -> str:
        return GENERIC_SERVER_ERROR


__all__ = [
    "AuthError",
    "NotFound",
    "ValidationFailed",
    "Unauthorized",
    "Conflict",
    "DatabaseError",
    "InternalServerError",
    "GENERIC_UNAUTHORIZED",
]
