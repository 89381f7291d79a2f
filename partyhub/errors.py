"""Typed errors raised by the guard and the services.

Only the API boundary (``partyhub.main``) turns these into HTTP responses.
"""
from __future__ import annotations


class PartyHubError(Exception):
    """Base class carrying the HTTP status the API boundary should use."""

    http_status: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(PartyHubError):
    """Malformed input: missing field, invalid enum, conflicting primary flags."""

    http_status = 400
    code = "VALIDATION_ERROR"


class BadRequest(ValidationError):
    """Request is missing required routing information, such as the tenant id."""

    code = "BAD_REQUEST"


class Unauthorized(PartyHubError):
    http_status = 401
    code = "UNAUTHORIZED"


class Forbidden(PartyHubError):
    """Authenticated, but not allowed to act in (or see into) this tenant."""

    http_status = 403
    code = "FORBIDDEN"


class NotFound(PartyHubError):
    http_status = 404
    code = "NOT_FOUND"


class ConflictError(PartyHubError):
    """Duplicate role, or deletion blocked by dependent records."""

    http_status = 409
    code = "CONFLICT"


class InternalError(PartyHubError):
    http_status = 500
    code = "INTERNAL_ERROR"


__all__ = [
    "BadRequest",
    "ConflictError",
    "Forbidden",
    "InternalError",
    "NotFound",
    "PartyHubError",
    "Unauthorized",
    "ValidationError",
]
