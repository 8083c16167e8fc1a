"""Exception hierarchy for the gateway.

Every error carries the HTTP status it maps to; route handlers convert it
into their own response shape at the boundary.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AuthError(GatewayError):
    """Raised when the bearer token is missing or wrong."""

    status_code = 401


class ValidationError(GatewayError):
    """Base class for malformed requests."""

    status_code = 400


class InvalidJSONError(ValidationError):
    pass


class MissingFieldError(ValidationError):
    pass


class InvalidPathError(ValidationError):
    pass


class InvalidURLError(ValidationError):
    pass


class UnsupportedMediaTypeError(ValidationError):
    """Raised when an endpoint receives a body that is not ``application/json``."""
    pass


class InvalidPayloadError(ValidationError):
    pass


class NotFoundError(GatewayError):
    status_code = 404


class StorageConflictError(GatewayError):
    """Raised when a key collides with an existing object or key prefix."""

    status_code = 409


class UpstreamError(GatewayError):
    """Raised when a third-party service call fails."""

    status_code = 500


class PurgeError(UpstreamError):
    pass


class TransformError(UpstreamError):
    status_code = 502
