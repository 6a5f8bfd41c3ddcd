"""
Error taxonomy for the authentication core.

Every domain error carries a machine-readable ``kind``, a message that is
safe to show to the client, and an HTTP status used by the exception
handler in ``billing_auth.main``.
"""

from __future__ import annotations

from typing import Any


class AuthServiceError(Exception):
    """Base class for all errors raised by the authentication core."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(AuthServiceError):
    """Malformed or unacceptable input the client can fix."""

    kind = "validation_error"
    status_code = 400


class EmailAlreadyRegisteredError(ValidationError):
    kind = "email_already_registered"

    def __init__(self, message: str = "Email already registered") -> None:
        super().__init__(message)


class AuthenticationError(AuthServiceError):
    """Wrong password, wrong or expired OTP, bad token."""

    kind = "authentication_error"
    status_code = 401


class TokenInvalidError(AuthenticationError):
    kind = "invalid_token"


class TokenExpiredError(AuthenticationError):
    kind = "token_expired"


class PermissionDeniedError(AuthServiceError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(AuthServiceError):
    kind = "not_found"
    status_code = 404


class ThrottledError(AuthServiceError):
    """The identity is temporarily blocked after too many failed logins."""

    kind = "throttled"
    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(message, {"retry_after": retry_after})


class InfrastructureError(AuthServiceError):
    """A backing store or delivery channel failed. Fatal to the request."""

    kind = "service_unavailable"
    status_code = 503


class DeliveryError(InfrastructureError):
    """The notifier could not deliver a message."""

    kind = "delivery_failed"
