"""
Application error hierarchy.

AppError is the base for all typed errors. Lifecycle failures of the OTP
flow are reported as typed results (see schemas.dto.responses.otp); the
result's raise_for_failure() maps each failure onto the subclasses below for
callers that prefer exceptions. Stores raise StoreError / DuplicateRecordError
directly.
"""

from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limited"


class OtpExpiredError(AppError):
    status_code = 410
    error_code = "expired"


class AttemptsExceededError(AppError):
    status_code = 429
    error_code = "attempts_exceeded"


class InvalidCodeError(AppError):
    status_code = 400
    error_code = "invalid_code"


class DeliveryError(AppError):
    status_code = 502
    error_code = "delivery_failed"


class StoreError(AppError):
    """The backing store failed; not recoverable by the caller."""

    status_code = 500
    error_code = "internal_store_error"


class DuplicateRecordError(ConflictError):
    """A record already occupies the (email, purpose) key."""

    error_code = "duplicate_record"
