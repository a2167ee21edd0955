"""
Result DTOs for the OTP lifecycle.

IssueOtpResult   — issue()
VerifyOtpResult  — verify()
OtpStats         — stats()

Failures are values, not exceptions: every result carries success, a
human-readable message and, on failure, an OtpFailure tag.
raise_for_failure() converts a failed result into the matching AppError.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from errors import (
    AppError,
    AttemptsExceededError,
    DeliveryError,
    InvalidCodeError,
    NotFoundError,
    OtpExpiredError,
    RateLimitError,
    StoreError,
)


class OtpFailure(str, Enum):
    RATE_LIMITED = "rate_limited"
    DELIVERY_FAILED = "delivery_failed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    INVALID_CODE = "invalid_code"
    INTERNAL_STORE_ERROR = "internal_store_error"

    @property
    def recoverable(self) -> bool:
        """Whether requesting a fresh code can get the caller past this failure."""
        return self is not OtpFailure.INTERNAL_STORE_ERROR


_FAILURE_ERRORS: dict[OtpFailure, type[AppError]] = {
    OtpFailure.RATE_LIMITED: RateLimitError,
    OtpFailure.DELIVERY_FAILED: DeliveryError,
    OtpFailure.NOT_FOUND: NotFoundError,
    OtpFailure.EXPIRED: OtpExpiredError,
    OtpFailure.ATTEMPTS_EXCEEDED: AttemptsExceededError,
    OtpFailure.INVALID_CODE: InvalidCodeError,
    OtpFailure.INTERNAL_STORE_ERROR: StoreError,
}


class _OtpResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    failure: Optional[OtpFailure] = None

    def raise_for_failure(self) -> None:
        """Raise the AppError matching this result's failure; no-op on success."""
        if self.success or self.failure is None:
            return
        raise _FAILURE_ERRORS[self.failure](self.message, details=self._error_details())

    def _error_details(self) -> Optional[dict]:
        return None


class IssueOtpResult(_OtpResult):
    record_id: Optional[str] = None


class VerifyOtpResult(_OtpResult):
    verified: Optional[bool] = None
    remaining_attempts: Optional[int] = None

    def _error_details(self) -> Optional[dict]:
        if self.remaining_attempts is None:
            return None
        return {"remaining_attempts": self.remaining_attempts}


class OtpStats(BaseModel):
    """Record counts for monitoring."""

    total: int = 0
    active: int = 0
    expired: int = 0
    verified: int = 0
