"""
OTP verification document model.

Maps to the `otp-verifications` MongoDB collection.

One document per (email, purpose). The document survives a successful
verification (verified=True) so the verification gate can answer until
expires_at; it is removed on re-issue, attempt exhaustion, expiry, or by the
sweeper.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator

from schemas.models.base import MongoBaseModel


class OtpPurpose(str, Enum):
    """Workflow an OTP is scoped to. Add members to support new workflows."""

    APPLICATION_SUBMISSION = "application_submission"
    PASSWORD_RESET = "password_reset"


DEFAULT_MAX_ATTEMPTS = 3


class OtpRecord(MongoBaseModel):
    """Document model for the `otp-verifications` collection."""

    email: str
    purpose: OtpPurpose
    code: str = Field(pattern=r"^\d+$")
    created_at: datetime
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    verified: bool = False
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "expires_at", "updated_at")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Stores without tz awareness hand back naive UTC datetimes
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def _attempts_within_cap(self) -> "OtpRecord":
        if self.attempts > self.max_attempts:
            raise ValueError("attempts cannot exceed max_attempts")
        return self

    def to_mongo(self) -> dict:
        data = super().to_mongo()
        data["purpose"] = self.purpose.value
        return data

    @property
    def record_id(self) -> Optional[str]:
        return str(self.id) if self.id is not None else None

    @property
    def remaining_attempts(self) -> int:
        return max(self.max_attempts - self.attempts, 0)

    def is_expired(self, now: datetime) -> bool:
        """True once *now* is past expires_at (verification rule)."""
        return now > self.expires_at

    def is_live(self, now: datetime) -> bool:
        """True while expires_at is still ahead of *now* (gate rule)."""
        return self.expires_at > now
