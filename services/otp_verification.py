"""
OTP verification under expiry and attempt-limit policy.

Attempts are counted before the code is compared, so a correct first guess
leaves attempts == 1. The increment is an atomic guarded update in the store;
its post-increment value decides the outcome, which keeps concurrent guesses
for one record from sharing an attempt.
"""

from __future__ import annotations

import hmac
from typing import Union

from errors import StoreError
from repositories.protocol import OtpStore
from schemas.dto.responses.otp import OtpFailure, VerifyOtpResult
from schemas.models.otp import OtpPurpose, OtpRecord
from shared.clock import Clock
from shared.logging import get_logger, mask_email
from shared.validators import normalize_email, parse_purpose

log = get_logger(__name__)

MSG_VERIFIED = "OTP verified successfully!"
MSG_NOT_FOUND = "No OTP found for this email. Please request a new OTP."
MSG_EXPIRED = "OTP has expired. Please request a new one."
MSG_ATTEMPTS_EXCEEDED = "Too many incorrect attempts. Please request a new OTP."
MSG_STORE_FAILED = "Failed to verify OTP. Please try again."


def invalid_code_message(remaining: int) -> str:
    return f"Invalid OTP. {remaining} attempt{'' if remaining == 1 else 's'} remaining."


def _failed(failure: OtpFailure, message: str, **extra) -> VerifyOtpResult:
    return VerifyOtpResult(success=False, message=message, failure=failure, **extra)


class OtpVerificationService:
    def __init__(self, store: OtpStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def verify(
        self,
        email: str,
        code: str,
        purpose: Union[OtpPurpose, str] = OtpPurpose.APPLICATION_SUBMISSION,
    ) -> VerifyOtpResult:
        """Check *code* against the active OTP for (*email*, *purpose*).

        The code must match exactly; surrounding whitespace is not trimmed.

        Raises:
            ValidationError: empty/malformed email or unknown purpose.
        """
        email = normalize_email(email)
        purpose = parse_purpose(purpose)
        try:
            return await self._verify(email, code or "", purpose)
        except StoreError as e:
            log.error(
                "otp_verify_store_error",
                email=mask_email(email),
                purpose=purpose.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return _failed(OtpFailure.INTERNAL_STORE_ERROR, MSG_STORE_FAILED)

    async def _verify(
        self, email: str, code: str, purpose: OtpPurpose
    ) -> VerifyOtpResult:
        masked = mask_email(email)
        record = await self._store.find_active(email, purpose)
        if record is None:
            log.info("otp_verification_failed", email=masked, purpose=purpose.value, reason="not_found")
            return _failed(OtpFailure.NOT_FOUND, MSG_NOT_FOUND)

        now = self._clock.now()
        if record.is_expired(now):
            await self._store.delete_unverified(record.id)
            log.info("otp_verification_failed", email=masked, purpose=purpose.value, reason="expired")
            return _failed(OtpFailure.EXPIRED, MSG_EXPIRED)

        if record.attempts >= record.max_attempts:
            return await self._exhausted(record, masked)

        counted = await self._store.increment_attempts(record.id, record.max_attempts, now)
        if counted is None:
            # Lost the race for the last attempt, or the record changed underneath
            current = await self._store.find_by_id(record.id)
            if current is None or current.verified:
                log.info("otp_verification_failed", email=masked, purpose=purpose.value, reason="not_found")
                return _failed(OtpFailure.NOT_FOUND, MSG_NOT_FOUND)
            return await self._exhausted(current, masked)

        if not hmac.compare_digest(counted.code.encode(), code.encode()):
            if counted.attempts >= counted.max_attempts:
                return await self._exhausted(counted, masked)
            remaining = counted.remaining_attempts
            log.info(
                "otp_verification_failed",
                email=masked,
                purpose=purpose.value,
                reason="invalid_code",
                attempts=counted.attempts,
                remaining=remaining,
            )
            return _failed(
                OtpFailure.INVALID_CODE,
                invalid_code_message(remaining),
                remaining_attempts=remaining,
            )

        if not await self._store.mark_verified(counted.id, now):
            # Replaced or swept after the attempt was counted
            log.info("otp_verification_failed", email=masked, purpose=purpose.value, reason="not_found")
            return _failed(OtpFailure.NOT_FOUND, MSG_NOT_FOUND)

        log.info(
            "otp_verified",
            email=masked,
            purpose=purpose.value,
            record_id=counted.record_id,
            attempts=counted.attempts,
        )
        return VerifyOtpResult(success=True, message=MSG_VERIFIED, verified=True)

    async def _exhausted(self, record: OtpRecord, masked: str) -> VerifyOtpResult:
        # A concurrent correct guess may have flagged it verified; keep that one
        await self._store.delete_unverified(record.id)
        log.warning(
            "otp_verification_failed",
            email=masked,
            purpose=record.purpose.value,
            reason="attempts_exceeded",
            attempts=record.attempts,
        )
        return _failed(
            OtpFailure.ATTEMPTS_EXCEEDED, MSG_ATTEMPTS_EXCEEDED, remaining_attempts=0
        )
