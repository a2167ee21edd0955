"""
OTP issuance: rate limit, create, deliver, compensate.

The only record ever left behind by issue() is one whose code was handed to
the notifier successfully; a failed delivery deletes the record it just
inserted.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Union

from config import OtpSettings
from errors import DuplicateRecordError, StoreError
from infrastructure.email.protocol import OtpNotifier
from repositories.protocol import OtpStore
from schemas.dto.responses.otp import IssueOtpResult, OtpFailure
from schemas.models.otp import OtpPurpose, OtpRecord
from shared.clock import Clock
from shared.generators import generate_otp_code
from shared.logging import get_logger, mask_email
from shared.validators import normalize_email, parse_purpose

log = get_logger(__name__)

MSG_SENT = "OTP sent successfully to your email address"
MSG_DELIVERY_FAILED = (
    "Failed to send OTP email. Please check your email address and try again."
)
MSG_STORE_FAILED = "Failed to generate OTP. Please try again."


def describe_wait(seconds: int) -> str:
    """Human wording for a wait of *seconds*: ``120`` → ``"2 minutes"``."""
    if seconds >= 60 and seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute{'' if minutes == 1 else 's'}"
    return f"{seconds} second{'' if seconds == 1 else 's'}"


class OtpIssuanceService:
    def __init__(
        self,
        store: OtpStore,
        notifier: OtpNotifier,
        clock: Clock,
        settings: OtpSettings,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._clock = clock
        self._settings = settings

    def _rate_limited(self) -> IssueOtpResult:
        wait = describe_wait(self._settings.otp_rate_limit_seconds)
        return IssueOtpResult(
            success=False,
            message=f"Please wait {wait} before requesting another OTP",
            failure=OtpFailure.RATE_LIMITED,
        )

    async def issue(
        self,
        email: str,
        purpose: Union[OtpPurpose, str] = OtpPurpose.APPLICATION_SUBMISSION,
    ) -> IssueOtpResult:
        """Issue a fresh OTP for (*email*, *purpose*) and send it.

        Raises:
            ValidationError: empty/malformed email or unknown purpose.
        """
        email = normalize_email(email)
        purpose = parse_purpose(purpose)
        masked = mask_email(email)

        try:
            now = self._clock.now()
            window = timedelta(seconds=self._settings.otp_rate_limit_seconds)
            if await self._store.find_recent(email, purpose, since=now - window):
                log.warning("otp_rate_limited", email=masked, purpose=purpose.value)
                return self._rate_limited()

            record = OtpRecord(
                email=email,
                purpose=purpose,
                code=generate_otp_code(self._settings.otp_code_length),
                created_at=now,
                expires_at=now + timedelta(seconds=self._settings.otp_ttl_seconds),
                attempts=0,
                max_attempts=self._settings.otp_max_attempts,
                verified=False,
            )

            # Only records older than the rate-limit window are replaced
            await self._store.delete_by_key(email, purpose, created_before=now - window)
            try:
                record = await self._store.insert(record)
            except DuplicateRecordError:
                # A concurrent issue() for the same key inserted first
                log.warning(
                    "otp_rate_limited",
                    email=masked,
                    purpose=purpose.value,
                    reason="concurrent_issue",
                )
                return self._rate_limited()
        except StoreError as e:
            log.error(
                "otp_issue_store_error",
                email=masked,
                purpose=purpose.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return IssueOtpResult(
                success=False,
                message=MSG_STORE_FAILED,
                failure=OtpFailure.INTERNAL_STORE_ERROR,
            )

        if not await self._deliver(email, record.code, purpose):
            try:
                await self._store.delete_by_id(record.id)
            except StoreError as e:
                log.error(
                    "otp_compensation_failed",
                    email=masked,
                    record_id=record.record_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            log.warning("otp_delivery_failed", email=masked, purpose=purpose.value)
            return IssueOtpResult(
                success=False,
                message=MSG_DELIVERY_FAILED,
                failure=OtpFailure.DELIVERY_FAILED,
            )

        log.info(
            "otp_issued",
            email=masked,
            purpose=purpose.value,
            record_id=record.record_id,
            expires_at=record.expires_at.isoformat(),
        )
        return IssueOtpResult(success=True, message=MSG_SENT, record_id=record.record_id)

    async def _deliver(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        try:
            return bool(await self._notifier.send_otp(email, code, purpose))
        except Exception as e:
            log.error(
                "otp_notifier_error",
                email=mask_email(email),
                purpose=purpose.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
