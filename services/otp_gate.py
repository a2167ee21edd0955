"""
Verification gate: has this email proven control for this purpose?

Downstream workflows call is_verified() (or consume()) as a precondition.
Store failures fail closed.
"""

from __future__ import annotations

from typing import Literal, Union

from errors import StoreError
from repositories.protocol import OtpStore
from schemas.models.otp import OtpPurpose
from shared.clock import Clock
from shared.logging import get_logger, mask_email
from shared.validators import normalize_email, parse_purpose

log = get_logger(__name__)

VerifiedPolicy = Literal["linger", "consume"]


class VerificationGate:
    def __init__(
        self, store: OtpStore, clock: Clock, policy: VerifiedPolicy = "linger"
    ) -> None:
        self._store = store
        self._clock = clock
        self.policy = policy

    async def is_verified(
        self,
        email: str,
        purpose: Union[OtpPurpose, str] = OtpPurpose.APPLICATION_SUBMISSION,
    ) -> bool:
        """True iff a verified, unexpired record exists. Never mutates."""
        email = normalize_email(email)
        purpose = parse_purpose(purpose)
        try:
            record = await self._store.find_verified(email, purpose, self._clock.now())
        except StoreError as e:
            log.error(
                "otp_gate_store_error",
                email=mask_email(email),
                purpose=purpose.value,
                error=str(e),
            )
            return False
        return record is not None

    async def consume(
        self,
        email: str,
        purpose: Union[OtpPurpose, str] = OtpPurpose.APPLICATION_SUBMISSION,
    ) -> bool:
        """Answer like is_verified(); under the "consume" policy also spend the record.

        With "linger" the verified record keeps authorizing until it expires.
        """
        email = normalize_email(email)
        purpose = parse_purpose(purpose)
        try:
            record = await self._store.find_verified(email, purpose, self._clock.now())
            if record is None:
                return False
            if self.policy != "consume":
                return True
            if not await self._store.delete_by_id(record.id):
                # Another caller consumed it first
                return False
        except StoreError as e:
            log.error(
                "otp_gate_store_error",
                email=mask_email(email),
                purpose=purpose.value,
                error=str(e),
            )
            return False

        log.info("otp_consumed", email=mask_email(email), purpose=purpose.value)
        return True
