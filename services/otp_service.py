"""
OtpService: the public surface of the OTP core.

Bundles issuance, verification, the gate and the sweeper over one store,
one notifier and one clock.
"""

from __future__ import annotations

from typing import Optional, Union

from config import OtpSettings
from infrastructure.email.protocol import OtpNotifier
from repositories.protocol import OtpStore
from schemas.dto.responses.otp import IssueOtpResult, OtpStats, VerifyOtpResult
from schemas.models.otp import OtpPurpose
from services.otp_gate import VerificationGate
from services.otp_issuance import OtpIssuanceService
from services.otp_sweeper import OtpSweeper
from services.otp_verification import OtpVerificationService
from shared.clock import Clock, SystemClock

PurposeArg = Union[OtpPurpose, str, None]


class OtpService:
    def __init__(
        self,
        store: OtpStore,
        notifier: OtpNotifier,
        settings: Optional[OtpSettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings or OtpSettings()
        self.clock = clock or SystemClock()
        self.store = store
        self.issuance = OtpIssuanceService(store, notifier, self.clock, self.settings)
        self.verification = OtpVerificationService(store, self.clock)
        self.gate = VerificationGate(
            store, self.clock, policy=self.settings.otp_verified_policy
        )
        self.sweeper = OtpSweeper(store, self.clock)

    def _purpose(self, purpose: PurposeArg) -> Union[OtpPurpose, str]:
        return purpose if purpose is not None else self.settings.otp_default_purpose

    async def issue(self, email: str, purpose: PurposeArg = None) -> IssueOtpResult:
        return await self.issuance.issue(email, self._purpose(purpose))

    async def verify(
        self, email: str, code: str, purpose: PurposeArg = None
    ) -> VerifyOtpResult:
        return await self.verification.verify(email, code, self._purpose(purpose))

    async def is_verified(self, email: str, purpose: PurposeArg = None) -> bool:
        return await self.gate.is_verified(email, self._purpose(purpose))

    async def consume(self, email: str, purpose: PurposeArg = None) -> bool:
        return await self.gate.consume(email, self._purpose(purpose))

    async def sweep_expired(self) -> int:
        return await self.sweeper.sweep_expired()

    async def stats(self) -> OtpStats:
        return await self.sweeper.stats()
