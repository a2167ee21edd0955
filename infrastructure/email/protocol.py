"""OtpNotifier protocol. Services depend on this, not the concrete implementation."""

from typing import Protocol

from schemas.models.otp import OtpPurpose


class OtpNotifier(Protocol):
    async def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        """Deliver *code* to *email*. All-or-nothing: True only when accepted."""
        ...
