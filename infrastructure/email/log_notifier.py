"""Development notifier: writes the code to the log instead of sending mail."""

from schemas.models.otp import OtpPurpose
from shared.logging import get_logger

log = get_logger(__name__)


class LogNotifier:
    async def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        # dev_passcode must stay out of REDACTED_FIELDS
        log.warning(
            "dev_otp_delivery",
            to_email=email,
            purpose=OtpPurpose(purpose).value,
            dev_passcode=code,
        )
        return True
