"""ZeptoMail implementation of OtpNotifier.

Sends one transactional email per OTP through the ZeptoMail HTTP API. The
HTML body comes from a per-purpose Jinja2 template; a plain-text body is
always included.
"""

import os
from dataclasses import dataclass
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from schemas.models.otp import OtpPurpose
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


@dataclass(frozen=True)
class OtpEmailTemplate:
    subject: str
    template_name: str
    instruction: str
    ignore_notice: str


OTP_TEMPLATES: dict[OtpPurpose, OtpEmailTemplate] = {
    OtpPurpose.APPLICATION_SUBMISSION: OtpEmailTemplate(
        subject="Copy Trading Application - Email Verification",
        template_name="otp_application_submission.html",
        instruction=(
            "Please use this OTP to verify your email address and complete "
            "your copy trading application:"
        ),
        ignore_notice="If you didn't request this OTP, please ignore this email.",
    ),
    OtpPurpose.PASSWORD_RESET: OtpEmailTemplate(
        subject="Password Reset - Email Verification",
        template_name="otp_password_reset.html",
        instruction="Use this OTP to reset your password:",
        ignore_notice=(
            "If you didn't request a password reset, please ignore this email."
        ),
    ),
}


class ZeptoMailNotifier:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "Campus For Wisdom",
        ttl_minutes: int = 10,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._ttl_minutes = ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, code: str, purpose: OtpPurpose) -> tuple[str, str, str]:
        """Return ``(subject, html_body, text_body)`` for *purpose*.

        Purposes without a dedicated template fall back to the application
        submission one.
        """
        spec = OTP_TEMPLATES.get(
            OtpPurpose(purpose), OTP_TEMPLATES[OtpPurpose.APPLICATION_SUBMISSION]
        )
        context = {
            "otp_code": code,
            "app_name": self._app_name,
            "ttl_minutes": self._ttl_minutes,
            "instruction": spec.instruction,
            "ignore_notice": spec.ignore_notice,
        }
        html_body = self._jinja.get_template(spec.template_name).render(**context)
        text_body = (
            f"{spec.subject}\n\n"
            f"{spec.instruction}\n\n"
            f"{code}\n\n"
            f"This OTP will expire in {self._ttl_minutes} minutes.\n\n"
            f"{spec.ignore_notice}"
        )
        return spec.subject, html_body, text_body

    async def _send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": to_email, "name": to_email}}],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=mask_email(to_email), subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=mask_email(to_email),
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=mask_email(to_email),
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        subject, html_body, text_body = self.render(code, purpose)
        return await self._send(email, subject, html_body, text_body)
