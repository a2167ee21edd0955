"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
AppSettings composes the per-concern sub-configs so callers only ever build
one object.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemas.models.otp import OtpPurpose


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "otp-core"
    otp_collection: str = "otp-verifications"


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_code_length: int = Field(default=6, ge=4, le=10)
    otp_ttl_seconds: int = Field(default=600, gt=0)  # 10 minutes
    otp_rate_limit_seconds: int = Field(default=120, ge=0)  # 2 minutes
    otp_max_attempts: int = Field(default=3, ge=1)

    # "linger": a verified record answers the gate until it expires
    # "consume": the first consume() call deletes it
    otp_verified_policy: Literal["linger", "consume"] = "linger"
    otp_default_purpose: OtpPurpose = OtpPurpose.APPLICATION_SUBMISSION


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    email_provider: Literal["zeptomail", "log"] = "zeptomail"
    email_timeout_seconds: float = 5.0

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@example.com"
    zepto_from_name: str = "Campus For Wisdom"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"  # "json" in production


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "Campus For Wisdom"
    app_url: str = "https://example.com"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    otp: Optional[OtpSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
