"""
Unit test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during unit tests, and provides the OTP collaborators every service test
needs: a controllable clock, an in-memory store and a recording notifier.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from config import OtpSettings
from repositories.memory import InMemoryOtpStore
from schemas.models.otp import OtpPurpose
from services.otp_service import OtpService

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    """Captures every send_otp call; flip `succeed` or set `error` to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, OtpPurpose]] = []
        self.succeed = True
        self.error: Exception | None = None

    async def send_otp(self, email: str, code: str, purpose: OtpPurpose) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append((email, code, purpose))
        return self.succeed

    @property
    def last_code(self) -> str:
        return self.sent[-1][1]


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all unit tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryOtpStore:
    return InMemoryOtpStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def otp_settings() -> OtpSettings:
    return OtpSettings(
        otp_code_length=6,
        otp_ttl_seconds=600,
        otp_rate_limit_seconds=120,
        otp_max_attempts=3,
        otp_verified_policy="linger",
    )


@pytest.fixture
def service(store, notifier, otp_settings, clock) -> OtpService:
    return OtpService(store, notifier, settings=otp_settings, clock=clock)
