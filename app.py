"""
OTP core factory.

build_otp_service() wires an OtpService from settings and already-built
collaborators; init_otp_service() additionally opens the MongoDB client,
ensures indexes and picks the configured notifier. The request handler that
consumes the service lives outside this package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from infrastructure.email.log_notifier import LogNotifier
from infrastructure.email.protocol import OtpNotifier
from infrastructure.email.zeptomail import ZeptoMailNotifier
from infrastructure.http_client import HttpClient
from repositories.otp_repository import MongoOtpRepository
from repositories.protocol import OtpStore
from services.otp_service import OtpService
from shared.clock import Clock
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_notifier(
    settings: AppSettings, http_client: Optional[HttpClient] = None
) -> OtpNotifier:
    """Return the notifier selected by EMAIL_PROVIDER."""
    if settings.email.email_provider == "log":
        if settings.is_production:
            log.warning("dev_notifier_in_production", provider="log")
        return LogNotifier()
    return ZeptoMailNotifier(
        settings.email,
        http_client or HttpClient(timeout=settings.email.email_timeout_seconds),
        app_name=settings.app_name,
        ttl_minutes=max(settings.otp.otp_ttl_seconds // 60, 1),
    )


def build_otp_service(
    settings: AppSettings,
    store: OtpStore,
    notifier: OtpNotifier,
    clock: Optional[Clock] = None,
) -> OtpService:
    return OtpService(store, notifier, settings=settings.otp, clock=clock)


@dataclass
class OtpRuntime:
    """An OtpService plus the connections it owns."""

    service: OtpService
    mongo_client: AsyncMongoClient
    http_client: Optional[HttpClient] = field(default=None)

    async def aclose(self) -> None:
        await self.mongo_client.close()
        if self.http_client is not None:
            await self.http_client.aclose()


async def init_otp_service(settings: Optional[AppSettings] = None) -> OtpRuntime:
    """Connect to MongoDB, ensure indexes and return a ready OtpRuntime."""
    if settings is None:
        settings = AppSettings()
    setup_logging(settings.logging)

    mongo_client: AsyncMongoClient = AsyncMongoClient(
        settings.db.mongodb_uri, tz_aware=True
    )
    collection = mongo_client[settings.db.db_name][settings.db.otp_collection]
    repository = MongoOtpRepository(collection)
    await repository.ensure_indexes()

    http_client = None
    if settings.email.email_provider == "zeptomail":
        http_client = HttpClient(timeout=settings.email.email_timeout_seconds)
    notifier = build_notifier(settings, http_client)

    log.info(
        "otp_service_ready",
        db_name=settings.db.db_name,
        collection=settings.db.otp_collection,
        email_provider=settings.email.email_provider,
        verified_policy=settings.otp.otp_verified_policy,
    )
    return OtpRuntime(
        service=build_otp_service(settings, repository, notifier),
        mongo_client=mongo_client,
        http_client=http_client,
    )
