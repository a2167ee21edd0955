"""Expired-record cleanup and monitoring counts. Scheduling is up to the caller."""

from __future__ import annotations

from errors import StoreError
from repositories.protocol import OtpStore
from schemas.dto.responses.otp import OtpStats
from shared.clock import Clock
from shared.logging import get_logger

log = get_logger(__name__)


class OtpSweeper:
    def __init__(self, store: OtpStore, clock: Clock) -> None:
        self._store = store
        self._clock = clock

    async def sweep_expired(self) -> int:
        """Delete every record with expires_at <= now, verified or not.

        Set-based on expiry, so it is idempotent and safe to run alongside
        issuance and verification. A store failure deletes nothing and
        reports 0; the next run picks the records up.
        """
        try:
            deleted = await self._store.delete_expired(self._clock.now())
        except StoreError as e:
            log.error("otp_cleanup_error", error=str(e), error_type=type(e).__name__)
            return 0
        if deleted > 0:
            log.info("otp_expired_cleanup", deleted_count=deleted)
        return deleted

    async def stats(self) -> OtpStats:
        try:
            return await self._store.count_stats(self._clock.now())
        except StoreError as e:
            log.error("otp_stats_error", error=str(e), error_type=type(e).__name__)
            return OtpStats()
