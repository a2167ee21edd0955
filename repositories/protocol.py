"""OtpStore protocol. Services depend on this, not on a concrete store."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Union, runtime_checkable

from bson import ObjectId

from schemas.dto.responses.otp import OtpStats
from schemas.models.otp import OtpPurpose, OtpRecord

RecordId = Union[str, ObjectId]


@runtime_checkable
class OtpStore(Protocol):
    """Keyed OTP record store; the key is (normalized email, purpose).

    Implementations must guarantee at most one record per key (insert raises
    DuplicateRecordError when the key is taken) and must make
    increment_attempts atomic. Driver failures surface as StoreError.
    """

    async def insert(self, record: OtpRecord) -> OtpRecord: ...

    async def find_active(
        self, email: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]: ...

    async def find_recent(
        self, email: str, purpose: OtpPurpose, since: datetime
    ) -> Optional[OtpRecord]: ...

    async def find_by_id(self, record_id: RecordId) -> Optional[OtpRecord]: ...

    async def find_verified(
        self, email: str, purpose: OtpPurpose, now: datetime
    ) -> Optional[OtpRecord]: ...

    async def delete_by_key(
        self,
        email: str,
        purpose: OtpPurpose,
        created_before: Optional[datetime] = None,
    ) -> int: ...

    async def delete_by_id(self, record_id: RecordId) -> bool: ...

    async def delete_unverified(self, record_id: RecordId) -> bool: ...

    async def increment_attempts(
        self, record_id: RecordId, max_attempts: int, now: datetime
    ) -> Optional[OtpRecord]: ...

    async def mark_verified(self, record_id: RecordId, now: datetime) -> bool: ...

    async def delete_expired(self, now: datetime) -> int: ...

    async def count_stats(self, now: datetime) -> OtpStats: ...
