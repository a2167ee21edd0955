"""In-process OtpStore for development and tests.

Records are held in a dict keyed by (email, purpose), which gives the same
one-record-per-key guarantee as the Mongo unique index. Each operation runs
under one asyncio.Lock; the lock is never held across an await outside the
store.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional

from bson import ObjectId

from errors import DuplicateRecordError
from repositories.protocol import RecordId
from schemas.dto.responses.otp import OtpStats
from schemas.models.base import coerce_object_id
from schemas.models.otp import OtpPurpose, OtpRecord

_Key = tuple[str, OtpPurpose]


class InMemoryOtpStore:
    def __init__(self) -> None:
        self._records: dict[_Key, OtpRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def all(self) -> list[OtpRecord]:
        return [r.model_copy() for r in self._records.values()]

    def _by_id(self, record_id: RecordId) -> Optional[tuple[_Key, OtpRecord]]:
        oid = coerce_object_id(record_id)
        if oid is None:
            return None
        for key, record in self._records.items():
            if record.id == oid:
                return key, record
        return None

    async def insert(self, record: OtpRecord) -> OtpRecord:
        key = (record.email, OtpPurpose(record.purpose))
        async with self._lock:
            if key in self._records:
                raise DuplicateRecordError(
                    "An OTP record already exists for this email and purpose",
                    details={"purpose": key[1].value},
                )
            stored = record.model_copy(update={"id": record.id or ObjectId()})
            self._records[key] = stored
            return stored.model_copy()

    async def find_active(
        self, email: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]:
        async with self._lock:
            record = self._records.get((email, OtpPurpose(purpose)))
            if record is None or record.verified:
                return None
            return record.model_copy()

    async def find_recent(
        self, email: str, purpose: OtpPurpose, since: datetime
    ) -> Optional[OtpRecord]:
        async with self._lock:
            record = self._records.get((email, OtpPurpose(purpose)))
            if record is None or record.created_at <= since:
                return None
            return record.model_copy()

    async def find_by_id(self, record_id: RecordId) -> Optional[OtpRecord]:
        async with self._lock:
            found = self._by_id(record_id)
            return found[1].model_copy() if found else None

    async def find_verified(
        self, email: str, purpose: OtpPurpose, now: datetime
    ) -> Optional[OtpRecord]:
        async with self._lock:
            record = self._records.get((email, OtpPurpose(purpose)))
            if record is None or not record.verified or not record.is_live(now):
                return None
            return record.model_copy()

    async def delete_by_key(
        self,
        email: str,
        purpose: OtpPurpose,
        created_before: Optional[datetime] = None,
    ) -> int:
        key = (email, OtpPurpose(purpose))
        async with self._lock:
            record = self._records.get(key)
            if record is None:
                return 0
            if created_before is not None and record.created_at > created_before:
                return 0
            del self._records[key]
            return 1

    async def delete_by_id(self, record_id: RecordId) -> bool:
        async with self._lock:
            found = self._by_id(record_id)
            if found is None:
                return False
            del self._records[found[0]]
            return True

    async def delete_unverified(self, record_id: RecordId) -> bool:
        async with self._lock:
            found = self._by_id(record_id)
            if found is None or found[1].verified:
                return False
            del self._records[found[0]]
            return True

    async def increment_attempts(
        self, record_id: RecordId, max_attempts: int, now: datetime
    ) -> Optional[OtpRecord]:
        async with self._lock:
            found = self._by_id(record_id)
            if found is None or found[1].attempts >= max_attempts:
                return None
            key, record = found
            updated = record.model_copy(
                update={"attempts": record.attempts + 1, "updated_at": now}
            )
            self._records[key] = updated
            return updated.model_copy()

    async def mark_verified(self, record_id: RecordId, now: datetime) -> bool:
        async with self._lock:
            found = self._by_id(record_id)
            if found is None:
                return False
            key, record = found
            self._records[key] = record.model_copy(
                update={"verified": True, "updated_at": now}
            )
            return True

    async def delete_expired(self, now: datetime) -> int:
        async with self._lock:
            expired = [k for k, r in self._records.items() if r.expires_at <= now]
            for key in expired:
                del self._records[key]
            return len(expired)

    async def count_stats(self, now: datetime) -> OtpStats:
        async with self._lock:
            records = list(self._records.values())
        return OtpStats(
            total=len(records),
            active=sum(1 for r in records if not r.verified and r.is_live(now)),
            expired=sum(1 for r in records if r.expires_at <= now),
            verified=sum(1 for r in records if r.verified),
        )
