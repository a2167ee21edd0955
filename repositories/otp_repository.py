"""MongoDB-backed OtpStore.

The unique (email, purpose) index is what enforces one record per key: a
second insert for a taken key fails with DuplicateKeyError, which surfaces as
DuplicateRecordError. Attempt counting uses a guarded $inc so concurrent
verifications serialize on the document.
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import DuplicateRecordError, StoreError
from repositories.protocol import RecordId
from schemas.dto.responses.otp import OtpStats
from schemas.models.base import coerce_object_id
from schemas.models.otp import OtpPurpose, OtpRecord
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

T = TypeVar("T")

KEY_INDEX_NAME = "otp_email_purpose_unique"


def _store_op(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Translate driver errors into StoreError."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            log.error(
                "otp_store_error",
                operation=fn.__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreError(f"OTP store operation '{fn.__name__}' failed") from e

    return wrapper


class MongoOtpRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    @staticmethod
    def _key(email: str, purpose: OtpPurpose) -> dict:
        return {"email": email, "purpose": OtpPurpose(purpose).value}

    @_store_op
    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("email", ASCENDING), ("purpose", ASCENDING)],
            unique=True,
            name=KEY_INDEX_NAME,
        )
        await self._col.create_index([("expires_at", ASCENDING)])

    @_store_op
    async def insert(self, record: OtpRecord) -> OtpRecord:
        doc = record.to_mongo()
        try:
            result = await self._col.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateRecordError(
                "An OTP record already exists for this email and purpose",
                details={"email": mask_email(record.email), "purpose": record.purpose.value},
            ) from e
        return record.model_copy(update={"id": result.inserted_id})

    @_store_op
    async def find_active(
        self, email: str, purpose: OtpPurpose
    ) -> Optional[OtpRecord]:
        doc = await self._col.find_one({**self._key(email, purpose), "verified": False})
        return OtpRecord.from_mongo(doc)

    @_store_op
    async def find_recent(
        self, email: str, purpose: OtpPurpose, since: datetime
    ) -> Optional[OtpRecord]:
        doc = await self._col.find_one(
            {**self._key(email, purpose), "created_at": {"$gt": since}}
        )
        return OtpRecord.from_mongo(doc)

    @_store_op
    async def find_by_id(self, record_id: RecordId) -> Optional[OtpRecord]:
        oid = coerce_object_id(record_id)
        if oid is None:
            return None
        return OtpRecord.from_mongo(await self._col.find_one({"_id": oid}))

    @_store_op
    async def find_verified(
        self, email: str, purpose: OtpPurpose, now: datetime
    ) -> Optional[OtpRecord]:
        doc = await self._col.find_one(
            {
                **self._key(email, purpose),
                "verified": True,
                "expires_at": {"$gt": now},
            }
        )
        return OtpRecord.from_mongo(doc)

    @_store_op
    async def delete_by_key(
        self,
        email: str,
        purpose: OtpPurpose,
        created_before: Optional[datetime] = None,
    ) -> int:
        query = self._key(email, purpose)
        if created_before is not None:
            query["created_at"] = {"$lte": created_before}
        result = await self._col.delete_many(query)
        return result.deleted_count

    @_store_op
    async def delete_by_id(self, record_id: RecordId) -> bool:
        oid = coerce_object_id(record_id)
        if oid is None:
            return False
        result = await self._col.delete_one({"_id": oid})
        return result.deleted_count > 0

    @_store_op
    async def delete_unverified(self, record_id: RecordId) -> bool:
        """Delete the record unless a concurrent verify already flagged it."""
        oid = coerce_object_id(record_id)
        if oid is None:
            return False
        result = await self._col.delete_one({"_id": oid, "verified": False})
        return result.deleted_count > 0

    @_store_op
    async def increment_attempts(
        self, record_id: RecordId, max_attempts: int, now: datetime
    ) -> Optional[OtpRecord]:
        """Atomically bump attempts while it is below *max_attempts*.

        Returns the updated record, or None when the record is gone or
        already at the cap.
        """
        oid = coerce_object_id(record_id)
        if oid is None:
            return None
        doc = await self._col.find_one_and_update(
            {"_id": oid, "attempts": {"$lt": max_attempts}},
            {"$inc": {"attempts": 1}, "$set": {"updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return OtpRecord.from_mongo(doc)

    @_store_op
    async def mark_verified(self, record_id: RecordId, now: datetime) -> bool:
        oid = coerce_object_id(record_id)
        if oid is None:
            return False
        result = await self._col.update_one(
            {"_id": oid},
            {"$set": {"verified": True, "updated_at": now}},
        )
        return result.matched_count > 0

    @_store_op
    async def delete_expired(self, now: datetime) -> int:
        result = await self._col.delete_many({"expires_at": {"$lte": now}})
        return result.deleted_count

    @_store_op
    async def count_stats(self, now: datetime) -> OtpStats:
        return OtpStats(
            total=await self._col.count_documents({}),
            active=await self._col.count_documents(
                {"verified": False, "expires_at": {"$gt": now}}
            ),
            expired=await self._col.count_documents({"expires_at": {"$lte": now}}),
            verified=await self._col.count_documents({"verified": True}),
        )
