"""
Credential store — the `users` collection.

Lookups return UserDoc models (or None). Writes that guard a state transition
(OTP → exchange token, exchange token → new password) are conditional updates
so each transition can happen at most once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from errors import ConflictError
from repositories.base import translate_storage_errors
from schemas.models.user import (
    RESET_STAGE_OTP,
    RESET_STAGE_VERIFIED,
    UserDoc,
    normalize_email,
)
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

_CLEARED_RESET_SLOT = {
    "reset_token_hash": None,
    "reset_stage": None,
    "reset_expires_at": None,
    "reset_attempts": 0,
}


def _oid(user_id: Any) -> ObjectId:
    return user_id if isinstance(user_id, ObjectId) else ObjectId(str(user_id))


class UserRepository:
    def __init__(self, db) -> None:
        self._col = db["users"]

    @translate_storage_errors
    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        # google_id is stored as null for password accounts, so a sparse
        # index would still collide; only index real identifiers.
        await self._col.create_index(
            [("google_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"google_id": {"$type": "string"}},
        )

    # ── Lookups ──────────────────────────────────────────────────────────────

    @translate_storage_errors
    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        doc = await self._col.find_one({"email": normalize_email(email)})
        return UserDoc.from_mongo(doc)

    @translate_storage_errors
    async def find_by_id(self, user_id: Any) -> Optional[UserDoc]:
        if not ObjectId.is_valid(str(user_id)):
            return None
        doc = await self._col.find_one({"_id": _oid(user_id)})
        return UserDoc.from_mongo(doc)

    @translate_storage_errors
    async def find_by_google_id(self, google_id: str) -> Optional[UserDoc]:
        doc = await self._col.find_one({"google_id": google_id})
        return UserDoc.from_mongo(doc)

    @translate_storage_errors
    async def find_by_reset_token(
        self, token_hash: str, stage: str
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one(
            {"reset_token_hash": token_hash, "reset_stage": stage}
        )
        return UserDoc.from_mongo(doc)

    # ── Writes ───────────────────────────────────────────────────────────────

    @translate_storage_errors
    async def insert(self, user: UserDoc) -> UserDoc:
        try:
            result = await self._col.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            # Race: the email was registered between the caller's check and insert
            log.warning("user_insert_failed", reason="duplicate_key")
            raise ConflictError(
                "User with this email already exists", field="email"
            ) from e
        return user.model_copy(update={"id": result.inserted_id})

    @translate_storage_errors
    async def update_fields(self, user_id: Any, fields: dict) -> Optional[UserDoc]:
        doc = await self._col.find_one_and_update(
            {"_id": _oid(user_id)},
            {"$set": {**fields, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        return UserDoc.from_mongo(doc)

    async def link_google_id(self, user_id: Any, google_id: str) -> Optional[UserDoc]:
        return await self.update_fields(user_id, {"google_id": google_id})

    async def set_password_hash(
        self, user_id: Any, password_hash: str
    ) -> Optional[UserDoc]:
        return await self.update_fields(user_id, {"password_hash": password_hash})

    @translate_storage_errors
    async def set_last_logout(self, user_id: Any, when: datetime) -> bool:
        result = await self._col.update_one(
            {"_id": _oid(user_id)},
            {"$set": {"last_logout_at": when, "updated_at": when}},
        )
        return result.matched_count == 1

    # ── Password reset slot ──────────────────────────────────────────────────

    @translate_storage_errors
    async def start_reset(
        self, user_id: Any, otp_hash: str, expires_at: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": _oid(user_id)},
            {
                "$set": {
                    "reset_token_hash": otp_hash,
                    "reset_stage": RESET_STAGE_OTP,
                    "reset_expires_at": expires_at,
                    "reset_attempts": 0,
                }
            },
        )

    @translate_storage_errors
    async def swap_otp_for_exchange_token(
        self,
        user_id: Any,
        otp_hash: str,
        exchange_hash: str,
        expires_at: datetime,
    ) -> bool:
        """Consume the OTP; only one caller can win for a given OTP."""
        doc = await self._col.find_one_and_update(
            {
                "_id": _oid(user_id),
                "reset_token_hash": otp_hash,
                "reset_stage": RESET_STAGE_OTP,
            },
            {
                "$set": {
                    "reset_token_hash": exchange_hash,
                    "reset_stage": RESET_STAGE_VERIFIED,
                    "reset_expires_at": expires_at,
                    "reset_attempts": 0,
                }
            },
        )
        return doc is not None

    @translate_storage_errors
    async def record_failed_otp(self, user_id: Any) -> int:
        """Increment the failed-attempt counter and return the new value."""
        doc = await self._col.find_one_and_update(
            {"_id": _oid(user_id), "reset_stage": RESET_STAGE_OTP},
            {"$inc": {"reset_attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return int(doc.get("reset_attempts", 0)) if doc else 0

    @translate_storage_errors
    async def clear_reset(self, user_id: Any) -> None:
        await self._col.update_one(
            {"_id": _oid(user_id)}, {"$set": dict(_CLEARED_RESET_SLOT)}
        )

    @translate_storage_errors
    async def complete_reset(
        self,
        user_id: Any,
        exchange_hash: str,
        password_hash: str,
        when: datetime,
    ) -> bool:
        """Swap in the new password hash if the exchange token is still current."""
        doc = await self._col.find_one_and_update(
            {
                "_id": _oid(user_id),
                "reset_token_hash": exchange_hash,
                "reset_stage": RESET_STAGE_VERIFIED,
            },
            {
                "$set": {
                    **_CLEARED_RESET_SLOT,
                    "password_hash": password_hash,
                    "last_logout_at": when,
                    "updated_at": when,
                }
            },
        )
        return doc is not None

    # ── Storage counters ─────────────────────────────────────────────────────

    @translate_storage_errors
    async def increment_storage_used(self, user_id: Any, delta: int) -> None:
        uid = _oid(user_id)
        await self._col.update_one({"_id": uid}, {"$inc": {"storage_used": delta}})
        if delta < 0:
            await self._col.update_one(
                {"_id": uid, "storage_used": {"$lt": 0}},
                {"$set": {"storage_used": 0}},
            )
