"""
Refresh token ledger storage — the `refresh-tokens` collection.

revoke_if_active() is the rotation primitive: a single conditional
find_one_and_update on `revoked_at: None`, so of several concurrent callers
presenting the same token exactly one sees the document flip.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument

from repositories.base import translate_storage_errors
from schemas.models.token import RefreshTokenDoc


class RefreshTokenRepository:
    def __init__(self, db) -> None:
        self._col = db["refresh-tokens"]

    @translate_storage_errors
    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token", ASCENDING)], unique=True)
        await self._col.create_index([("user_id", ASCENDING)])
        # Expired links are kept until MongoDB's TTL monitor removes them
        await self._col.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    @translate_storage_errors
    async def insert(self, doc: RefreshTokenDoc) -> RefreshTokenDoc:
        result = await self._col.insert_one(doc.to_mongo())
        return doc.model_copy(update={"id": result.inserted_id})

    @translate_storage_errors
    async def find_by_token(self, token: str) -> Optional[RefreshTokenDoc]:
        doc = await self._col.find_one({"token": token})
        return RefreshTokenDoc.from_mongo(doc)

    @translate_storage_errors
    async def revoke_if_active(
        self,
        token: str,
        *,
        revoked_at: datetime,
        revoked_by_ip: Optional[str],
        replaced_by_token: Optional[str] = None,
    ) -> Optional[RefreshTokenDoc]:
        """Atomically revoke *token* if it is not revoked yet.

        Returns the updated document, or None when the token is unknown or
        another caller revoked it first.
        """
        update: dict = {"revoked_at": revoked_at, "revoked_by_ip": revoked_by_ip}
        if replaced_by_token is not None:
            update["replaced_by_token"] = replaced_by_token
        doc = await self._col.find_one_and_update(
            {"token": token, "revoked_at": None},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return RefreshTokenDoc.from_mongo(doc)

    @translate_storage_errors
    async def revoke_all_for_user(
        self, user_id: Any, *, revoked_at: datetime, revoked_by_ip: Optional[str]
    ) -> int:
        uid = user_id if isinstance(user_id, ObjectId) else ObjectId(str(user_id))
        result = await self._col.update_many(
            {"user_id": uid, "revoked_at": None},
            {"$set": {"revoked_at": revoked_at, "revoked_by_ip": revoked_by_ip}},
        )
        return result.modified_count
