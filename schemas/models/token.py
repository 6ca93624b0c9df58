"""
Refresh token document model.

Maps to the `refresh-tokens` MongoDB collection.

Each document is one link in a rotation chain. Rotation sets revoked_at and
replaced_by_token on the old link and inserts the next one; documents are
never deleted by the application (a TTL index on expires_at cleans them up),
so an already-rotated token stays visible for reuse detection.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class RefreshTokenDoc(MongoBaseModel):
    """Document model for the `refresh-tokens` collection."""

    user_id: PyObjectId
    token: str
    expires_at: datetime
    created_at: Optional[datetime] = None
    created_by_ip: Optional[str] = None
    # How the session was opened ("pwd", "google"); every rotation inherits it
    auth_method: str = "pwd"
    revoked_at: Optional[datetime] = None
    revoked_by_ip: Optional[str] = None
    replaced_by_token: Optional[str] = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        return not self.is_revoked and not self.is_expired(now)
