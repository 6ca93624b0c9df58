"""
User document model.

Maps to the `users` MongoDB collection.

Two creation paths produce slightly different shapes:
- Password signup: password_hash set, google_id None
- Google OAuth signup: google_id set, password_hash None, agreement implied

Both go through explicit factories that hash the password before the document
exists; nothing hashes implicitly on save.

The password-reset slot (reset_token_hash / reset_stage / reset_expires_at /
reset_attempts) holds either a hashed OTP (stage "otp") or a hashed exchange
token (stage "verified"). Starting a new reset overwrites it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field, model_validator

from schemas.models.base import MongoBaseModel
from shared.crypto import hash_password
from shared.datetime_utils import utc_now

DEFAULT_STORAGE_LIMIT = 15 * 1024 * 1024 * 1024  # 15 GiB

RESET_STAGE_OTP = "otp"
RESET_STAGE_VERIFIED = "verified"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    password_hash: Optional[str] = None
    google_id: Optional[str] = None
    username: str = ""
    agreement_accepted: bool = False
    storage_used: int = Field(default=0, ge=0)
    storage_limit: int = DEFAULT_STORAGE_LIMIT
    last_logout_at: Optional[datetime] = None

    reset_token_hash: Optional[str] = None
    reset_stage: Optional[Literal["otp", "verified"]] = None
    reset_expires_at: Optional[datetime] = None
    reset_attempts: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _has_auth_method(self) -> "UserDoc":
        if not self.password_hash and not self.google_id:
            raise ValueError("user must have a password or an external identity")
        return self

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @classmethod
    def create_with_password(
        cls,
        email: str,
        password: str,
        *,
        agreement_accepted: bool,
        username: str = "",
        now: Optional[datetime] = None,
    ) -> "UserDoc":
        now = now or utc_now()
        return cls(
            email=normalize_email(email),
            password_hash=hash_password(password),
            username=username,
            agreement_accepted=agreement_accepted,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def create_from_identity(
        cls,
        email: str,
        google_id: str,
        *,
        username: str = "",
        now: Optional[datetime] = None,
    ) -> "UserDoc":
        now = now or utc_now()
        return cls(
            email=normalize_email(email),
            google_id=google_id,
            username=username,
            agreement_accepted=True,
            created_at=now,
            updated_at=now,
        )
