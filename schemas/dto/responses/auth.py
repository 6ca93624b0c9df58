"""
Response DTOs for authentication endpoints.

UserProfileResponse — public view of a user (no hashes, no reset slot)
AuthResponse        — signup (201), login, Google callback
TokenPairResponse   — refresh-token
ProfileResponse     — me / profile
VerifyOtpResponse   — verify-otp
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserProfileResponse(BaseModel):
    """Public user shape returned by every endpoint that returns a user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    username: str
    password_set: bool
    google_linked: bool
    agreement_accepted: bool
    storage_used: int
    storage_limit: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            username=user.username,
            password_set=user.has_password,
            google_linked=bool(user.google_id),
            agreement_accepted=user.agreement_accepted,
            storage_used=user.storage_used,
            storage_limit=user.storage_limit,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Response body for signup (201), login (200) and the Google callback."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse
    access_token: str
    refresh_token: str


class TokenPairResponse(BaseModel):
    """Response body for POST /api/auth/refresh-token (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    refresh_token: str


class ProfileResponse(BaseModel):
    """Response body for GET /api/auth/me and PUT /api/auth/profile."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse


class VerifyOtpResponse(BaseModel):
    """Response body for POST /api/auth/verify-otp (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    reset_token: str
    expires_in: int  # seconds
