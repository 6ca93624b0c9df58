"""
Request DTOs for authentication endpoints.

SignupRequest          — POST /api/auth/signup
LoginRequest           — POST /api/auth/login
RefreshTokenRequest    — POST /api/auth/refresh-token
RevokeTokenRequest     — POST /api/auth/revoke-token
LogoutRequest          — POST /api/auth/logout
EditProfileRequest     — PUT  /api/auth/profile
ChangePasswordRequest  — PUT  /api/auth/change-password
ForgotPasswordRequest  — POST /api/auth/forgot-password
VerifyOtpRequest       — POST /api/auth/verify-otp
ResetPasswordRequest   — POST /api/auth/reset-password

Fields are snake_case; the camelCase names used by existing web clients are
accepted as aliases.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/signup."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")
    agreement_accepted: bool = Field(default=False, alias="agreementAccepted")


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /api/auth/refresh-token."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(min_length=1, alias="refreshToken")


class RevokeTokenRequest(BaseModel):
    """Request body for POST /api/auth/revoke-token."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """Request body for POST /api/auth/logout.

    The refresh token is optional; without it the bearer access token
    identifies the session to end.
    """

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")


class EditProfileRequest(BaseModel):
    """Request body for PUT /api/auth/profile."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(max_length=100)


class ChangePasswordRequest(BaseModel):
    """Request body for PUT /api/auth/change-password."""

    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(alias="oldPassword")
    new_password: str = Field(alias="newPassword")


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/auth/forgot-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)


class VerifyOtpRequest(BaseModel):
    """Request body for POST /api/auth/verify-otp.

    ``otp`` is the 6-digit code sent to the user's email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(min_length=1)
    otp: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password.

    ``token`` is the exchange token returned by verify-otp, not the OTP.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(alias="newPassword")
