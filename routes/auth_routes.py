"""
Authentication routes.

POST /api/auth/signup           — create a password account (201)
POST /api/auth/login            — email + password login
POST /api/auth/refresh-token    — rotate a refresh token
POST /api/auth/revoke-token     — revoke a refresh token without rotation
POST /api/auth/logout           — end the session (bearer optional)
GET  /api/auth/me               — current user's profile
PUT  /api/auth/profile          — edit username
PUT  /api/auth/change-password  — change password
POST /api/auth/forgot-password  — email a reset OTP
POST /api/auth/verify-otp       — exchange the OTP for a reset token
POST /api/auth/reset-password   — set a new password with the reset token
GET  /api/auth/google           — start Google OAuth
GET  /api/auth/google/callback  — finish Google OAuth

Handlers stay thin: parse the DTO, call the service, shape the response.
Errors are AppError subclasses rendered by the global handlers in errors.py.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from config import AppSettings
from dependencies import (
    get_auth_service,
    get_current_user,
    get_optional_user,
    get_password_reset_service,
    get_settings,
    get_token_ledger,
)
from errors import AuthenticationError, NotFoundError
from infrastructure.oauth_clients import PROVIDER_STRATEGIES
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    EditProfileRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
    RevokeTokenRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from schemas.dto.responses.auth import (
    AuthResponse,
    ProfileResponse,
    TokenPairResponse,
    UserProfileResponse,
    VerifyOtpResponse,
)
from schemas.dto.responses.common import MessageResponse
from services.auth_service import AuthService, CurrentUser
from services.password_reset_service import PasswordResetService
from services.token_ledger import TokenLedger
from shared.ip_utils import get_client_ip
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a reset code has been sent"


# ── Password auth & tokens ───────────────────────────────────────────────────


@router.post("/signup", status_code=201, response_model=AuthResponse)
async def signup(
    body: SignupRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user, pair = await auth.signup(
        body.email,
        body.password,
        body.confirm_password,
        body.agreement_accepted,
        get_client_ip(request),
    )
    return AuthResponse(
        user=UserProfileResponse.from_user(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user, pair = await auth.login(body.email, body.password, get_client_ip(request))
    return AuthResponse(
        user=UserProfileResponse.from_user(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


@router.post("/refresh-token", response_model=TokenPairResponse)
async def refresh_token(
    body: RefreshTokenRequest,
    request: Request,
    ledger: TokenLedger = Depends(get_token_ledger),
) -> TokenPairResponse:
    pair = await ledger.redeem(body.refresh_token, get_client_ip(request))
    return TokenPairResponse(
        access_token=pair.access_token, refresh_token=pair.refresh_token
    )


@router.post("/revoke-token", response_model=MessageResponse)
async def revoke_token(
    body: RevokeTokenRequest,
    request: Request,
    ledger: TokenLedger = Depends(get_token_ledger),
) -> MessageResponse:
    await ledger.revoke(body.token, get_client_ip(request))
    return MessageResponse(success=True, message="Token revoked")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    refresh = body.refresh_token if body is not None else None
    await auth.logout(refresh, current_user, get_client_ip(request))
    return MessageResponse(success=True, message="Logout successful")


# ── Profile ──────────────────────────────────────────────────────────────────


@router.get("/me", response_model=ProfileResponse)
async def me(
    current_user: CurrentUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    user = await auth.get_user(current_user)
    return ProfileResponse(user=UserProfileResponse.from_user(user))


@router.put("/profile", response_model=ProfileResponse)
async def edit_profile(
    body: EditProfileRequest,
    current_user: CurrentUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    user = await auth.edit_profile(current_user, body.username)
    return ProfileResponse(user=UserProfileResponse.from_user(user))


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.change_password(current_user, body.old_password, body.new_password)
    return MessageResponse(success=True, message="Password changed successfully")


# ── Password reset ───────────────────────────────────────────────────────────


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    resets: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    await resets.request_reset(body.email)
    return MessageResponse(success=True, message=FORGOT_PASSWORD_MESSAGE)


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    body: VerifyOtpRequest,
    settings: AppSettings = Depends(get_settings),
    resets: PasswordResetService = Depends(get_password_reset_service),
) -> VerifyOtpResponse:
    reset_token = await resets.verify_otp(body.email, body.otp)
    return VerifyOtpResponse(
        success=True,
        reset_token=reset_token,
        expires_in=settings.reset.otp_ttl_seconds,
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    resets: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    await resets.reset_password(body.token, body.new_password)
    return MessageResponse(success=True, message="Password reset successfully")


# ── Google OAuth ─────────────────────────────────────────────────────────────


def _google_client(request: Request):
    providers = getattr(request.app.state, "oauth_providers", None) or {}
    client = providers.get("google")
    if client is None:
        raise NotFoundError("google login is not configured")
    return client


@router.get("/google")
async def google_login(
    request: Request, settings: AppSettings = Depends(get_settings)
):
    client = _google_client(request)
    redirect_uri = settings.oauth.google_oauth_redirect_uri or str(
        request.url_for("google_callback")
    )
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/google/callback", name="google_callback")
async def google_callback(
    request: Request,
    settings: AppSettings = Depends(get_settings),
    auth: AuthService = Depends(get_auth_service),
):
    client = _google_client(request)
    try:
        token = await client.authorize_access_token(request)
    except OAuthError as e:
        log.warning("oauth_callback_failed", provider="google", error=e.error)
        raise AuthenticationError("oauth authorization failed")

    identity = await PROVIDER_STRATEGIES["google"].fetch_identity(client, token)
    user, pair = await auth.login_with_identity(identity, get_client_ip(request))

    if settings.frontend_url:
        query = urlencode(
            {"token": pair.access_token, "refreshToken": pair.refresh_token}
        )
        return RedirectResponse(
            url=f"{settings.frontend_url.rstrip('/')}/auth/callback?{query}",
            status_code=302,
        )

    return AuthResponse(
        user=UserProfileResponse.from_user(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )
