"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services are cheap wrappers around the shared
database handle, so they are built per request from app.state; nothing
request-scoped is cached between requests.

get_current_user is the integration point for every protected endpoint.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AuthenticationError
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.user_repository import UserRepository
from services.auth_service import AuthService, CurrentUser
from services.password_reset_service import PasswordResetService
from services.storage_quota import StorageQuotaService
from services.token_ledger import TokenLedger
from services.token_service import TokenService
from shared.datetime_utils import Clock

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_db(request: Request):
    """Return the async MongoDB database from app.state."""
    return request.app.state.db


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_user_repository(db=Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_token_service(
    settings: AppSettings = Depends(get_settings), clock: Clock = Depends(get_clock)
) -> TokenService:
    return TokenService(settings.jwt, clock=clock)


def get_token_ledger(
    db=Depends(get_db),
    users: UserRepository = Depends(get_user_repository),
    issuer: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> TokenLedger:
    return TokenLedger(RefreshTokenRepository(db), users, issuer, clock=clock)


def get_auth_service(
    users: UserRepository = Depends(get_user_repository),
    ledger: TokenLedger = Depends(get_token_ledger),
    issuer: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(users, ledger, issuer, clock=clock)


def get_password_reset_service(
    request: Request,
    settings: AppSettings = Depends(get_settings),
    users: UserRepository = Depends(get_user_repository),
    ledger: TokenLedger = Depends(get_token_ledger),
    clock: Clock = Depends(get_clock),
) -> PasswordResetService:
    return PasswordResetService(
        users, ledger, request.app.state.email_provider, settings.reset, clock=clock
    )


def get_storage_quota_service(
    users: UserRepository = Depends(get_user_repository),
) -> StorageQuotaService:
    return StorageQuotaService(users)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    """Authenticate the `Authorization: Bearer <access token>` header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("missing access token")
    current_user = await auth.authenticate(credentials.credentials)
    request_user_context(current_user)
    return current_user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[CurrentUser]:
    """Like get_current_user, but None instead of 401 (used by logout)."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        current_user = await auth.authenticate(credentials.credentials)
    except AuthenticationError:
        return None
    request_user_context(current_user)
    return current_user


def request_user_context(current_user: CurrentUser) -> None:
    """Bind the user id into the request's structured-log context."""
    structlog.contextvars.bind_contextvars(user_id=current_user.user_id)
