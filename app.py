"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from starlette.middleware.sessions import SessionMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.console import ConsoleEmailProvider
from infrastructure.email.protocol import EmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.oauth_clients import init_oauth
from middleware.request_logging import RequestLoggingMiddleware
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.user_repository import UserRepository
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.storage_routes import router as storage_router
from shared.datetime_utils import utc_now
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def build_email_provider(settings: AppSettings, http_client: HttpClient) -> EmailProvider:
    """ZeptoMail when an API token is configured, else the console provider."""
    otp_ttl_minutes = max(1, settings.reset.otp_ttl_seconds // 60)
    if settings.email.zepto_api_token:
        return ZeptoMailProvider(
            settings.email, http_client, otp_ttl_minutes=otp_ttl_minutes
        )
    if settings.is_production:
        log.warning("email_provider_not_configured", fallback="console")
    return ConsoleEmailProvider(otp_ttl_minutes=otp_ttl_minutes)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, env=settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
            environment=settings.env,
        )

    oauth, oauth_providers = init_oauth(settings.oauth)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]
        app.state.settings = settings
        app.state.clock = utc_now

        await UserRepository(app.state.db).ensure_indexes()
        await RefreshTokenRepository(app.state.db).ensure_indexes()

        http_client = HttpClient(timeout=10.0)
        app.state.http_client = http_client
        app.state.email_provider = build_email_provider(settings, http_client)

        app.state.oauth = oauth
        app.state.oauth_providers = oauth_providers

        log.info("app_started", env=settings.env, oauth_providers=sorted(oauth_providers))
        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Authlib keeps the OAuth state parameter in the session
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        https_only=settings.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app, expose_details=not settings.is_production)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(storage_router)

    return app
