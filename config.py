"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file) and passed
explicitly to the components that need them. Nothing below the app factory
reads os.environ directly.

JWTSettings fails fast at construction: a missing signing secret (with no
RS256 key pair) or the well-known placeholder value raises immediately so a
misconfigured deployment never starts.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_JWT_SECRETS = frozenset(
    {
        "your-secret-key-change-in-production",
        "your-super-secret-jwt-key-change-this-in-production",
    }
)


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "cloud-storage"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "cloud-storage"
    jwt_audience: str = "cloud-storage.api"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @model_validator(mode="after")
    def _require_signing_key(self) -> "JWTSettings":
        if self.use_rs256:
            return self
        if not self.jwt_secret.strip():
            raise ValueError("JWT_SECRET must be set when RS256 keys are not provided")
        if self.jwt_secret in PLACEHOLDER_JWT_SECRETS:
            raise ValueError("JWT_SECRET must be changed from the placeholder value")
        return self

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)

    @property
    def algorithm(self) -> str:
        return "RS256" if self.use_rs256 else "HS256"


class PasswordResetSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_ttl_seconds: int = 600
    otp_length: int = 6
    otp_max_attempts: int = 5


class OAuthProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_oauth_redirect_uri: str = ""


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@cloud-storage.local"
    zepto_from_name: str = "Cloud Storage"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    secret_key: str = ""  # signs the OAuth session cookie
    env: str = "development"
    app_name: str = "cloud-storage"
    frontend_url: str = ""

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    reset: Optional[PasswordResetSettings] = None
    oauth: Optional[OAuthProviderSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.reset is None:
            self.reset = PasswordResetSettings()
        if self.oauth is None:
            self.oauth = OAuthProviderSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        # The session cookie only carries OAuth state; fall back to the JWT
        # secret so single-secret deployments still work.
        if not self.secret_key:
            self.secret_key = self.jwt.jwt_secret or self.jwt.jwt_private_key

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
