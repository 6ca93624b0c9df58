"""OAuth provider strategies and Authlib client initialisation.

Only Google is wired today; a provider is a strategy (how to fetch and
normalise its profile) plus an Authlib registration. The normalised result
is an ExternalIdentity that the auth service resolves to a user.

Authlib's Starlette client keeps the OAuth state in the session, so the app
factory installs SessionMiddleware whenever a provider is configured.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from authlib.integrations.starlette_client import OAuth

from config import OAuthProviderSettings
from services.auth_service import ExternalIdentity
from shared.logging import get_logger

log = get_logger(__name__)


# ── Provider strategies ───────────────────────────────────────────────────────


class OAuthProviderStrategy(ABC):
    """Encapsulates everything that differs between OAuth providers."""

    @property
    @abstractmethod
    def key(self) -> str: ...

    @abstractmethod
    async def fetch_identity(self, client: Any, token: Any) -> ExternalIdentity: ...


class GoogleStrategy(OAuthProviderStrategy):
    key = "google"

    async def fetch_identity(self, client: Any, token: Any) -> ExternalIdentity:
        userinfo = token.get("userinfo")
        if userinfo is None:
            userinfo = await client.userinfo(token=token)
        return identity_from_google(dict(userinfo))


PROVIDER_STRATEGIES: dict[str, OAuthProviderStrategy] = {
    s.key: s() for s in [GoogleStrategy]
}


# ── Authlib init ─────────────────────────────────────────────────────────────


def init_oauth(settings: OAuthProviderSettings) -> Tuple[Optional[OAuth], Dict[str, Any]]:
    """Initialise Authlib OAuth clients for FastAPI/Starlette.

    Returns (oauth, providers_dict) — store both on app.state in create_app().
    Returns (None, {}) if no providers are configured.
    """
    oauth = OAuth()
    providers: Dict[str, Any] = {}

    if settings.google_oauth_client_id and settings.google_oauth_client_secret:
        try:
            google = oauth.register(
                name="google",
                client_id=settings.google_oauth_client_id,
                client_secret=settings.google_oauth_client_secret,
                server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
                client_kwargs={
                    "scope": "openid email profile",
                    "prompt": "select_account",
                },
            )
            providers["google"] = google
            log.info("oauth_provider_initialized", provider="google")
        except Exception as e:
            log.error("oauth_provider_init_failed", provider="google", error=str(e))

    if not providers:
        log.warning("oauth_no_providers_configured")
        return None, {}

    return oauth, providers


# ── User-info extractors ──────────────────────────────────────────────────────


def identity_from_google(userinfo: Dict[str, Any]) -> ExternalIdentity:
    """Normalise a Google OpenID userinfo payload.

    An unverified or missing email is reported as None so the auth service
    rejects the profile instead of linking on an address Google never
    confirmed.
    """
    email = (userinfo.get("email") or "").lower().strip()
    if not userinfo.get("email_verified", False):
        email = ""
    return ExternalIdentity(
        provider="google",
        provider_user_id=str(userinfo.get("sub", "")),
        email=email or None,
        display_name=userinfo.get("name", "") or "",
    )
