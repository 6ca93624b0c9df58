"""
Session authenticator and account operations.

Authentication methods form a small tagged union, AuthMethod =
PasswordCredential | ExternalIdentity, and resolve_user() is the single place
that turns either into a UserDoc. Every protected request instead goes through
authenticate(), the bearer strategy:

1. decode the access token (signature, expiry) — no database access;
2. load the user it names;
3. reject it if it was issued before the user's last logout.

Step 3 is what lets logout end sessions whose access tokens are otherwise
stateless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NoEmailInProfileError,
    StaleTokenError,
    ValidationError,
)
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc, normalize_email
from services.token_ledger import TokenLedger, TokenPair
from services.token_service import TokenService
from shared.crypto import burn_password_check, hash_password, verify_password
from shared.datetime_utils import Clock, to_epoch, utc_now
from shared.logging import get_logger
from shared.validators import validate_password

log = get_logger(__name__)


@dataclass(frozen=True)
class PasswordCredential:
    email: str
    password: str


@dataclass(frozen=True)
class ExternalIdentity:
    provider: str
    provider_user_id: str
    email: Optional[str]
    display_name: str = ""


AuthMethod = Union[PasswordCredential, ExternalIdentity]


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated principal handed to protected-resource handlers."""

    user_id: str
    email: str


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        ledger: TokenLedger,
        issuer: TokenService,
        clock: Clock = utc_now,
    ) -> None:
        self._users = users
        self._ledger = ledger
        self._issuer = issuer
        self._clock = clock

    # ── Strategies ───────────────────────────────────────────────────────────

    async def resolve_user(self, method: AuthMethod) -> UserDoc:
        if isinstance(method, PasswordCredential):
            return await self._resolve_password(method)
        if isinstance(method, ExternalIdentity):
            return await self._resolve_identity(method)
        raise TypeError(f"unsupported auth method: {type(method).__name__}")

    async def _resolve_password(self, credential: PasswordCredential) -> UserDoc:
        user = await self._users.find_by_email(credential.email)
        if user is None or not user.has_password:
            # Same cost and same answer as a wrong password
            burn_password_check(credential.password)
            log.warning("login_failed", reason="invalid_credentials")
            raise InvalidCredentialsError()

        if not verify_password(credential.password, user.password_hash):
            log.warning("login_failed", reason="invalid_credentials", user_id=str(user.id))
            raise InvalidCredentialsError()
        return user

    async def _resolve_identity(self, identity: ExternalIdentity) -> UserDoc:
        email = normalize_email(identity.email or "")
        if not email:
            log.warning("oauth_login_failed", provider=identity.provider, reason="no_email")
            raise NoEmailInProfileError()

        user = await self._users.find_by_google_id(identity.provider_user_id)
        if user is not None:
            return user

        user = await self._users.find_by_email(email)
        if user is not None:
            linked = await self._users.link_google_id(user.id, identity.provider_user_id)
            log.info("oauth_account_linked", provider=identity.provider, user_id=str(user.id))
            return linked or user

        user = await self._users.insert(
            UserDoc.create_from_identity(
                email,
                identity.provider_user_id,
                username=identity.display_name,
                now=self._clock(),
            )
        )
        log.info("user_registered", user_id=str(user.id), auth_method=identity.provider)
        return user

    async def authenticate(self, bearer_token: str) -> CurrentUser:
        claims = self._issuer.decode_access_token(bearer_token)

        user = await self._users.find_by_id(claims.get("sub"))
        if user is None:
            raise InvalidTokenError()

        # A token from the same millisecond as the logout counts as older
        if user.last_logout_at is not None and claims["iat"] <= to_epoch(
            user.last_logout_at
        ):
            raise StaleTokenError()

        return CurrentUser(user_id=str(user.id), email=user.email)

    # ── Account operations ───────────────────────────────────────────────────

    async def signup(
        self,
        email: str,
        password: str,
        confirm_password: str,
        agreement_accepted: bool,
        source_ip: Optional[str],
    ) -> tuple[UserDoc, TokenPair]:
        if not agreement_accepted:
            raise ValidationError(
                "You must accept the agreement to sign up", field="agreement_accepted"
            )
        if password != confirm_password:
            raise ValidationError("Passwords do not match", field="confirm_password")
        _check_password_policy(password)

        if await self._users.find_by_email(email) is not None:
            log.warning("registration_failed", reason="email_exists")
            raise ConflictError("User with this email already exists", field="email")

        user = await self._users.insert(
            UserDoc.create_with_password(
                email, password, agreement_accepted=True, now=self._clock()
            )
        )
        pair = await self._ledger.issue_pair(user, source_ip)
        log.info("user_registered", user_id=str(user.id), auth_method="password")
        return user, pair

    async def login(
        self, email: str, password: str, source_ip: Optional[str]
    ) -> tuple[UserDoc, TokenPair]:
        user = await self.resolve_user(PasswordCredential(email=email, password=password))
        pair = await self._ledger.issue_pair(user, source_ip)
        log.info("login_success", user_id=str(user.id), auth_method="password")
        return user, pair

    async def login_with_identity(
        self, identity: ExternalIdentity, source_ip: Optional[str]
    ) -> tuple[UserDoc, TokenPair]:
        user = await self.resolve_user(identity)
        pair = await self._ledger.issue_pair(user, source_ip, auth_method=identity.provider)
        log.info("login_success", user_id=str(user.id), auth_method=identity.provider)
        return user, pair

    async def logout(
        self,
        refresh_token: Optional[str],
        current_user: Optional[CurrentUser],
        source_ip: Optional[str],
    ) -> None:
        """End the session. Never fails for unknown tokens."""
        now = self._clock()
        if refresh_token:
            owner_id = await self._ledger.revoke(refresh_token, source_ip)
            if owner_id is not None:
                await self._users.set_last_logout(owner_id, now)
                log.info("logout", user_id=owner_id, via="refresh_token")
                return

        if current_user is not None:
            await self._users.set_last_logout(current_user.user_id, now)
            await self._ledger.revoke_all_for_user(current_user.user_id, source_ip)
            log.info("logout", user_id=current_user.user_id, via="access_token")

    async def get_user(self, current_user: CurrentUser) -> UserDoc:
        user = await self._users.find_by_id(current_user.user_id)
        if user is None:
            raise InvalidTokenError()
        return user

    async def edit_profile(self, current_user: CurrentUser, username: str) -> UserDoc:
        user = await self._users.update_fields(
            current_user.user_id, {"username": username.strip()}
        )
        if user is None:
            raise InvalidTokenError()
        log.info("profile_updated", user_id=current_user.user_id)
        return user

    async def change_password(
        self, current_user: CurrentUser, old_password: str, new_password: str
    ) -> None:
        user = await self.get_user(current_user)
        if not user.has_password:
            raise ValidationError("Password change not available for this account")
        if not verify_password(old_password, user.password_hash):
            log.warning("password_change_failed", user_id=current_user.user_id)
            raise InvalidCredentialsError("Current password is incorrect")
        _check_password_policy(new_password)

        await self._users.set_password_hash(user.id, hash_password(new_password))
        log.info("password_changed", user_id=current_user.user_id)


def _check_password_policy(password: str) -> None:
    is_valid, missing = validate_password(password)
    if not is_valid:
        raise ValidationError(
            "Password does not meet requirements",
            field="password",
            details={"missing_requirements": missing},
        )
