"""
Refresh token ledger — issuing, rotating and revoking refresh tokens.

Rotation contract:
- a refresh token is redeemed successfully at most once;
- presenting a token that was already revoked (rotated, logged out, or lost a
  redemption race) revokes every token of its owner before the failure is
  raised, forcing the whole family to re-authenticate;
- natural expiry is not treated as suspicious.

The replacement link is inserted before the old link is flipped, so a storage
failure part-way never leaves a revoked token without a usable successor.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from errors import InvalidTokenError, TokenExpiredError, TokenReuseError
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.user_repository import UserRepository
from schemas.models.token import RefreshTokenDoc
from schemas.models.user import UserDoc
from services.token_service import TokenService
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    user_id: str
    access_token: str
    refresh_token: str
    refresh_expires_at: datetime


class TokenLedger:
    def __init__(
        self,
        tokens: RefreshTokenRepository,
        users: UserRepository,
        issuer: TokenService,
        clock: Clock = utc_now,
    ) -> None:
        self._tokens = tokens
        self._users = users
        self._issuer = issuer
        self._clock = clock

    async def record(
        self,
        user_id: Any,
        token: str,
        expires_at: datetime,
        source_ip: Optional[str],
        auth_method: str = "pwd",
    ) -> RefreshTokenDoc:
        doc = RefreshTokenDoc(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=self._clock(),
            created_by_ip=source_ip,
            auth_method=auth_method,
        )
        return await self._tokens.insert(doc)

    async def issue_pair(
        self, user: UserDoc, source_ip: Optional[str], auth_method: str = "pwd"
    ) -> TokenPair:
        """Mint an access/refresh pair for *user* and record the refresh token."""
        refresh = self._issuer.issue_refresh_token()
        await self.record(
            user.id, refresh.token, refresh.expires_at, source_ip, auth_method
        )
        access = self._issuer.issue_access_token(str(user.id), user.email, auth_method)
        return TokenPair(
            user_id=str(user.id),
            access_token=access,
            refresh_token=refresh.token,
            refresh_expires_at=refresh.expires_at,
        )

    async def redeem(self, presented_token: str, source_ip: Optional[str]) -> TokenPair:
        doc = await self._tokens.find_by_token(presented_token)
        if doc is None:
            log.warning("refresh_failed", reason="not_found")
            raise InvalidTokenError()

        if doc.is_revoked:
            await self._revoke_family(doc.user_id, source_ip)
            raise TokenReuseError()

        now = self._clock()
        if doc.is_expired(now):
            log.info("refresh_failed", reason="expired", user_id=str(doc.user_id))
            raise TokenExpiredError()

        user = await self._users.find_by_id(doc.user_id)
        if user is None:
            log.warning("refresh_failed", reason="user_missing", user_id=str(doc.user_id))
            raise InvalidTokenError()

        replacement = self._issuer.issue_refresh_token()
        await self.record(
            user.id,
            replacement.token,
            replacement.expires_at,
            source_ip,
            doc.auth_method,
        )

        rotated = await self._tokens.revoke_if_active(
            presented_token,
            revoked_at=now,
            revoked_by_ip=source_ip,
            replaced_by_token=replacement.token,
        )
        if rotated is None:
            # Lost the race: another request consumed this token between our
            # read and the conditional update. The family revocation also
            # covers the replacement recorded above.
            await self._revoke_family(doc.user_id, source_ip)
            raise TokenReuseError()

        log.info("token_refreshed", user_id=str(user.id))
        return TokenPair(
            user_id=str(user.id),
            access_token=self._issuer.issue_access_token(
                str(user.id), user.email, doc.auth_method
            ),
            refresh_token=replacement.token,
            refresh_expires_at=replacement.expires_at,
        )

    async def revoke(self, token: str, source_ip: Optional[str]) -> Optional[str]:
        """Revoke *token* without rotation. Idempotent.

        Returns the owning user id, or None when the token is unknown.
        """
        doc = await self._tokens.find_by_token(token)
        if doc is None:
            return None
        if not doc.is_revoked:
            await self._tokens.revoke_if_active(
                token, revoked_at=self._clock(), revoked_by_ip=source_ip
            )
            log.info("refresh_token_revoked", user_id=str(doc.user_id))
        return str(doc.user_id)

    async def revoke_all_for_user(self, user_id: Any, source_ip: Optional[str]) -> int:
        count = await self._tokens.revoke_all_for_user(
            user_id, revoked_at=self._clock(), revoked_by_ip=source_ip
        )
        log.info("refresh_tokens_revoked_all", user_id=str(user_id), count=count)
        return count

    async def _revoke_family(self, user_id: Any, source_ip: Optional[str]) -> None:
        count = await self._tokens.revoke_all_for_user(
            user_id, revoked_at=self._clock(), revoked_by_ip=source_ip
        )
        log.warning(
            "refresh_token_reuse_detected",
            user_id=str(user_id),
            revoked_count=count,
            ip_hash=hash_ip(source_ip),
        )
