"""
Token issuer — access JWTs and opaque refresh tokens.

Access tokens are short-lived signed JWTs (RS256 when a key pair is
configured, HS256 otherwise) carrying the subject, email and a
millisecond-precision ``iat`` so they can be compared against a user's logout
watermark. Refresh tokens are opaque random strings; the ledger is the only
authority on what they mean.

Both issuers are pure: nothing is persisted here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import jwt

from config import JWTSettings
from errors import InvalidTokenError, TokenExpiredError
from shared.datetime_utils import Clock, to_epoch, utc_now
from shared.generators import generate_refresh_token


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    expires_at: datetime


class TokenService:
    def __init__(self, settings: JWTSettings, clock: Clock = utc_now) -> None:
        self._settings = settings
        self._clock = clock
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._signing_key: Any = settings.jwt_private_key.replace("\\n", "\n")
            self._verify_key: Any = settings.jwt_public_key.replace("\\n", "\n")
        else:
            self._signing_key = settings.jwt_secret
            self._verify_key = settings.jwt_secret

    def issue_access_token(
        self, user_id: str, email: str, auth_method: str = "pwd"
    ) -> str:
        now = self._clock()
        iat = to_epoch(now)
        claims = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": str(user_id),
            "email": email,
            "iat": iat,
            "exp": int(iat) + self._settings.access_token_ttl_seconds,
            "amr": [auth_method],  # Authentication Methods References
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._settings.algorithm)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Verify signature, issuer, audience and expiry; return the claims."""
        try:
            return jwt.decode(
                token,
                self._verify_key,
                algorithms=[self._settings.algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError() from e

    def issue_refresh_token(self) -> IssuedRefreshToken:
        expires_at = self._clock() + timedelta(
            seconds=self._settings.refresh_token_ttl_seconds
        )
        return IssuedRefreshToken(token=generate_refresh_token(), expires_at=expires_at)
