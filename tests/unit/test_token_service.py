"""Unit tests for TokenService (access JWTs and opaque refresh tokens)."""

from datetime import timedelta

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from config import JWTSettings
from errors import InvalidTokenError, TokenExpiredError
from services.token_service import TokenService
from shared.datetime_utils import to_epoch, utc_now

TEST_JWT_SECRET = "test-secret-for-unit-tests-only-0123456789"


def _rsa_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


class TestAccessTokens:
    def test_round_trip_claims(self, token_service, clock):
        token = token_service.issue_access_token("user-1", "a@example.com")
        claims = token_service.decode_access_token(token)
        assert claims["sub"] == "user-1"
        assert claims["email"] == "a@example.com"
        assert claims["iss"] == "cloud-storage"
        assert claims["aud"] == "cloud-storage.api"
        assert claims["amr"] == ["pwd"]
        assert claims["iat"] == to_epoch(clock())
        assert claims["exp"] == int(claims["iat"]) + 900

    def test_iat_keeps_milliseconds(self, token_service, clock):
        clock.now = clock.now.replace(microsecond=250000)
        claims = token_service.decode_access_token(
            token_service.issue_access_token("u", "e@example.com")
        )
        assert claims["iat"] == to_epoch(clock())
        assert claims["iat"] != int(claims["iat"])

    def test_auth_method_recorded(self, token_service):
        token = token_service.issue_access_token("u", "e@example.com", "google")
        assert token_service.decode_access_token(token)["amr"] == ["google"]

    def test_expired_token(self, jwt_settings):
        past = utc_now() - timedelta(seconds=jwt_settings.access_token_ttl_seconds + 60)
        service = TokenService(jwt_settings, clock=lambda: past)
        token = service.issue_access_token("u", "e@example.com")
        with pytest.raises(TokenExpiredError):
            service.decode_access_token(token)

    def test_tampered_token(self, token_service):
        token = token_service.issue_access_token("u", "e@example.com")
        tampered = token[:-2] + ("AA" if token[-2:] != "AA" else "BB")
        with pytest.raises(InvalidTokenError):
            token_service.decode_access_token(tampered)

    def test_foreign_secret_rejected(self, token_service, clock):
        other = TokenService(JWTSettings(jwt_secret="some-other-secret-value"), clock=clock)
        with pytest.raises(InvalidTokenError):
            token_service.decode_access_token(
                other.issue_access_token("u", "e@example.com")
            )

    def test_wrong_audience_rejected(self, token_service, clock):
        other = TokenService(
            JWTSettings(jwt_secret=TEST_JWT_SECRET, jwt_audience="someone-else"),
            clock=clock,
        )
        with pytest.raises(InvalidTokenError):
            token_service.decode_access_token(
                other.issue_access_token("u", "e@example.com")
            )

    def test_missing_subject_rejected(self, token_service, clock):
        iat = to_epoch(clock())
        token = jwt.encode(
            {
                "iss": "cloud-storage",
                "aud": "cloud-storage.api",
                "iat": iat,
                "exp": int(iat) + 900,
            },
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            token_service.decode_access_token(token)

    def test_garbage_rejected(self, token_service):
        with pytest.raises(InvalidTokenError):
            token_service.decode_access_token("not-a-jwt")

    def test_rs256(self, clock):
        private_pem, public_pem = _rsa_pair()
        settings = JWTSettings(jwt_private_key=private_pem, jwt_public_key=public_pem)
        service = TokenService(settings, clock=clock)
        token = service.issue_access_token("u", "e@example.com")
        assert jwt.get_unverified_header(token)["alg"] == "RS256"
        assert service.decode_access_token(token)["sub"] == "u"


class TestRefreshTokens:
    def test_expiry_from_clock(self, token_service, clock):
        issued = token_service.issue_refresh_token()
        assert issued.expires_at == clock() + timedelta(days=7)

    def test_opaque_and_unique(self, token_service):
        tokens = {token_service.issue_refresh_token().token for _ in range(20)}
        assert len(tokens) == 20
        assert all(t.count(".") == 0 for t in tokens)
