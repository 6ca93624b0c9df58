"""Unit tests for TokenLedger: issue, rotation, reuse detection, revocation."""

import asyncio

import pytest

from errors import InvalidTokenError, TokenExpiredError, TokenReuseError
from repositories.refresh_token_repository import RefreshTokenRepository
from schemas.models.user import UserDoc
from services.token_ledger import TokenLedger


@pytest.fixture
async def user(users):
    return await users.insert(
        UserDoc.create_with_password("alice@example.com", "secret1", agreement_accepted=True)
    )


class TestIssuePair:
    async def test_records_refresh_token(self, ledger, refresh_tokens, token_service, user):
        pair = await ledger.issue_pair(user, "10.0.0.1")
        stored = await refresh_tokens.find_by_token(pair.refresh_token)
        assert stored.user_id == user.id
        assert stored.created_by_ip == "10.0.0.1"
        assert stored.expires_at == pair.refresh_expires_at
        claims = token_service.decode_access_token(pair.access_token)
        assert claims["sub"] == str(user.id)
        assert pair.user_id == str(user.id)


class TestRedeem:
    async def test_rotation_links_chain(self, ledger, refresh_tokens, user, clock):
        pair = await ledger.issue_pair(user, None)
        clock.advance(1)
        rotated = await ledger.redeem(pair.refresh_token, "10.0.0.2")

        assert rotated.refresh_token != pair.refresh_token
        old = await refresh_tokens.find_by_token(pair.refresh_token)
        assert old.is_revoked
        assert old.replaced_by_token == rotated.refresh_token
        assert old.revoked_by_ip == "10.0.0.2"
        new = await refresh_tokens.find_by_token(rotated.refresh_token)
        assert new.is_active(clock())

    async def test_single_use_then_family_revoked(self, ledger, stored_tokens, user):
        pair = await ledger.issue_pair(user, None)
        other_session = await ledger.issue_pair(user, None)
        rotated = await ledger.redeem(pair.refresh_token, None)

        with pytest.raises(TokenReuseError):
            await ledger.redeem(pair.refresh_token, None)

        # Every token the user holds is now dead, including the fresh rotation
        with pytest.raises(TokenReuseError):
            await ledger.redeem(rotated.refresh_token, None)
        with pytest.raises(TokenReuseError):
            await ledger.redeem(other_session.refresh_token, None)
        tokens = stored_tokens(user.id)
        assert all(t.is_revoked for t in tokens)

    @pytest.mark.parametrize("auth_method", ["pwd", "google"])
    async def test_rotation_keeps_auth_method(
        self, ledger, refresh_tokens, token_service, user, clock, auth_method
    ):
        pair = await ledger.issue_pair(user, None, auth_method=auth_method)
        clock.advance(1)
        first = await ledger.redeem(pair.refresh_token, None)
        clock.advance(1)
        second = await ledger.redeem(first.refresh_token, None)

        assert token_service.decode_access_token(second.access_token)["amr"] == [auth_method]
        stored = await refresh_tokens.find_by_token(second.refresh_token)
        assert stored.auth_method == auth_method

    async def test_unknown_token(self, ledger):
        with pytest.raises(InvalidTokenError):
            await ledger.redeem("does-not-exist", None)

    async def test_expired_token_is_not_reuse(self, ledger, refresh_tokens, user, clock):
        pair = await ledger.issue_pair(user, None)
        clock.advance(7 * 24 * 3600)
        with pytest.raises(TokenExpiredError):
            await ledger.redeem(pair.refresh_token, None)
        assert (await refresh_tokens.find_by_token(pair.refresh_token)).is_revoked is False

    async def test_user_deleted(self, ledger, mock_db, user):
        pair = await ledger.issue_pair(user, None)
        mock_db.raw("users").delete_one({"_id": user.id})
        with pytest.raises(InvalidTokenError):
            await ledger.redeem(pair.refresh_token, None)


class _InterleavingRepository(RefreshTokenRepository):
    """Yields after every read so concurrent redeemers all read before any write."""

    async def find_by_token(self, token):
        doc = await super().find_by_token(token)
        await asyncio.sleep(0)
        return doc


async def test_concurrent_redeem_has_one_winner(mock_db, users, token_service, clock, user):
    ledger = TokenLedger(
        _InterleavingRepository(mock_db), users, token_service, clock=clock
    )
    pair = await ledger.issue_pair(user, None)

    results = await asyncio.gather(
        *(ledger.redeem(pair.refresh_token, None) for _ in range(5)),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 4
    assert all(isinstance(e, TokenReuseError) for e in losers)


class TestRevoke:
    async def test_revoke_returns_owner(self, ledger, refresh_tokens, user):
        pair = await ledger.issue_pair(user, None)
        assert await ledger.revoke(pair.refresh_token, "1.2.3.4") == str(user.id)
        stored = await refresh_tokens.find_by_token(pair.refresh_token)
        assert stored.is_revoked
        assert stored.replaced_by_token is None

    async def test_revoke_is_idempotent(self, ledger, user):
        pair = await ledger.issue_pair(user, None)
        await ledger.revoke(pair.refresh_token, None)
        assert await ledger.revoke(pair.refresh_token, None) == str(user.id)

    async def test_revoke_unknown(self, ledger):
        assert await ledger.revoke("nope", None) is None

    async def test_redeem_after_revoke_is_reuse(self, ledger, user):
        pair = await ledger.issue_pair(user, None)
        await ledger.revoke(pair.refresh_token, None)
        with pytest.raises(TokenReuseError):
            await ledger.redeem(pair.refresh_token, None)

    async def test_revoke_all(self, ledger, user):
        for _ in range(3):
            await ledger.issue_pair(user, None)
        assert await ledger.revoke_all_for_user(user.id, None) == 3
        assert await ledger.revoke_all_for_user(user.id, None) == 0
