"""
Shared test fixtures.

MongoDB is faked with mongomock. The repositories await pymongo's async
collection API, so mongomock collections are wrapped in a thin adapter whose
methods are coroutines; each call completes without yielding, exactly like a
single round-trip that happens to be instantaneous.

The fake clock starts a few minutes in the past: PyJWT checks ``exp`` and
``iat`` against the real wall clock, so issued tokens must stay valid in
real time while tests move the service clock forward.
"""

from datetime import timedelta

import mongomock
import pytest

from config import JWTSettings, PasswordResetSettings
from infrastructure.email.console import ConsoleEmailProvider
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.user_repository import UserRepository
from schemas.models.token import RefreshTokenDoc
from services.auth_service import AuthService
from services.password_reset_service import PasswordResetService
from services.storage_quota import StorageQuotaService
from services.token_ledger import TokenLedger
from services.token_service import TokenService
from shared.datetime_utils import utc_now

TEST_JWT_SECRET = "test-secret-for-unit-tests-only-0123456789"


# ---------------------------------------------------------------------------
# Async façade over mongomock
# ---------------------------------------------------------------------------


class AsyncMockCursor:
    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._cursor)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        return list(self._cursor)


class AsyncMockCollection:
    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncMockCursor(self._collection.find(*args, **kwargs))

    def __getattr__(self, name):
        attr = getattr(self._collection, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            return attr(*args, **kwargs)

        return call


class AsyncMockDatabase:
    def __init__(self, db):
        self._db = db
        self.client = AsyncMockAdmin()

    def __getitem__(self, name):
        return AsyncMockCollection(self._db[name])

    def raw(self, name):
        """The underlying synchronous mongomock collection, for assertions."""
        return self._db[name]


class AsyncMockAdmin:
    """Answers the health check's ``db.client.admin.command("ping")``."""

    def __init__(self):
        self.admin = self

    async def command(self, name, *args, **kwargs):
        return {"ok": 1.0}


class FakeClock:
    def __init__(self, start=None):
        self.now = start or (utc_now() - timedelta(minutes=5))

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db():
    return AsyncMockDatabase(mongomock.MongoClient().db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def reset_settings():
    return PasswordResetSettings()


@pytest.fixture
async def users(mock_db):
    repo = UserRepository(mock_db)
    await repo.ensure_indexes()
    return repo


@pytest.fixture
async def refresh_tokens(mock_db):
    repo = RefreshTokenRepository(mock_db)
    await repo.ensure_indexes()
    return repo


@pytest.fixture
def stored_tokens(mock_db):
    """Every refresh token recorded for a user, oldest first."""

    def _list(user_id):
        cursor = mock_db.raw("refresh-tokens").find({"user_id": user_id})
        return [RefreshTokenDoc.from_mongo(doc) for doc in cursor.sort("created_at", 1)]

    return _list


@pytest.fixture
def token_service(jwt_settings, clock):
    return TokenService(jwt_settings, clock=clock)


@pytest.fixture
def ledger(refresh_tokens, users, token_service, clock):
    return TokenLedger(refresh_tokens, users, token_service, clock=clock)


@pytest.fixture
def auth_service(users, ledger, token_service, clock):
    return AuthService(users, ledger, token_service, clock=clock)


@pytest.fixture
def email_provider():
    return ConsoleEmailProvider()


@pytest.fixture
def reset_service(users, ledger, email_provider, reset_settings, clock):
    return PasswordResetService(
        users, ledger, email_provider, reset_settings, clock=clock
    )


@pytest.fixture
def quota_service(users):
    return StorageQuotaService(users)
