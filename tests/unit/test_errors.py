"""Unit tests for the AppError hierarchy and the global exception handlers."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from errors import (
    AppError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidOtpError,
    InvalidTokenError,
    NoEmailInProfileError,
    NotFoundError,
    StaleTokenError,
    StorageUnavailableError,
    TokenExpiredError,
    TokenReuseError,
    ValidationError,
    register_error_handlers,
)


class TestAppErrorSubclasses:
    def test_validation_error(self):
        e = ValidationError("bad input")
        assert e.status_code == 400
        assert e.error_code == "validation_error"
        assert e.message == "bad input"

    def test_authentication_error(self):
        e = AuthenticationError("not authenticated")
        assert e.status_code == 401
        assert e.error_code == "authentication_error"

    def test_forbidden_error(self):
        e = ForbiddenError("not allowed")
        assert e.status_code == 403
        assert e.error_code == "forbidden"

    def test_not_found_error(self):
        e = NotFoundError("resource missing")
        assert e.status_code == 404
        assert e.error_code == "not_found"

    def test_conflict_error(self):
        e = ConflictError("already exists")
        assert e.status_code == 409
        assert e.error_code == "conflict"

    def test_storage_unavailable(self):
        e = StorageUnavailableError()
        assert e.status_code == 503
        assert e.message == "service temporarily unavailable"


@pytest.mark.parametrize(
    "error_cls, status, code, message",
    [
        (InvalidCredentialsError, 401, "invalid_credentials", "invalid email or password"),
        (InvalidTokenError, 401, "invalid_token", "invalid token"),
        (TokenExpiredError, 401, "token_expired", "token expired"),
        (StaleTokenError, 401, "token_stale", "invalid token"),
        (TokenReuseError, 401, "token_reuse_detected", "invalid token"),
        (NoEmailInProfileError, 400, "no_email_in_profile", "no email found in profile"),
        (InvalidOtpError, 400, "invalid_otp", "invalid or expired code"),
        (
            InvalidOrExpiredTokenError,
            400,
            "invalid_or_expired_token",
            "invalid or expired reset token",
        ),
    ],
)
def test_auth_taxonomy_defaults(error_cls, status, code, message):
    e = error_cls()
    assert e.status_code == status
    assert e.error_code == code
    assert e.message == message


def test_token_failures_are_authentication_errors():
    for cls in (InvalidTokenError, TokenExpiredError, StaleTokenError, TokenReuseError):
        assert issubclass(cls, AuthenticationError)


class TestAppErrorToDict:
    def test_basic(self):
        e = NotFoundError("file not found")
        assert e.to_dict() == {"error": "file not found", "code": "not_found"}

    @pytest.mark.parametrize(
        "kwargs, key, value",
        [
            ({"field": "email"}, "field", "email"),
            ({"details": {"min": 6}}, "details", {"min": 6}),
        ],
        ids=["with_field", "with_details"],
    )
    def test_optional_key_present(self, kwargs, key, value):
        e = ValidationError("invalid", **kwargs)
        assert e.to_dict()[key] == value

    def test_no_optional_keys_when_absent(self):
        d = NotFoundError("missing").to_dict()
        assert "field" not in d
        assert "details" not in d

    def test_default_message_used_when_none(self):
        assert AppError().to_dict()["error"] == "An internal server error occurred."


# ── Handlers ─────────────────────────────────────────────────────────────────


class _Body(BaseModel):
    email: str


def _build_app(expose_details: bool) -> FastAPI:
    app = FastAPI()
    register_error_handlers(app, expose_details=expose_details)

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("User with this email already exists", field="email")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.post("/body")
    async def body(payload: _Body):
        return {"ok": True}

    return app


class TestErrorHandlers:
    def test_app_error_rendered(self):
        with TestClient(_build_app(False)) as client:
            resp = client.get("/conflict")
        assert resp.status_code == 409
        assert resp.json() == {
            "error": "User with this email already exists",
            "code": "conflict",
            "field": "email",
        }

    def test_request_validation_error_shape(self):
        with TestClient(_build_app(False)) as client:
            resp = client.post("/body", json={})
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "validation_error"
        assert body["error"] == "validation failed"
        assert body["details"][0]["field"] == "email"

    @pytest.mark.parametrize(
        "expose, has_details", [(False, False), (True, True)], ids=["prod", "dev"]
    )
    def test_unhandled_exception(self, expose, has_details):
        with TestClient(_build_app(expose), raise_server_exceptions=False) as client:
            resp = client.get("/boom")
        assert resp.status_code == 500
        body = resp.json()
        assert body["code"] == "internal_error"
        assert "kaboom" not in resp.text
        assert ("details" in body) is has_details
        if has_details:
            assert body["details"]["error_type"] == "RuntimeError"
