"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

Authentication failures deliberately share low-information messages
("invalid token", "invalid email or password") so a caller cannot tell an
unknown account or token apart from a wrong one. The error_code still lets
clients decide whether to refresh or re-authenticate.

Non-AppError exceptions become generic 500s (with Sentry reporting in
production). Outside production the body also names the exception type.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"
    default_message: str = "An internal server error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"
    default_message = "validation failed"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"
    default_message = "authentication required"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class StorageUnavailableError(AppError):
    status_code = 503
    error_code = "storage_unavailable"
    default_message = "service temporarily unavailable"


# ── Authentication taxonomy ──────────────────────────────────────────────────


class InvalidCredentialsError(AuthenticationError):
    error_code = "invalid_credentials"
    default_message = "invalid email or password"


class InvalidTokenError(AuthenticationError):
    error_code = "invalid_token"
    default_message = "invalid token"


class TokenExpiredError(AuthenticationError):
    error_code = "token_expired"
    default_message = "token expired"


class StaleTokenError(AuthenticationError):
    """Access token issued before the user's last logout."""

    error_code = "token_stale"
    default_message = "invalid token"


class TokenReuseError(AuthenticationError):
    """An already-rotated refresh token was presented again."""

    error_code = "token_reuse_detected"
    default_message = "invalid token"


class NoEmailInProfileError(ValidationError):
    error_code = "no_email_in_profile"
    default_message = "no email found in profile"


class InvalidOtpError(ValidationError):
    error_code = "invalid_otp"
    default_message = "invalid or expired code"


class InvalidOrExpiredTokenError(ValidationError):
    error_code = "invalid_or_expired_token"
    default_message = "invalid or expired reset token"


def register_error_handlers(app: FastAPI, *, expose_details: bool = False) -> None:
    """Register global exception handlers on the FastAPI app.

    expose_details adds the exception type to 500 bodies; only enable it
    outside production.
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ())[1:]),
                "message": err.get("msg", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation failed",
                "code": ValidationError.error_code,
                "details": details,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        content: dict = {
            "error": "An internal server error occurred.",
            "code": "internal_error",
        }
        if expose_details:
            content["details"] = {"error_type": type(exc).__name__}
        return JSONResponse(status_code=500, content=content)
