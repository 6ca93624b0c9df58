"""
Password reset flow: NONE → OTP_ISSUED → VERIFIED → NONE.

1. request_reset(email) stores a hashed 6-digit OTP (10 minute window) and
   emails it. The caller gets the same answer whether or not the account
   exists, and email delivery failures are logged, never surfaced.
2. verify_otp(email, otp) consumes the OTP and hands back a high-entropy
   exchange token (URL-safe base64, so it cannot collide with a numeric
   code). Too many wrong guesses discard the OTP.
3. reset_password(exchange_token, new_password) consumes the exchange token,
   sets the new password and ends every open session.

A new request at any stage overwrites the previous slot.
"""

from __future__ import annotations

from datetime import timedelta

from config import PasswordResetSettings
from errors import InvalidOrExpiredTokenError, InvalidOtpError, ValidationError
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from schemas.models.user import RESET_STAGE_OTP, RESET_STAGE_VERIFIED
from services.token_ledger import TokenLedger
from shared.crypto import hash_password, hash_token, tokens_match
from shared.datetime_utils import Clock, utc_now
from shared.generators import generate_otp_code, generate_secure_token
from shared.logging import get_logger
from shared.validators import validate_password

log = get_logger(__name__)


class PasswordResetService:
    def __init__(
        self,
        users: UserRepository,
        ledger: TokenLedger,
        email_provider: EmailProvider,
        settings: PasswordResetSettings,
        clock: Clock = utc_now,
    ) -> None:
        self._users = users
        self._ledger = ledger
        self._email = email_provider
        self._settings = settings
        self._clock = clock

    @property
    def _ttl(self) -> timedelta:
        return timedelta(seconds=self._settings.otp_ttl_seconds)

    async def request_reset(self, email: str) -> None:
        user = await self._users.find_by_email(email)
        if user is None:
            log.info("password_reset_requested", account_found=False)
            return

        otp_code = generate_otp_code(self._settings.otp_length)
        await self._users.start_reset(
            user.id, hash_token(otp_code), self._clock() + self._ttl
        )
        log.info("password_reset_requested", account_found=True, user_id=str(user.id))

        try:
            sent = await self._email.send_password_reset_email(
                user.email, user.username or None, otp_code
            )
        except Exception as e:
            log.error(
                "password_reset_email_error",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if not sent:
            log.error("password_reset_email_failed", user_id=str(user.id))

    async def verify_otp(self, email: str, otp: str) -> str:
        user = await self._users.find_by_email(email)
        if (
            user is None
            or user.reset_stage != RESET_STAGE_OTP
            or not user.reset_token_hash
            or user.reset_expires_at is None
        ):
            log.warning("otp_verification_failed", reason="no_active_otp")
            raise InvalidOtpError()

        now = self._clock()
        if user.reset_expires_at <= now:
            await self._users.clear_reset(user.id)
            log.warning("otp_verification_failed", reason="expired", user_id=str(user.id))
            raise InvalidOtpError()

        if not tokens_match(otp or "", user.reset_token_hash):
            attempts = await self._users.record_failed_otp(user.id)
            if attempts >= self._settings.otp_max_attempts:
                await self._users.clear_reset(user.id)
                log.warning(
                    "otp_verification_failed",
                    reason="max_attempts",
                    user_id=str(user.id),
                )
            else:
                log.warning(
                    "otp_verification_failed",
                    reason="mismatch",
                    user_id=str(user.id),
                    attempts=attempts,
                )
            raise InvalidOtpError()

        exchange_token = generate_secure_token()
        swapped = await self._users.swap_otp_for_exchange_token(
            user.id, user.reset_token_hash, hash_token(exchange_token), now + self._ttl
        )
        if not swapped:
            # Another request consumed this OTP first
            log.warning("otp_verification_failed", reason="already_used", user_id=str(user.id))
            raise InvalidOtpError()

        log.info("otp_verified_success", user_id=str(user.id))
        return exchange_token

    async def reset_password(self, exchange_token: str, new_password: str) -> None:
        is_valid, missing = validate_password(new_password)
        if not is_valid:
            raise ValidationError(
                "Password does not meet requirements",
                field="new_password",
                details={"missing_requirements": missing},
            )

        token_hash = hash_token(exchange_token or "")
        user = await self._users.find_by_reset_token(token_hash, RESET_STAGE_VERIFIED)
        if user is None or user.reset_expires_at is None:
            log.warning("password_reset_failed", reason="token_not_found")
            raise InvalidOrExpiredTokenError()

        now = self._clock()
        if user.reset_expires_at <= now:
            await self._users.clear_reset(user.id)
            log.warning("password_reset_failed", reason="expired", user_id=str(user.id))
            raise InvalidOrExpiredTokenError()

        completed = await self._users.complete_reset(
            user.id, token_hash, hash_password(new_password), now
        )
        if not completed:
            log.warning("password_reset_failed", reason="already_used", user_id=str(user.id))
            raise InvalidOrExpiredTokenError()

        await self._ledger.revoke_all_for_user(user.id, None)
        log.info("password_reset_success", user_id=str(user.id))

