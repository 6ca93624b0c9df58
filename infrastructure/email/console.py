"""Development EmailProvider that logs messages instead of sending them.

Selected by the app factory when no ZeptoMail token is configured outside
production, so the reset flow can be exercised locally.
"""

from typing import Optional

from infrastructure.email.templates import password_reset_text
from shared.logging import get_logger

log = get_logger(__name__)


class ConsoleEmailProvider:
    def __init__(self, otp_ttl_minutes: int = 10) -> None:
        self._otp_ttl_minutes = otp_ttl_minutes
        self.outbox: list[dict] = []

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        self.outbox.append(
            {"to": to_email, "subject": subject, "html": html_body, "text": text_body}
        )
        # The body carries the code, so it goes to stdout only, never the
        # structured log stream
        print(f"\n[email] To: {to_email}\n[email] Subject: {subject}\n{text_body or ''}\n")
        log.info("email_logged", subject=subject)
        return True

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool:
        text_body = password_reset_text(otp_code, user_name, self._otp_ttl_minutes)
        return await self.send(email, "Password Reset OTP", text_body, text_body)
