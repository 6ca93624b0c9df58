"""EmailProvider protocol — services depend on this, not the concrete implementation.

Providers report delivery as a bool and must not raise for transport
failures; the password reset flow treats a False the same as success towards
the caller.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool: ...
