"""Plain-text email bodies shared by every provider."""

from typing import Optional


def password_reset_text(otp_code: str, user_name: Optional[str], expires_minutes: int) -> str:
    return (
        f"Password Reset Request\n\n"
        f"Hello{f' {user_name}' if user_name else ''},\n\n"
        f"Your password reset code is: {otp_code}\n\n"
        f"This code expires in {expires_minutes} minutes.\n\n"
        f"If you didn't request this, please ignore this email."
    )
