"""
Random code and token generators — pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import string

REFRESH_TOKEN_BYTES = 40


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Used for password-reset exchange tokens; the alphabet is wider than the
    OTP digits so a guessed code can never double as one.

    Args:
        length: Number of random bytes before base64 encoding (default 32).

    Returns:
        URL-safe base64-encoded token string.
    """
    return secrets.token_urlsafe(length)


def generate_refresh_token(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    """Generate an opaque refresh token: *nbytes* random bytes, hex-encoded."""
    return secrets.token_hex(nbytes)
