"""
Input validators — pure functions, no framework imports.
"""

from __future__ import annotations

from typing import List, Tuple

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate a password against the account password policy.

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []
    if len(password) < MIN_PASSWORD_LENGTH:
        missing.append(f"At least {MIN_PASSWORD_LENGTH} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        missing.append(f"Maximum {MAX_PASSWORD_LENGTH} characters")
    if password.strip() == "":
        missing.append("Cannot be only whitespace")

    return len(missing) == 0, missing

