"""Password hashing with bcrypt."""

import bcrypt

from vdr_api.errors import InputValidationError

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def check_new_password(new_password: str, confirm_password: str) -> None:
    """
    Rules shared by every password change.

    Raises:
        InputValidationError: The passwords differ or the new one is too short
    """
    if new_password != confirm_password:
        raise InputValidationError("New password and confirm password do not match")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InputValidationError(f"New password must be at least {MIN_PASSWORD_LENGTH} characters")
