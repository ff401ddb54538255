"""Password hashing and reset token generation."""

import logging
import secrets

import bcrypt

from app.config import get_settings

logger = logging.getLogger("ifrs_explorer")


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password using bcrypt."""
    if rounds is None:
        rounds = get_settings().BCRYPT_ROUNDS
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError as e:
        logger.warning("Password verification error: %s", e)
        return False


def generate_reset_token() -> str:
    """Return 32 random bytes as a hex string."""
    return secrets.token_hex(32)
