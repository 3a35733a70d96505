"""
Password hashing and verification.

bcrypt with a per-call random salt embedded in the hash and a fixed work
factor taken from ``settings.BCRYPT_ROUNDS``.  bcrypt only consumes the
first 72 bytes of the secret, so longer input is refused rather than cut:
two passwords sharing a 72-byte prefix must never verify against each
other.
"""
from __future__ import annotations

import bcrypt

from app.config import settings

MAX_PASSWORD_BYTES = 72


class PasswordTooLong(ValueError):
    pass


def check_password_length(password: str) -> str:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordTooLong(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8.")
    return password


def _encode(password: str) -> bytes:
    return check_password_length(password).encode("utf-8")


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash *password* with bcrypt (auto-salted).

    Raises ``PasswordTooLong`` when the UTF-8 encoding exceeds 72 bytes.
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of *password* against *password_hash*.

    A malformed or empty hash, or a password bcrypt could not have hashed,
    is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError):
        return False
