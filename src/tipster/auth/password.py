"""Password hashing (argon2id) and strength rules for credential sign-in."""

from __future__ import annotations

import argon2

from tipster.config import get_settings

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Return True if ``password`` matches. Never raises on mismatch or a missing hash."""
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


def validate_password_strength(password: str) -> None:
    """
    Reject passwords that are blank, outside the configured length bounds,
    or missing an uppercase letter, a lowercase letter or a digit.

    Raises:
        PasswordStrengthError: describing the first rule that failed.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)
    checks = (
        (str.isupper, "uppercase letter"),
        (str.islower, "lowercase letter"),
        (str.isdigit, "digit"),
    )
    for predicate, label in checks:
        if not any(predicate(c) for c in password):
            msg = f"Password must contain at least one {label}"
            raise PasswordStrengthError(msg)
