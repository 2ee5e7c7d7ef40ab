"""
Credential accounts: sign-up, sign-in and refresh token rotation.

Failed sign-ins are counted per email address in Redis, so unknown
addresses lock out exactly like real ones.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import jwt
import structlog
from sqlalchemy import func, select, update

from tipster.auth.jwt import create_refresh_token, verify_token
from tipster.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from tipster.config import get_settings
from tipster.db.models import Country, RefreshToken, User

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"


class AccountLockedError(PermissionError):
    """Too many failed sign-ins for an address (429)."""

    def __init__(self, retry_after_seconds: int) -> None:
        minutes = max(retry_after_seconds // 60, 1)
        unit = "minute" if minutes == 1 else "minutes"
        super().__init__(f"Too many failed sign-in attempts. Try again in {minutes} {unit}.")
        self.retry_after_seconds = retry_after_seconds


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_country_by_code(db: AsyncSession, code: str) -> Country | None:
    result = await db.execute(select(Country).where(func.lower(Country.code) == code.lower()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str | None = None,
    country_code: str | None = None,
) -> User:
    """
    Create a ``user`` account. Flushes; the caller commits.

    An unknown ``country_code`` leaves the country unset; pricing then falls
    back to the default market.

    Raises:
        PasswordStrengthError: The password fails the strength rules.
        ValueError: The email is already registered.
    """
    validate_password_strength(password)
    email = email.strip().lower()
    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValueError(msg)

    country = None
    if country_code:
        country = await get_country_by_code(db, country_code)
        if country is None:
            logger.info("signup_country_unknown", country=country_code)

    now = datetime.now(timezone.utc)
    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        role="user",
        country=country,
        prediction_credits=0,
        win_streak=0,
        created_at=now,
        last_login=now,
        login_count=1,
    )
    db.add(user)
    await db.flush()
    logger.info("user_registered", user_id=user.id, country=country.code if country else None)
    return user


# ---------------------------------------------------------------------------
# Sign-in and lockout
# ---------------------------------------------------------------------------


def _failures_key(email: str) -> str:
    return f"login-failures:{email.strip().lower()}"


async def is_locked_out(redis: Redis, email: str) -> int:
    """Seconds until the address may sign in again, 0 when it is not locked."""
    settings = get_settings()
    failures = await redis.get(_failures_key(email))
    if failures is None or int(failures) < settings.account_lockout_threshold:
        return 0
    ttl = await redis.ttl(_failures_key(email))
    return ttl if ttl > 0 else settings.account_lockout_duration_minutes * 60


async def record_failed_login(redis: Redis, email: str) -> int:
    """Count a failure. The lockout window opens at the first failure."""
    key = _failures_key(email)
    failures = int(await redis.incr(key))
    if failures == 1:
        await redis.expire(key, get_settings().account_lockout_duration_minutes * 60)
    return failures


async def authenticate_user(db: AsyncSession, redis: Redis, email: str, password: str) -> User:
    """
    Check credentials and record the sign-in. Flushes; the caller commits.

    Raises:
        AccountLockedError: Too many recent failures for ``email``.
        ValueError: Unknown email or wrong password.
        PermissionError: The account is deactivated.
    """
    retry_after = await is_locked_out(redis, email)
    if retry_after:
        raise AccountLockedError(retry_after)

    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        failures = await record_failed_login(redis, email)
        logger.info("login_failed", user_id=user.id if user else None, failures=failures)
        raise ValueError(INVALID_CREDENTIALS)
    if not user.is_active:
        msg = "Account is deactivated"
        raise PermissionError(msg)

    await redis.delete(_failures_key(email))
    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    if user.password_hash and check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def issue_refresh_token(
    db: AsyncSession,
    user_id: int,
    *,
    token_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> str:
    """Sign a refresh token and persist its hash. Returns the signed token."""
    token_id = token_id or str(uuid.uuid4())
    token = create_refresh_token(user_id, token_id=token_id)
    now = datetime.now(timezone.utc)
    db.add(
        RefreshToken(
            id=token_id,
            user_id=user_id,
            token_hash=hash_token(token),
            issued_at=now,
            expires_at=now + timedelta(days=get_settings().jwt_refresh_token_expire_days),
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
        )
    )
    await db.flush()
    return token


async def rotate_refresh_token(db: AsyncSession, token: str) -> tuple[User, str]:
    """
    Retire ``token`` and return its user with the id for the replacement.

    Presenting a token that was already rotated revokes every session of
    its user.

    Raises:
        ValueError: The token is invalid, unknown, reused or its user is gone.
    """
    try:
        payload = verify_token(token, expected_type="refresh")
    except jwt.InvalidTokenError as e:
        raise ValueError(str(e)) from e

    stored = await db.get(RefreshToken, payload.get("jti"))
    if stored is None or stored.token_hash != hash_token(token):
        msg = "Refresh token not found"
        raise ValueError(msg)
    if stored.is_revoked:
        revoked = await revoke_all_tokens(db, stored.user_id)
        await db.commit()
        logger.warning("refresh_token_reused", user_id=stored.user_id, revoked=revoked)
        msg = "Refresh token has been revoked"
        raise ValueError(msg)

    user = await get_user_by_id(db, stored.user_id)
    if user is None or not user.is_active:
        msg = "User not found"
        raise ValueError(msg)

    replacement_id = str(uuid.uuid4())
    stored.is_revoked = True
    stored.revoked_at = datetime.now(timezone.utc)
    stored.replaced_by = replacement_id
    return user, replacement_id


async def revoke_all_tokens(db: AsyncSession, user_id: int) -> int:
    """Revoke every live refresh token of a user. Returns the count revoked."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True, revoked_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]
