"""
RS256 JWT token management.

Access tokens carry the user's ``role`` so admin-only routes can reject early,
but the role is always re-checked against the database row. Refresh tokens
carry a ``jti`` naming their ``refresh_tokens`` row.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple

import jwt

from tipster.config import get_settings


class SigningKeys(NamedTuple):
    private_pem: str
    public_pem: str


@lru_cache
def signing_keys() -> SigningKeys:
    """PEM key pair from the configured paths, read once per process."""
    settings = get_settings()
    return SigningKeys(
        private_pem=Path(settings.jwt_private_key_path).read_text(),
        public_pem=Path(settings.jwt_public_key_path).read_text(),
    )


def _sign(token_type: str, user_id: int, lifetime: timedelta, **claims: Any) -> str:  # noqa: ANN401
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iss": settings.jwt_issuer,
        "iat": issued,
        "exp": issued + lifetime,
        **claims,
    }
    return jwt.encode(payload, signing_keys().private_pem, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, email: str, role: str = "user") -> str:
    minutes = get_settings().jwt_access_token_expire_minutes
    return _sign("access", user_id, timedelta(minutes=minutes), email=email, role=role)


def create_refresh_token(user_id: int, *, token_id: str) -> str:
    days = get_settings().jwt_refresh_token_expire_days
    return _sign("refresh", user_id, timedelta(days=days), jti=token_id)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Decode ``token`` and check its issuer, expiry and ``type`` claim.

    Raises:
        jwt.InvalidTokenError: Bad signature, expired, or the wrong type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            signing_keys().public_pem,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    token_type = payload.get("type")
    if token_type != expected_type:
        msg = f"Expected token type '{expected_type}', got '{token_type}'"
        raise jwt.InvalidTokenError(msg)
    return payload
