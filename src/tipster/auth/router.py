"""Authentication endpoints under /api/v1/auth."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.auth.jwt import create_access_token
from tipster.auth.password import PasswordStrengthError
from tipster.auth.schemas import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from tipster.auth.service import (
    AccountLockedError,
    authenticate_user,
    issue_refresh_token,
    register_user,
    revoke_all_tokens,
    rotate_refresh_token,
)
from tipster.config import get_settings
from tipster.database import get_session
from tipster.db.models import User
from tipster.email.service import get_email_service
from tipster.redis_client import get_redis
from tipster.referrals.service import apply_referral_code

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        country_code=user.country.code if user.country else None,
        prediction_credits=user.prediction_credits or 0,
        win_streak=user.win_streak or 0,
        email_verified=user.email_verified,
        created_at=user.created_at,
        last_login=user.last_login,
    )


async def _issue_tokens(
    db: AsyncSession, user: User, request: Request, token_id: str | None = None
) -> TokenResponse:
    refresh_token = await issue_refresh_token(
        db,
        user.id,
        token_id=token_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    await db.commit()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email, user.role),
        refresh_token=refresh_token,
        expires_in=get_settings().jwt_access_token_expire_minutes * 60,
        user=user_response(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Register with email + password, optionally through a referral code."""
    try:
        user = await register_user(
            db,
            email=body.email,
            password=body.password,
            full_name=body.full_name,
            country_code=body.country_code,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    if body.referral_code:
        try:
            await apply_referral_code(db, user, body.referral_code)
        except (LookupError, ValueError):
            logger.warning("signup_referral_rejected", user_id=user.id, code=body.referral_code, exc_info=True)

    try:
        await get_email_service().send_template(
            to=user.email,
            template_name="welcome",
            context={"full_name": user.full_name},
        )
    except Exception:
        logger.exception("welcome_email_failed", user_id=user.id)

    return await _issue_tokens(db, user, request)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis),  # type: ignore[assignment]
) -> TokenResponse:
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except AccountLockedError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after_seconds)},
        ) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    return await _issue_tokens(db, user, request)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate a refresh token. Each token can be exchanged once."""
    try:
        user, token_id = await rotate_refresh_token(db, body.refresh_token)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return await _issue_tokens(db, user, request, token_id=token_id)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return user_response(user)


@router.post("/logout-all")
async def logout_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Revoke all refresh tokens for the current user."""
    count = await revoke_all_tokens(db, user.id)
    await db.commit()
    return {"status": "all_sessions_revoked", "revoked_count": count}
