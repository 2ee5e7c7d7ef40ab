"""Referral endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.credits.service import invalidate_credit_balance
from tipster.database import get_session
from tipster.db.models import User
from tipster.errors import ConflictError
from tipster.redis_client import get_redis
from tipster.referrals.schemas import ReferralCodeRequest
from tipster.referrals.service import (
    apply_referral_code,
    check_completion,
    get_or_create_code,
    get_recent_referrals,
    get_referral_stats,
    validate_code,
)

router = APIRouter(prefix="/api/v1/referrals", tags=["Referrals"])


@router.get("")
async def my_referrals(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    code = await get_or_create_code(db, user.id)
    stats = await get_referral_stats(db, user.id)
    recent = await get_recent_referrals(db, user.id)
    return {
        "referral_code": code.code,
        "is_active": code.is_active,
        "usage_count": code.usage_count,
        "max_usage": code.max_usage,
        "expires_at": code.expires_at,
        "stats": stats,
        "recent_referrals": [
            {
                "id": r.id,
                "status": r.status,
                "credits_earned": r.referrer_reward_credits,
                "points_earned": r.referrer_reward_points,
                "created_at": r.created_at,
                "completed_at": r.completed_at,
            }
            for r in recent
        ],
    }


@router.post("/validate")
async def validate(body: ReferralCodeRequest, db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    try:
        row = await validate_code(db, body.code)
    except (LookupError, ValueError) as e:
        return {"valid": False, "error": str(e)}
    return {"valid": True, "code": row.code}


@router.post("/apply")
async def apply(
    body: ReferralCodeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        referral = await apply_referral_code(db, user, body.code)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"success": True, "referral_id": referral.id, "status": referral.status}


@router.post("/check-completion")
async def completion(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    result = await check_completion(db, user)
    if result["completed"]:
        redis = get_redis()
        await invalidate_credit_balance(redis, user.id)
        await invalidate_credit_balance(redis, result["referrer_id"])
    return result
