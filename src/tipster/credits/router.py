"""Credit balance, eligibility and claim endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.config import get_settings
from tipster.credits.schemas import ClaimQuizRequest, ClaimTipRequest
from tipster.credits.service import (
    check_eligibility,
    claim_quiz_credits,
    claim_tip,
    get_credit_balance,
    invalidate_credit_balance,
    list_tip_claims,
    match_label,
)
from tipster.database import get_session
from tipster.db.models import User
from tipster.errors import ConflictError, CooldownError
from tipster.notifications.service import notify_tip_claimed
from tipster.redis_client import get_redis

router = APIRouter(prefix="/api/v1/credits", tags=["Credits"])


@router.get("/balance")
async def balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    data = await get_credit_balance(db, get_redis(), user, get_settings().credit_balance_cache_ttl_seconds)
    return {"success": True, "data": data}


@router.get("/check-eligibility")
async def eligibility(
    prediction_id: int = Query(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        return await check_eligibility(db, user, prediction_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/claim-tip")
async def claim(
    body: ClaimTipRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Spend one credit to unlock a prediction for 24 hours."""
    try:
        record = await claim_tip(db, user, body.prediction_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    await invalidate_credit_balance(get_redis(), user.id)
    await notify_tip_claimed(db, user.id, match_label(record.prediction), user.prediction_credits)
    await db.commit()
    return {
        "success": True,
        "claim_id": record.id,
        "prediction_id": record.prediction_id,
        "expires_at": record.expires_at,
        "credits_remaining": user.prediction_credits,
    }


@router.get("/claim-tip")
async def claimed_tips(
    status: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    claims, total = await list_tip_claims(db, user.id, status=status, limit=limit, offset=offset)
    return {
        "claims": [
            {
                "id": c.id,
                "prediction_id": c.prediction_id,
                "match": match_label(c.prediction),
                "prediction_type": c.prediction.prediction_type,
                "credits_spent": c.credits_spent,
                "status": c.status,
                "claimed_at": c.claimed_at,
                "expires_at": c.expires_at,
            }
            for c in claims
        ],
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + len(claims) < total,
    }


@router.post("/claim-quiz")
async def claim_quiz(
    body: ClaimQuizRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        result = await claim_quiz_credits(db, user, body.participation_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except CooldownError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after_days * 86400)},
        ) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    await invalidate_credit_balance(get_redis(), user.id)
    return {"success": True, **result}
