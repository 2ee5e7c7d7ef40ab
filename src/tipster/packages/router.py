"""Package offer, purchase history and package-tip endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.credits.service import invalidate_credit_balance, match_label
from tipster.database import get_session
from tipster.db.models import User
from tipster.errors import ConflictError
from tipster.packages.schemas import PackageTipClaimRequest
from tipster.packages.service import (
    claim_tip_from_package,
    list_my_packages,
    list_offers_for_country,
    list_package_tips,
)
from tipster.redis_client import get_redis

router = APIRouter(prefix="/api/v1", tags=["Packages"])


@router.get("/package-offers")
async def package_offers(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    if user.country_id is None:
        raise HTTPException(status_code=400, detail="User country not set")
    return await list_offers_for_country(db, user.country_id)


@router.get("/my-packages")
async def my_packages(
    limit: int = Query(10, ge=1, le=100),
    latest: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    packages = await list_my_packages(db, user, limit=1 if latest else limit)
    return {"packages": packages, "total": len(packages)}


@router.post("/user-packages/claim-tip")
async def claim_package_tip(
    body: PackageTipClaimRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        tip = await claim_tip_from_package(db, user.id, body.prediction_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await invalidate_credit_balance(get_redis(), user.id)
    return {
        "success": True,
        "tip_id": tip.id,
        "prediction_id": tip.prediction_id,
        "user_package_id": tip.user_package_id,
        "claimed_at": tip.claimed_at,
    }


@router.get("/user-packages/tips-history")
async def tips_history(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    tips = await list_package_tips(db, user.id, limit=limit)
    return {
        "tips": [
            {
                "id": t.id,
                "prediction_id": t.prediction_id,
                "user_package_id": t.user_package_id,
                "match": match_label(t.prediction),
                "prediction_type": t.prediction.prediction_type,
                "confidence_score": t.prediction.confidence_score,
                "status": t.status,
                "claimed_at": t.claimed_at,
            }
            for t in tips
        ],
        "total": len(tips),
    }
