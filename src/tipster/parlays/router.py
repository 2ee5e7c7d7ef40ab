"""Parlay API endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.database import get_session
from tipster.db.models import ParlayPurchase, User
from tipster.parlays.schemas import (
    ParlayLegSummary,
    ParlayPurchaseListResponse,
    ParlayPurchaseRequest,
    ParlayPurchaseResponse,
    ParlaySummary,
)
from tipster.parlays.service import get_parlay_preview, list_parlay_purchases, purchase_parlay

router = APIRouter(prefix="/api/v1/parlays", tags=["Parlays"])


def _purchase_response(purchase: ParlayPurchase) -> ParlayPurchaseResponse:
    parlay = purchase.parlay
    return ParlayPurchaseResponse(
        id=purchase.id,
        parlay_id=parlay.parlay_id,
        amount=float(purchase.amount_usd),
        potential_return=float(purchase.potential_return),
        payment_method=purchase.payment_method,
        status=purchase.status,
        created_at=purchase.created_at,
        parlay=ParlaySummary(
            parlay_id=parlay.parlay_id,
            leg_count=parlay.leg_count,
            legs=[
                ParlayLegSummary(
                    match_id=leg.match_id,
                    home_team=leg.home_team,
                    away_team=leg.away_team,
                    outcome=leg.outcome,
                    model_prob=float(leg.model_prob),
                )
                for leg in parlay.legs
            ],
            implied_odds=float(parlay.implied_odds),
            edge_pct=float(parlay.edge_pct),
            confidence_tier=parlay.confidence_tier,
            status=parlay.status,
        ),
    )


@router.get("/preview")
async def preview(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    """Public parlay showcase: two full previews, the rest masked."""
    return await get_parlay_preview(db)


@router.post("/purchase", response_model=ParlayPurchaseResponse)
async def purchase(
    body: ParlayPurchaseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ParlayPurchaseResponse:
    try:
        record = await purchase_parlay(db, user.id, body.parlay_id, body.amount, body.payment_method)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _purchase_response(record)


@router.get("/purchases", response_model=ParlayPurchaseListResponse)
async def purchases(
    status: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ParlayPurchaseListResponse:
    records = await list_parlay_purchases(db, user.id, status=status, limit=limit)
    return ParlayPurchaseListResponse(purchases=[_purchase_response(p) for p in records], count=len(records))
