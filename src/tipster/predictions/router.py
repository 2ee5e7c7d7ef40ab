"""Prediction API endpoints: streaks, history, settlement and the live ticker."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user, require_admin
from tipster.config import get_settings
from tipster.database import get_session
from tipster.db.models import User
from tipster.predictions.schemas import (
    HistoryPagination,
    LiveTickerResponse,
    PredictionHistoryResponse,
    StreakResponse,
    UpdateResultRequest,
    UpdateResultResponse,
)
from tipster.predictions.service import HistoryFilters, get_prediction_history, update_prediction_result
from tipster.predictions.streak import get_user_streak_details
from tipster.predictions.ticker import get_live_ticker

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/predictions", tags=["Predictions"])


@router.get("/streak", response_model=StreakResponse)
async def get_streak(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> StreakResponse:
    details = await get_user_streak_details(db, user.id)
    return StreakResponse(**details.as_dict())


@router.get("/history", response_model=PredictionHistoryResponse)
async def get_history(
    search: str | None = Query(None, max_length=100),
    league: str | None = Query(None),
    status: str | None = Query(None),
    result: Literal["won", "lost", "void", "pending"] | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    sort_by: Literal["created_at", "confidence_score", "odds", "match_date"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> PredictionHistoryResponse:
    """Predictions for matches that have already started, with a computed result."""
    filters = HistoryFilters(
        search=search,
        league=league,
        status=status,
        result=result,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    rows, total = await get_prediction_history(db, filters, page=page, limit=limit)
    total_pages = (total + limit - 1) // limit
    return PredictionHistoryResponse(
        predictions=rows,
        pagination=HistoryPagination(
            page=page,
            limit=limit,
            total_count=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        ),
    )


@router.post("/update-result", response_model=UpdateResultResponse)
async def update_result(
    body: UpdateResultRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> UpdateResultResponse:
    try:
        prediction, users = await update_prediction_result(
            db,
            body.prediction_id,
            body.result,
            home_score=body.home_score,
            away_score=body.away_score,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return UpdateResultResponse(
        prediction_id=prediction.id,
        status=prediction.status,
        result_updated_at=prediction.result_updated_at,
        users_updated=len(users),
    )


@router.get("/live-ticker", response_model=LiveTickerResponse)
async def live_ticker(db: AsyncSession = Depends(get_session)) -> LiveTickerResponse:
    """Upcoming and in-play predictions for the homepage ticker."""
    try:
        payload = await get_live_ticker(db, get_settings().live_ticker_cache_ttl_seconds)
    except Exception as e:
        logger.error("live_ticker_failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch live predictions") from e
    return LiveTickerResponse(**payload)
