"""Admin league management endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import require_admin
from tipster.database import get_session
from tipster.db.models import User
from tipster.errors import ConflictError
from tipster.leagues.schemas import LeagueCreateRequest, LeagueResponse, LeagueUpdateRequest
from tipster.leagues.service import (
    create_league,
    delete_league,
    get_league_stats,
    list_leagues,
    record_sync,
    sync_health,
    update_league,
)

router = APIRouter(prefix="/api/v1/admin/leagues", tags=["Admin"])


@router.get("", response_model=list[LeagueResponse])
async def leagues(
    active_only: bool = Query(False),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[LeagueResponse]:
    return [LeagueResponse.model_validate(league) for league in await list_leagues(db, active_only)]


@router.post("", response_model=LeagueResponse, status_code=201)
async def create(
    body: LeagueCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> LeagueResponse:
    try:
        league = await create_league(db, body.model_dump())
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LeagueResponse.model_validate(league)


@router.put("/{league_id}", response_model=LeagueResponse)
async def update(
    league_id: int,
    body: LeagueUpdateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> LeagueResponse:
    try:
        league = await update_league(db, league_id, body.model_dump(exclude_unset=True))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LeagueResponse.model_validate(league)


@router.delete("/{league_id}")
async def delete(
    league_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    try:
        await delete_league(db, league_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"detail": "League deleted"}


@router.get("/{league_id}/stats")
async def stats(
    league_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        return await get_league_stats(db, league_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("/{league_id}/sync")
async def sync(
    league_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Record a completed data sync for the league."""
    try:
        league = await record_sync(db, league_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {
        "league_id": league.id,
        "sync": sync_health(league.sync_frequency, league.last_synced_at, datetime.now(timezone.utc)),
    }
