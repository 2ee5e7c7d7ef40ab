"""CLV cache endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user, require_admin
from tipster.clv.schemas import CacheRefreshRequest, CacheRefreshResponse
from tipster.clv.service import BackendUnavailableError, cache_row_payload, get_cached, refresh_cache
from tipster.config import get_settings
from tipster.database import get_session
from tipster.db.models import User

router = APIRouter(prefix="/api/v1", tags=["CLV"])


@router.post("/admin/clv/cache", response_model=CacheRefreshResponse)
async def refresh(
    body: CacheRefreshRequest | None = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> CacheRefreshResponse:
    window = body.window if body else "all"
    try:
        cached = await refresh_cache(db, get_settings(), window)
    except BackendUnavailableError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return CacheRefreshResponse(cached=cached, window=window, timestamp=datetime.now(timezone.utc))


@router.get("/clv/cache")
async def cached_opportunities(
    window: str = Query("all", max_length=16),
    use_cache: bool = Query(False),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    if not use_cache:
        return {"success": False, "message": "Cache not requested"}

    rows = await get_cached(db, window)
    generated_at = min((r.cached_at for r in rows), default=datetime.now(timezone.utc))
    return {
        "opportunities": [cache_row_payload(r) for r in rows],
        "meta": {"count": len(rows), "window": window, "generated_at": generated_at, "cached": True},
    }
