"""Closing-line-value opportunity cache.

Opportunities come from the prediction backend and are snapshotted into
``clv_opportunity_cache`` so clients on slow links can read them without
hitting the backend. Snapshots older than an hour are discarded.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import Settings
from tipster.db.models import CLVOpportunityCache

logger = structlog.get_logger()

CACHE_MAX_AGE = timedelta(hours=1)


class BackendUnavailableError(RuntimeError):
    """The prediction backend returned a non-2xx response or was unreachable."""


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def fetch_opportunities(settings: Settings, window: str = "all") -> list[dict[str, Any]]:
    """GET ``/clv/club/opportunities`` from the backend."""
    params = {"window": window} if window and window != "all" else None
    headers = {"Authorization": f"Bearer {settings.backend_api_key}"}
    url = f"{settings.backend_url.rstrip('/')}/clv/club/opportunities"
    try:
        async with httpx.AsyncClient(timeout=settings.backend_timeout_seconds) as client:
            resp = await client.get(url, params=params, headers=headers)
    except httpx.HTTPError as e:
        msg = f"Backend request failed: {e}"
        raise BackendUnavailableError(msg) from e
    if not resp.is_success:
        msg = f"Backend responded with status {resp.status_code}"
        raise BackendUnavailableError(msg)

    data = resp.json()
    return data.get("items") or data.get("opportunities") or []


def to_cache_row(opp: dict[str, Any], window: str, now: datetime) -> CLVOpportunityCache:
    match_id = opp.get("match_id")
    return CLVOpportunityCache(
        match_id=str(match_id) if match_id is not None else None,
        home_team=opp["home_team"],
        away_team=opp["away_team"],
        league=opp.get("league"),
        match_date=_parse_dt(opp["match_date"]),
        market_type=opp["market_type"],
        selection=opp["selection"],
        entry_odds=float(opp["entry_odds"]),
        close_odds=float(opp["close_odds"]) if opp.get("close_odds") is not None else None,
        entry_time=_parse_dt(opp["entry_time"]),
        bookmaker=opp.get("bookmaker"),
        time_bucket=opp.get("time_bucket"),
        window_filter=window,
        cached_at=now,
    )


async def store_opportunities(db: AsyncSession, opportunities: list[dict[str, Any]], window: str) -> int:
    """Drop stale snapshots and insert the fresh batch. Returns rows stored."""
    now = datetime.now(timezone.utc)
    await db.execute(delete(CLVOpportunityCache).where(CLVOpportunityCache.cached_at < now - CACHE_MAX_AGE))
    rows = [to_cache_row(opp, window, now) for opp in opportunities]
    db.add_all(rows)
    await db.commit()
    return len(rows)


async def refresh_cache(db: AsyncSession, settings: Settings, window: str = "all") -> int:
    opportunities = await fetch_opportunities(settings, window)
    stored = await store_opportunities(db, opportunities, window)
    logger.info("clv_cache_refreshed", window=window, cached=stored)
    return stored


def cache_row_payload(row: CLVOpportunityCache) -> dict[str, Any]:
    return {
        "match_id": int(row.match_id) if row.match_id and row.match_id.isdigit() else 0,
        "home_team": row.home_team,
        "away_team": row.away_team,
        "league": row.league,
        "match_date": row.match_date.isoformat(),
        "market_type": row.market_type,
        "selection": row.selection,
        "entry_odds": row.entry_odds,
        "close_odds": row.close_odds,
        "entry_time": row.entry_time.isoformat(),
        "bookmaker": row.bookmaker,
        "time_bucket": row.time_bucket,
    }


async def get_cached(db: AsyncSession, window: str = "all") -> list[CLVOpportunityCache]:
    cutoff = datetime.now(timezone.utc) - CACHE_MAX_AGE
    result = await db.execute(
        select(CLVOpportunityCache)
        .where(CLVOpportunityCache.cached_at >= cutoff, CLVOpportunityCache.window_filter == window)
        .order_by(CLVOpportunityCache.match_date.asc())
    )
    return list(result.scalars().all())
