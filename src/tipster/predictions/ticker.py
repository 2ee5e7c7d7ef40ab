"""Live predictions ticker built from enriched quick purchases."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import QuickPurchase

logger = structlog.get_logger()

TICKER_LIMIT = 8
LOOKBACK = timedelta(hours=48)
LIVE_WINDOW = timedelta(hours=2)

_RISK_TO_VALUE = {"Low": "High", "Medium": "Medium", "High": "Low"}

_cache: dict[str, Any] = {"data": None, "timestamp": 0.0}


def reset_ticker_cache() -> None:
    _cache["data"] = None
    _cache["timestamp"] = 0.0


def cache_age_minutes(now: float | None = None) -> int:
    now = time.time() if now is None else now
    return round((now - _cache["timestamp"]) / 60)


def _parse_kickoff(raw: str) -> datetime:
    kickoff = datetime.fromisoformat(raw)
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    return kickoff


def match_status(kickoff: datetime, now: datetime) -> str:
    """``live`` up to two hours after kickoff, ``upcoming`` before, else ``completed``."""
    if kickoff > now:
        return "upcoming"
    if now - kickoff < LIVE_WINDOW:
        return "live"
    return "completed"


def parse_prediction_data(prediction_data: dict[str, Any] | None) -> dict[str, Any]:
    """Extract type, confidence, odds and value rating from enriched prediction data."""
    parsed: dict[str, Any] = {
        "prediction": "unknown",
        "confidence": 75,
        "odds": 2.0,
        "value_rating": "Medium",
    }
    prediction = (prediction_data or {}).get("prediction") or {}
    probs = prediction.get("predictions")
    if not probs:
        return parsed

    analysis = prediction.get("analysis") or {}
    primary = ((analysis.get("betting_recommendations") or {}).get("primary_bet") or "").lower()
    if "home" in primary:
        parsed["prediction"] = "home_win"
    elif "away" in primary:
        parsed["prediction"] = "away_win"
    elif "draw" in primary:
        parsed["prediction"] = "draw"

    if probs.get("confidence"):
        parsed["confidence"] = round(float(probs["confidence"]) * 100)

    home, draw, away = probs.get("home_win"), probs.get("draw"), probs.get("away_win")
    if home and draw and away:
        best = max(float(home), float(draw), float(away))
        if best > 0:
            parsed["odds"] = round(1 / best, 2)

    risk = analysis.get("risk_assessment")
    if risk in _RISK_TO_VALUE:
        parsed["value_rating"] = _RISK_TO_VALUE[risk]
    return parsed


def build_ticker_entry(qp: QuickPurchase, now: datetime) -> dict[str, Any] | None:
    """Ticker row for one quick purchase, or ``None`` when it should be hidden."""
    match_data = qp.match_data or {}
    raw_date = match_data.get("date")
    if not raw_date:
        return None
    kickoff = _parse_kickoff(raw_date)
    if kickoff < now - LOOKBACK:
        return None
    status = match_status(kickoff, now)
    if status == "completed":
        return None

    return {
        "id": qp.id,
        "home_team": match_data.get("home_team") or "TBD",
        "away_team": match_data.get("away_team") or "TBD",
        "league": match_data.get("league") or "Unknown League",
        "match_time": raw_date,
        "status": status,
        **parse_prediction_data(qp.prediction_data),
        "_kickoff": kickoff,
    }


async def _load_ticker(db: AsyncSession) -> list[dict[str, Any]]:
    result = await db.execute(
        select(QuickPurchase)
        .where(
            QuickPurchase.is_active.is_(True),
            QuickPurchase.is_prediction_active.is_(True),
            QuickPurchase.prediction_data.is_not(None),
        )
        .order_by(QuickPurchase.created_at.desc())
    )
    now = datetime.now(timezone.utc)
    entries = []
    for qp in result.scalars().all():
        try:
            entry = build_ticker_entry(qp, now)
        except (ValueError, TypeError, AttributeError):
            logger.warning("ticker_entry_skipped", quick_purchase_id=qp.id, exc_info=True)
            continue
        if entry is not None:
            entries.append(entry)
    entries.sort(key=lambda e: e["_kickoff"])
    for entry in entries:
        del entry["_kickoff"]
    return entries[:TICKER_LIMIT]


async def get_live_ticker(db: AsyncSession, ttl_seconds: int) -> dict[str, Any]:
    """
    Serve the ticker from the in-process cache, refreshing once it expires.

    When the refresh fails a non-empty stale cache is returned instead;
    with nothing cached the error propagates.
    """
    now = time.time()
    if _cache["data"] is not None and now - _cache["timestamp"] < ttl_seconds:
        return {"success": True, "data": _cache["data"], "cached": True, "cache_age": cache_age_minutes(now)}

    try:
        data = await _load_ticker(db)
    except Exception:
        if _cache["data"]:
            logger.warning("live_ticker_stale_cache_served", cache_age=cache_age_minutes(), exc_info=True)
            return {
                "success": True,
                "data": _cache["data"],
                "cached": True,
                "cache_age": cache_age_minutes(),
                "error": "Using cached data due to database error",
            }
        raise

    _cache["data"] = data
    _cache["timestamp"] = now
    logger.info("live_ticker_refreshed", count=len(data))
    return {"success": True, "data": data, "cached": False, "cache_age": 0}
