"""League administration, statistics and sync health."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import League, Match, Prediction
from tipster.errors import ConflictError

logger = structlog.get_logger()

# frequency -> (period, healthy within, warning within)
SYNC_WINDOWS: dict[str, tuple[timedelta, timedelta, timedelta]] = {
    "hourly": (timedelta(hours=1), timedelta(hours=1), timedelta(hours=2)),
    "daily": (timedelta(days=1), timedelta(hours=24), timedelta(hours=48)),
    "weekly": (timedelta(days=7), timedelta(hours=168), timedelta(hours=336)),
}

EDITABLE_FIELDS = (
    "name",
    "country_name",
    "sport",
    "external_league_id",
    "logo_url",
    "is_active",
    "sync_frequency",
    "match_limit",
    "priority",
)


def sync_health(frequency: str, last_synced_at: datetime | None, now: datetime) -> dict[str, Any]:
    """Classify how overdue a league's data sync is."""
    window = SYNC_WINDOWS.get(frequency)
    if last_synced_at is None or window is None:
        return {"health": "unknown", "last_sync": last_synced_at, "next_sync_due": None, "frequency": frequency}

    period, healthy, warning = window
    elapsed = now - last_synced_at
    if elapsed <= healthy:
        health = "healthy"
    elif elapsed <= warning:
        health = "warning"
    else:
        health = "critical"
    return {
        "health": health,
        "last_sync": last_synced_at,
        "next_sync_due": last_synced_at + period,
        "frequency": frequency,
    }


async def list_leagues(db: AsyncSession, active_only: bool = False) -> list[League]:
    stmt = select(League).order_by(League.priority.desc(), League.name.asc())
    if active_only:
        stmt = stmt.where(League.is_active.is_(True))
    return list((await db.execute(stmt)).scalars().all())


async def get_league(db: AsyncSession, league_id: int) -> League:
    league = await db.get(League, league_id)
    if league is None:
        msg = "League not found"
        raise LookupError(msg)
    return league


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    stmt = select(League.id).where(func.lower(League.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(League.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        msg = "League with this name already exists"
        raise ConflictError(msg)


async def create_league(db: AsyncSession, data: dict[str, Any]) -> League:
    await _ensure_unique_name(db, data["name"])
    league = League(**{k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None})
    db.add(league)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "League with this name already exists"
        raise ConflictError(msg) from e
    logger.info("league_created", league_id=league.id, name=league.name)
    return league


async def update_league(db: AsyncSession, league_id: int, data: dict[str, Any]) -> League:
    league = await get_league(db, league_id)
    if data.get("name") and data["name"] != league.name:
        await _ensure_unique_name(db, data["name"], exclude_id=league_id)
    for field, value in data.items():
        if field in EDITABLE_FIELDS and value is not None:
            setattr(league, field, value)
    await db.commit()
    logger.info("league_updated", league_id=league_id, fields=sorted(k for k, v in data.items() if v is not None))
    return league


async def delete_league(db: AsyncSession, league_id: int) -> None:
    league = await get_league(db, league_id)
    await db.delete(league)
    await db.commit()
    logger.info("league_deleted", league_id=league_id)


async def record_sync(db: AsyncSession, league_id: int) -> League:
    league = await get_league(db, league_id)
    league.last_synced_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("league_sync_recorded", league_id=league_id)
    return league


async def get_league_stats(db: AsyncSession, league_id: int) -> dict[str, Any]:
    league = await get_league(db, league_id)
    now = datetime.now(timezone.utc)

    match_counts = (
        await db.execute(
            select(
                func.count(Match.id),
                func.count(case((Match.status == "upcoming", 1))),
                func.count(case((Match.status == "finished", 1))),
            ).where(Match.league_id == league_id)
        )
    ).one()
    total_matches, upcoming, finished = match_counts

    prediction_counts = (
        await db.execute(
            select(
                func.count(Prediction.id),
                func.count(case((Prediction.status == "won", 1))),
                func.count(case((Prediction.status == "lost", 1))),
                func.count(case((Prediction.status == "pending", 1))),
            )
            .join(Match, Prediction.match_id == Match.id)
            .where(Match.league_id == league_id)
        )
    ).one()
    total_predictions, won, lost, pending = prediction_counts

    predictions_per_match = (
        select(Prediction.match_id, func.count(Prediction.id).label("n"))
        .group_by(Prediction.match_id)
        .subquery()
    )
    recent = (
        await db.execute(
            select(Match, func.coalesce(predictions_per_match.c.n, 0))
            .outerjoin(predictions_per_match, predictions_per_match.c.match_id == Match.id)
            .where(Match.league_id == league_id)
            .order_by(Match.match_date.desc())
            .limit(10)
        )
    ).unique().all()

    return {
        "league": {
            "id": league.id,
            "name": league.name,
            "country_name": league.country_name,
            "sport": league.sport,
            "is_active": league.is_active,
            "external_league_id": league.external_league_id,
            "sync_frequency": league.sync_frequency,
            "match_limit": league.match_limit,
            "priority": league.priority,
        },
        "counts": {
            "total_matches": total_matches,
            "upcoming_matches": upcoming,
            "finished_matches": finished,
            "total_predictions": total_predictions,
            "won_predictions": won,
            "lost_predictions": lost,
            "pending_predictions": pending,
        },
        "performance": {
            "win_rate": round(won / total_predictions * 100, 2) if total_predictions else 0.0,
            "average_predictions_per_match": round(total_predictions / total_matches, 2) if total_matches else 0.0,
        },
        "sync": sync_health(league.sync_frequency, league.last_synced_at, now),
        "recent_matches": [
            {
                "id": match.id,
                "home_team": match.home_team.name,
                "away_team": match.away_team.name,
                "match_date": match.match_date,
                "status": match.status,
                "predictions_count": count,
            }
            for match, count in recent
        ],
    }
