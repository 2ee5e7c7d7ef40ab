"""Prediction history and result settlement."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tipster.db.models import CreditTipClaim, League, Match, Prediction, Team, UserPackageTip, UserPrediction
from tipster.predictions.streak import update_user_win_streak

logger = structlog.get_logger()

VALID_RESULTS = ("won", "lost", "pending", "void")
VOID_MATCH_STATUSES = ("cancelled", "postponed")

_SORT_COLUMNS = {
    "created_at": Prediction.created_at,
    "confidence_score": Prediction.confidence_score,
    "odds": Prediction.odds,
    "match_date": Match.match_date,
}


def compute_result(
    prediction_type: str,
    match_status: str,
    home_score: int | None,
    away_score: int | None,
) -> str:
    """Derive won/lost/void/pending for a 1X2 prediction from the final score."""
    if match_status == "finished" and home_score is not None and away_score is not None:
        if prediction_type == "home_win" and home_score > away_score:
            return "won"
        if prediction_type == "away_win" and away_score > home_score:
            return "won"
        if prediction_type == "draw" and home_score == away_score:
            return "won"
        return "lost"
    if match_status in VOID_MATCH_STATUSES:
        return "void"
    return "pending"


@dataclass
class HistoryFilters:
    search: str | None = None
    league: str | None = None
    status: str | None = None
    result: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def _history_row(prediction: Prediction) -> dict[str, Any]:
    match = prediction.match
    return {
        "id": prediction.id,
        "match": {
            "id": match.id,
            "home_team": {"id": match.home_team.id, "name": match.home_team.name},
            "away_team": {"id": match.away_team.id, "name": match.away_team.name},
            "league": {"id": match.league.id, "name": match.league.name},
            "match_date": match.match_date,
            "status": match.status,
            "home_score": match.home_score,
            "away_score": match.away_score,
        },
        "prediction_type": prediction.prediction_type,
        "confidence_score": prediction.confidence_score,
        "odds": float(prediction.odds) if prediction.odds is not None else None,
        "value_rating": prediction.value_rating,
        "explanation": prediction.explanation,
        "status": prediction.status,
        "is_free": prediction.is_free,
        "is_featured": prediction.is_featured,
        "type": prediction.type,
        "created_at": prediction.created_at,
        "result_updated_at": prediction.result_updated_at,
        "result": compute_result(prediction.prediction_type, match.status, match.home_score, match.away_score),
    }


async def get_prediction_history(
    db: AsyncSession,
    filters: HistoryFilters,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[dict[str, Any]], int]:
    """Predictions for matches that have already kicked off.

    The ``result`` filter applies to the computed result, so when it is set
    the whole filtered set is loaded and paginated in memory.
    """
    home = aliased(Team)
    away = aliased(Team)
    stmt = (
        select(Prediction)
        .join(Match, Prediction.match_id == Match.id)
        .join(League, Match.league_id == League.id)
        .join(home, Match.home_team_id == home.id)
        .join(away, Match.away_team_id == away.id)
        .where(Match.match_date < datetime.now(timezone.utc))
    )
    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(or_(home.name.ilike(pattern), away.name.ilike(pattern), League.name.ilike(pattern)))
    if filters.league:
        stmt = stmt.where(League.name == filters.league)
    if filters.status:
        stmt = stmt.where(Prediction.status == filters.status)
    if filters.date_from:
        stmt = stmt.where(Prediction.created_at >= filters.date_from)
    if filters.date_to:
        stmt = stmt.where(Prediction.created_at <= filters.date_to)

    column = _SORT_COLUMNS.get(filters.sort_by, Prediction.created_at)
    stmt = stmt.order_by(column.asc() if filters.sort_order == "asc" else column.desc(), Prediction.id.desc())

    offset = (page - 1) * limit
    if filters.result:
        rows = [_history_row(p) for p in (await db.execute(stmt)).unique().scalars().all()]
        rows = [r for r in rows if r["result"] == filters.result]
        return rows[offset : offset + limit], len(rows)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    page_rows = (await db.execute(stmt.offset(offset).limit(limit))).unique().scalars().all()
    return [_history_row(p) for p in page_rows], total


async def update_prediction_result(
    db: AsyncSession,
    prediction_id: int,
    result: str,
    home_score: int | None = None,
    away_score: int | None = None,
) -> tuple[Prediction, list[int]]:
    """
    Settle a prediction and every user prediction that follows it.

    Scores are written (and the match marked finished) only when both are
    given. Win streaks of affected users are refreshed after the commit.

    Raises:
        ValueError: If ``result`` is not a known status.
        LookupError: If the prediction does not exist.
    """
    if result not in VALID_RESULTS:
        msg = "Invalid result status"
        raise ValueError(msg)

    prediction = (
        await db.execute(select(Prediction).where(Prediction.id == prediction_id))
    ).unique().scalar_one_or_none()
    if prediction is None:
        msg = "Prediction not found"
        raise LookupError(msg)

    if home_score is not None and away_score is not None:
        await db.execute(
            update(Match)
            .where(Match.id == prediction.match_id)
            .values(home_score=home_score, away_score=away_score, status="finished")
        )

    prediction.status = result
    prediction.result_updated_at = datetime.now(timezone.utc)

    user_ids = (
        await db.execute(select(UserPrediction.user_id).where(UserPrediction.prediction_id == prediction_id))
    ).scalars().all()
    await db.execute(
        update(UserPrediction).where(UserPrediction.prediction_id == prediction_id).values(status=result)
    )
    await db.commit()

    affected = sorted(set(user_ids))
    for user_id in affected:
        try:
            await update_user_win_streak(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error("win_streak_update_failed", user_id=user_id, prediction_id=prediction_id, exc_info=True)

    logger.info(
        "prediction_result_updated",
        prediction_id=prediction_id,
        result=result,
        home_score=home_score,
        away_score=away_score,
        users_updated=len(affected),
    )
    return prediction, affected


async def has_unlocked_prediction(db: AsyncSession, user_id: int, prediction_id: int) -> bool:
    """True when the user already holds this prediction through any channel."""
    checks = (
        select(UserPrediction.id).where(
            and_(UserPrediction.user_id == user_id, UserPrediction.prediction_id == prediction_id)
        ),
        select(CreditTipClaim.id).where(
            and_(CreditTipClaim.user_id == user_id, CreditTipClaim.prediction_id == prediction_id)
        ),
        select(UserPackageTip.id).where(
            and_(UserPackageTip.user_id == user_id, UserPackageTip.prediction_id == prediction_id)
        ),
    )
    for stmt in checks:
        if (await db.execute(stmt.limit(1))).first() is not None:
            return True
    return False
