"""Win-streak calculation over settled user predictions.

Only ``won`` and ``lost`` results count; pending and void entries are
skipped without breaking a run.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import User, UserPrediction

logger = structlog.get_logger()

SETTLED_STATUSES = ("won", "lost")


@dataclass(frozen=True)
class StreakDetails:
    current_streak: int
    best_streak: int
    total_predictions: int
    total_wins: int
    total_losses: int
    win_rate: float

    def as_dict(self) -> dict[str, float | int]:
        return asdict(self)


def current_streak(results_newest_first: Sequence[str]) -> int:
    """Count consecutive wins from the most recent settled result backward."""
    streak = 0
    for status in results_newest_first:
        if status == "won":
            streak += 1
        elif status == "lost":
            break
    return streak


def best_streak(results_newest_first: Sequence[str]) -> int:
    """Longest run of wins, scanning chronologically."""
    best = run = 0
    for status in reversed(results_newest_first):
        if status == "won":
            run += 1
            best = max(best, run)
        elif status == "lost":
            run = 0
    return best


def calculate_streak(results_newest_first: Sequence[str]) -> tuple[int, int]:
    """Return ``(current, best)`` streaks for results ordered newest first."""
    settled = [s for s in results_newest_first if s in SETTLED_STATUSES]
    return current_streak(settled), best_streak(settled)


def streak_details(results_newest_first: Sequence[str]) -> StreakDetails:
    settled = [s for s in results_newest_first if s in SETTLED_STATUSES]
    wins = settled.count("won")
    losses = settled.count("lost")
    total = len(settled)
    return StreakDetails(
        current_streak=current_streak(settled),
        best_streak=best_streak(settled),
        total_predictions=total,
        total_wins=wins,
        total_losses=losses,
        win_rate=round(wins / total * 100, 2) if total else 0.0,
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


async def _settled_results(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(
        select(UserPrediction.status)
        .where(UserPrediction.user_id == user_id, UserPrediction.status.in_(SETTLED_STATUSES))
        .order_by(UserPrediction.placed_at.desc())
    )
    return list(result.scalars().all())


async def calculate_user_win_streak(db: AsyncSession, user_id: int) -> int:
    return current_streak(await _settled_results(db, user_id))


async def get_user_streak_details(db: AsyncSession, user_id: int) -> StreakDetails:
    return streak_details(await _settled_results(db, user_id))


async def update_user_win_streak(db: AsyncSession, user_id: int) -> int:
    """Recompute and store ``users.win_streak``. Returns the new value."""
    streak = await calculate_user_win_streak(db, user_id)
    await db.execute(update(User).where(User.id == user_id).values(win_streak=streak))
    return streak


async def update_all_win_streaks(db: AsyncSession) -> int:
    """Recompute every user's streak. Per-user failures are logged and skipped."""
    user_ids = (await db.execute(select(User.id))).scalars().all()
    updated = 0
    for user_id in user_ids:
        try:
            async with db.begin_nested():
                await update_user_win_streak(db, user_id)
            updated += 1
        except Exception:
            logger.warning("win_streak_update_failed", user_id=user_id, exc_info=True)
    await db.commit()
    logger.info("win_streaks_refreshed", users=len(user_ids), updated=updated)
    return updated
