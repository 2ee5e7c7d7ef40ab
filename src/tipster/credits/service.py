"""Prediction credits: unified balance, tip claims and quiz point redemption.

Balance = package tips remaining + floor(quiz points / 50); any active
unlimited package makes it ``"∞"``. Direct ``users.prediction_credits``
are what tip claims spend.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from redis.asyncio import Redis
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import (
    CreditTipClaim,
    CreditTransaction,
    PointTransaction,
    Prediction,
    QuizParticipation,
    User,
    UserPackage,
    UserPoints,
)
from tipster.errors import ConflictError, CooldownError
from tipster.predictions.service import has_unlocked_prediction
from tipster.redis_client import cache_delete, cache_get_json, cache_set_json

logger = structlog.get_logger()

UNLIMITED = "∞"
QUIZ_POINTS_PER_CREDIT = 50
TIP_ACCESS_HOURS = 24
QUIZ_CLAIM_COOLDOWN = timedelta(days=7)
QUIZ_COMPLETION = "QUIZ_COMPLETION"


def balance_cache_key(user_id: int) -> str:
    return f"credit-balance:{user_id}"


async def invalidate_credit_balance(redis: Redis | None, user_id: int) -> None:
    if redis is not None:
        await cache_delete(redis, balance_cache_key(user_id))


def quiz_credits(points: int) -> int:
    return max(points, 0) // QUIZ_POINTS_PER_CREDIT


def summarize_packages(packages: Sequence[UserPackage]) -> tuple[int, bool, list[dict[str, Any]]]:
    """Return ``(package_credits, has_unlimited, details)`` for active packages.

    Scanning stops at the first unlimited package.
    """
    credits = 0
    details: list[dict[str, Any]] = []
    for pkg in packages:
        if pkg.is_unlimited:
            details.append(
                {
                    "id": pkg.id,
                    "name": pkg.name,
                    "tips_remaining": UNLIMITED,
                    "total_tips": UNLIMITED,
                    "expires_at": pkg.expires_at.isoformat(),
                }
            )
            return credits, True, details
        credits += pkg.tips_remaining
        details.append(
            {
                "id": pkg.id,
                "name": pkg.name,
                "tips_remaining": pkg.tips_remaining,
                "total_tips": pkg.total_tips,
                "expires_at": pkg.expires_at.isoformat(),
            }
        )
    return credits, False, details


def total_credits(package_credits: int, has_unlimited: bool, points: int) -> int | str:
    if has_unlimited:
        return UNLIMITED
    return package_credits + quiz_credits(points)


async def get_active_packages(db: AsyncSession, user_id: int) -> list[UserPackage]:
    result = await db.execute(
        select(UserPackage)
        .where(
            UserPackage.user_id == user_id,
            UserPackage.status == "active",
            UserPackage.expires_at > datetime.now(timezone.utc),
        )
        .order_by(UserPackage.expires_at.asc())
    )
    return list(result.scalars().all())


async def get_user_points(db: AsyncSession, user_id: int) -> int:
    points = (await db.execute(select(UserPoints.points).where(UserPoints.user_id == user_id))).scalar_one_or_none()
    return points or 0


async def compute_balance(db: AsyncSession, user: User) -> dict[str, Any]:
    packages = await get_active_packages(db, user.id)
    package_credits, has_unlimited, details = summarize_packages(packages)
    points = await get_user_points(db, user.id)
    total = total_credits(package_credits, has_unlimited, points)

    recent = (
        await db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user.id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(5)
        )
    ).scalars().all()

    return {
        "current_credits": total,
        "direct_credits": user.prediction_credits,
        "credit_breakdown": {
            "package_credits": package_credits,
            "quiz_credits": quiz_credits(points),
            "total_credits": total,
            "has_unlimited": has_unlimited,
        },
        "quiz_credits": quiz_credits(points),
        "packages": details,
        "quiz_points": points,
        "recent_activity": [
            {
                "id": tx.id,
                "type": tx.type,
                "amount": tx.amount,
                "description": tx.description,
                "created_at": tx.created_at.isoformat(),
                "metadata": tx.tx_metadata or {},
            }
            for tx in recent
        ],
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }


async def get_credit_balance(db: AsyncSession, redis: Redis, user: User, ttl_seconds: int) -> dict[str, Any]:
    """Balance served from Redis when cached."""
    key = balance_cache_key(user.id)
    cached = await cache_get_json(redis, key)
    if cached is not None:
        return cached
    balance = await compute_balance(db, user)
    await cache_set_json(redis, key, balance, ttl_seconds)
    return balance


async def add_credits(
    db: AsyncSession,
    user_id: int,
    amount: int,
    *,
    source: str,
    description: str,
    metadata: dict[str, Any] | None = None,
) -> int:
    """Increment ``prediction_credits`` and log the movement. Returns the new balance."""
    new_balance = (
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(prediction_credits=User.prediction_credits + amount)
            .returning(User.prediction_credits)
        )
    ).scalar_one()
    db.add(
        CreditTransaction(
            user_id=user_id,
            amount=amount,
            type="earned" if amount >= 0 else "spent",
            source=source,
            description=description,
            tx_metadata=metadata or {},
        )
    )
    await db.flush()
    return new_balance


async def add_points(
    db: AsyncSession,
    user_id: int,
    points: int,
    *,
    type_: str,
    description: str,
    reference: str | None = None,
) -> UserPoints:
    """Credit quiz/referral points, creating the balance row on first use."""
    row = await db.get(UserPoints, user_id)
    if row is None:
        row = UserPoints(user_id=user_id, points=0, total_earned=0)
        db.add(row)
    row.points += points
    row.total_earned += points
    db.add(PointTransaction(user_id=user_id, points=points, type=type_, description=description, reference=reference))
    await db.flush()
    return row


# ---------------------------------------------------------------------------
# Tip claims
# ---------------------------------------------------------------------------


async def _get_prediction(db: AsyncSession, prediction_id: int) -> Prediction:
    prediction = (
        await db.execute(select(Prediction).where(Prediction.id == prediction_id))
    ).unique().scalar_one_or_none()
    if prediction is None:
        msg = "Prediction not found"
        raise LookupError(msg)
    return prediction


def match_label(prediction: Prediction) -> str:
    match = prediction.match
    return f"{match.home_team.name} vs {match.away_team.name}"


async def check_eligibility(db: AsyncSession, user: User, prediction_id: int) -> dict[str, Any]:
    prediction = await _get_prediction(db, prediction_id)
    packages = await get_active_packages(db, user.id)
    package_credits, has_unlimited, _ = summarize_packages(packages)
    points = await get_user_points(db, user.id)
    total = total_credits(package_credits, has_unlimited, points)
    already_claimed = await has_unlocked_prediction(db, user.id, prediction_id)

    enough = total == UNLIMITED or total > 1
    return {
        "eligible": enough and not already_claimed and not prediction.is_free,
        "current_credits": total,
        "direct_credits": user.prediction_credits,
        "already_claimed": already_claimed,
        "is_free": prediction.is_free,
        "prediction": {
            "id": prediction.id,
            "match": match_label(prediction),
            "prediction_type": prediction.prediction_type,
            "confidence_score": prediction.confidence_score,
        },
    }


async def claim_tip(db: AsyncSession, user: User, prediction_id: int) -> CreditTipClaim:
    """
    Spend one direct credit to unlock a prediction for 24 hours.

    Raises:
        ValueError: Not enough credits.
        LookupError: Unknown prediction.
        ConflictError: Already claimed.
    """
    if user.prediction_credits <= 1:
        msg = "Insufficient credits"
        raise ValueError(msg)
    prediction = await _get_prediction(db, prediction_id)
    existing = (
        await db.execute(
            select(CreditTipClaim.id).where(
                CreditTipClaim.user_id == user.id, CreditTipClaim.prediction_id == prediction_id
            )
        )
    ).first()
    if existing is not None:
        msg = "Tip already claimed"
        raise ConflictError(msg)

    now = datetime.now(timezone.utc)
    await add_credits(
        db,
        user.id,
        -1,
        source="tip_claim",
        description=f"Claimed tip: {match_label(prediction)}",
        metadata={"prediction_id": prediction_id},
    )
    claim = CreditTipClaim(
        user_id=user.id,
        prediction_id=prediction_id,
        prediction=prediction,
        credits_spent=1,
        status="active",
        claimed_at=now,
        expires_at=now + timedelta(hours=TIP_ACCESS_HOURS),
    )
    db.add(claim)
    await db.commit()
    await db.refresh(user, ["prediction_credits"])
    logger.info("credit_tip_claimed", user_id=user.id, prediction_id=prediction_id)
    return claim


async def list_tip_claims(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[CreditTipClaim], int]:
    stmt = select(CreditTipClaim).where(CreditTipClaim.user_id == user_id)
    if status:
        stmt = stmt.where(CreditTipClaim.status == status)
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    rows = (
        await db.execute(stmt.order_by(CreditTipClaim.claimed_at.desc()).offset(offset).limit(limit))
    ).unique().scalars().all()
    return list(rows), total


# ---------------------------------------------------------------------------
# Quiz credits
# ---------------------------------------------------------------------------


async def claim_quiz_credits(db: AsyncSession, user: User, participation_id: int) -> dict[str, Any]:
    """
    Convert a completed quiz into points, at most once a week.

    Raises:
        LookupError: Participation missing or not the user's.
        ValueError: Quiz not completed, or too few points.
        ConflictError: Already claimed.
        CooldownError: A quiz was claimed within the last seven days.
    """
    participation = await db.get(QuizParticipation, participation_id)
    if participation is None or participation.user_id != user.id:
        msg = "Quiz participation not found"
        raise LookupError(msg)
    if not participation.is_completed:
        msg = "Quiz participation is not completed"
        raise ValueError(msg)
    if participation.credits_claimed:
        msg = "Credits already claimed for this participation"
        raise ConflictError(msg)

    credits = quiz_credits(participation.total_score)
    if credits == 0:
        msg = f"You need at least {QUIZ_POINTS_PER_CREDIT} points to earn 1 credit"
        raise ValueError(msg)

    now = datetime.now(timezone.utc)
    last_claim = (
        await db.execute(
            select(PointTransaction.created_at)
            .where(PointTransaction.user_id == user.id, PointTransaction.type == QUIZ_COMPLETION)
            .order_by(PointTransaction.created_at.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if last_claim is not None and last_claim > now - QUIZ_CLAIM_COOLDOWN:
        remaining = last_claim + QUIZ_CLAIM_COOLDOWN - now
        days = max(1, -(-remaining.total_seconds() // 86400))
        msg = f"You can claim quiz credits again in {int(days)} days"
        raise CooldownError(msg, retry_after_days=int(days))

    row = await add_points(
        db,
        user.id,
        participation.total_score,
        type_=QUIZ_COMPLETION,
        description=f"Quiz completion: {participation.correct_answers} correct answers",
        reference=str(participation_id),
    )
    participation.credits_claimed = True
    participation.claimed_at = now
    await db.commit()
    logger.info(
        "quiz_credits_claimed",
        user_id=user.id,
        participation_id=participation_id,
        points=participation.total_score,
    )
    return {
        "points_earned": participation.total_score,
        "credits_earned": credits,
        "total_points": row.points,
        "quiz_credits": quiz_credits(row.points),
    }
