"""Referral codes, referral tracking and completion rewards.

A referral stays ``pending`` until the referred user satisfies every
completion criterion; both sides are rewarded once, on completion.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.credits.service import add_credits, add_points
from tipster.db.models import QuizParticipation, Referral, ReferralCode, User, UserPackage, UserPrediction
from tipster.errors import ConflictError
from tipster.notifications.service import notify_referral_completed

logger = structlog.get_logger()

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10

REFERRER_CREDITS = 50
REFERRER_POINTS = 100
REFERRED_CREDITS = 25
REFERRED_POINTS = 50

MIN_ACCOUNT_AGE = timedelta(days=7)
MIN_QUIZ_SCORE = 70
MIN_PREDICTIONS = 3
MIN_PACKAGES = 1


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def get_or_create_code(db: AsyncSession, user_id: int) -> ReferralCode:
    """The user's referral code, created on first access.

    Raises:
        RuntimeError: No unused code was found in ``MAX_CODE_ATTEMPTS`` tries.
    """
    existing = (await db.execute(select(ReferralCode).where(ReferralCode.user_id == user_id))).scalar_one_or_none()
    if existing is not None:
        return existing

    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_code()
        taken = (await db.execute(select(ReferralCode.id).where(ReferralCode.code == code))).first()
        if taken is None:
            break
    else:
        msg = "Failed to generate unique referral code"
        raise RuntimeError(msg)

    row = ReferralCode(user_id=user_id, code=code, is_active=True)
    db.add(row)
    await db.commit()
    logger.info("referral_code_created", user_id=user_id, code=code)
    return row


async def validate_code(db: AsyncSession, code: str) -> ReferralCode:
    """
    Return the usable code row.

    Raises:
        LookupError: Unknown or inactive code.
        ValueError: Usage limit reached or expired.
    """
    row = (
        await db.execute(select(ReferralCode).where(ReferralCode.code == code.strip().upper()))
    ).scalar_one_or_none()
    if row is None or not row.is_active:
        msg = "Invalid referral code"
        raise LookupError(msg)
    if row.max_usage is not None and row.usage_count >= row.max_usage:
        msg = "Referral code usage limit reached"
        raise ValueError(msg)
    if row.expires_at is not None and row.expires_at < datetime.now(timezone.utc):
        msg = "Referral code has expired"
        raise ValueError(msg)
    return row


async def apply_referral_code(db: AsyncSession, user: User, code: str) -> Referral:
    """
    Link ``user`` to the owner of ``code``. Flushes; the caller commits.

    Raises:
        LookupError: Invalid code.
        ValueError: Own code, exhausted or expired code.
        ConflictError: The user was already referred.
    """
    row = await validate_code(db, code)
    if row.user_id == user.id:
        msg = "You cannot use your own referral code"
        raise ValueError(msg)
    already = (await db.execute(select(Referral.id).where(Referral.referred_id == user.id))).first()
    if already is not None:
        msg = "Referral already applied"
        raise ConflictError(msg)

    referral = Referral(referrer_id=row.user_id, referred_id=user.id, referral_code_id=row.id, status="pending")
    db.add(referral)
    await db.flush()
    logger.info("referral_applied", referrer_id=row.user_id, referred_id=user.id, code=row.code)
    return referral


async def get_referral_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    rows = (
        await db.execute(
            select(Referral.status, func.count(), func.coalesce(func.sum(Referral.referrer_reward_credits), 0))
            .where(Referral.referrer_id == user_id)
            .group_by(Referral.status)
        )
    ).all()
    total = sum(count for _, count, _ in rows)
    completed = sum(count for status, count, _ in rows if status == "completed")
    earned = sum(int(credits) for status, _, credits in rows if status == "completed")
    return {
        "total_referrals": total,
        "completed_referrals": completed,
        "pending_referrals": total - completed,
        "total_earned": earned,
        "completion_rate": round(completed / total * 100, 2) if total else 0.0,
    }


async def get_recent_referrals(db: AsyncSession, user_id: int, limit: int = 10) -> list[Referral]:
    result = await db.execute(
        select(Referral).where(Referral.referrer_id == user_id).order_by(Referral.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionProgress:
    account_age_ok: bool
    quiz_ok: bool
    predictions: int
    packages: int

    @property
    def is_complete(self) -> bool:
        return (
            self.account_age_ok
            and self.quiz_ok
            and self.predictions >= MIN_PREDICTIONS
            and self.packages >= MIN_PACKAGES
        )


async def completion_progress(db: AsyncSession, user: User) -> CompletionProgress:
    best_quiz = (
        await db.execute(
            select(func.max(QuizParticipation.total_score)).where(
                QuizParticipation.user_id == user.id, QuizParticipation.is_completed.is_(True)
            )
        )
    ).scalar_one_or_none()
    predictions = (
        await db.execute(select(func.count()).select_from(UserPrediction).where(UserPrediction.user_id == user.id))
    ).scalar_one()
    packages = (
        await db.execute(select(func.count()).select_from(UserPackage).where(UserPackage.user_id == user.id))
    ).scalar_one()
    return CompletionProgress(
        account_age_ok=datetime.now(timezone.utc) - user.created_at >= MIN_ACCOUNT_AGE,
        quiz_ok=(best_quiz or 0) >= MIN_QUIZ_SCORE,
        predictions=predictions,
        packages=packages,
    )


async def _reward(db: AsyncSession, user_id: int, credits: int, points: int, referral_id: int, role: str) -> None:
    await add_credits(
        db,
        user_id,
        credits,
        source="referral",
        description=f"Referral reward ({role})",
        metadata={"referral_id": referral_id},
    )
    await add_points(
        db,
        user_id,
        points,
        type_="REFERRAL",
        description=f"Referral reward ({role})",
        reference=str(referral_id),
    )


async def check_completion(db: AsyncSession, user: User) -> dict[str, Any]:
    """Complete the user's pending referral when every criterion holds."""
    referral = (
        await db.execute(select(Referral).where(Referral.referred_id == user.id, Referral.status == "pending"))
    ).scalar_one_or_none()
    if referral is None:
        return {"completed": False, "reason": "No pending referral"}

    progress = await completion_progress(db, user)
    if not progress.is_complete:
        return {
            "completed": False,
            "reason": "Completion criteria not met",
            "progress": {
                "account_age_ok": progress.account_age_ok,
                "quiz_ok": progress.quiz_ok,
                "predictions": progress.predictions,
                "packages": progress.packages,
            },
        }

    referral.status = "completed"
    referral.completed_at = datetime.now(timezone.utc)
    referral.referrer_reward_credits = REFERRER_CREDITS
    referral.referrer_reward_points = REFERRER_POINTS
    referral.referred_reward_credits = REFERRED_CREDITS
    referral.referred_reward_points = REFERRED_POINTS
    await _reward(db, referral.referrer_id, REFERRER_CREDITS, REFERRER_POINTS, referral.id, "referrer")
    await _reward(db, user.id, REFERRED_CREDITS, REFERRED_POINTS, referral.id, "referred")
    await db.execute(
        update(ReferralCode)
        .where(ReferralCode.id == referral.referral_code_id)
        .values(usage_count=ReferralCode.usage_count + 1)
    )
    await notify_referral_completed(db, referral.referrer_id, REFERRER_CREDITS, REFERRER_POINTS)
    await db.commit()
    logger.info("referral_completed", referral_id=referral.id, referrer_id=referral.referrer_id, referred_id=user.id)
    return {
        "completed": True,
        "referral_id": referral.id,
        "referrer_id": referral.referrer_id,
        "rewards": {
            "credits": REFERRED_CREDITS,
            "points": REFERRED_POINTS,
        },
    }
