"""Weekly prediction quiz: questions, participations, answers and the daily leaderboard.

Points accumulate per correct answer; completing a participation adds an
accuracy bonus. Completed participations are what ``/credits/claim-quiz``
converts into points.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import QuizAnswer, QuizParticipation, QuizQuestion, User
from tipster.errors import ConflictError, CooldownError

logger = structlog.get_logger()

QUESTIONS_PER_QUIZ = 5
PARTICIPATION_COOLDOWN = timedelta(days=7)

# (minimum accuracy %, bonus points), highest first
ACCURACY_BONUSES = ((90, 50), (80, 30), (70, 20), (60, 10))
# (minimum share correct %, leaderboard credits), highest first
LEADERBOARD_CREDITS = ((100, 50), (80, 25), (60, 10), (40, 5))


def accuracy(correct: int, answered: int) -> int:
    """Share of correct answers as a rounded percentage; 0 when nothing was answered."""
    if answered <= 0:
        return 0
    return round(correct / answered * 100)


def completion_bonus(accuracy_pct: int) -> int:
    return next((bonus for floor, bonus in ACCURACY_BONUSES if accuracy_pct >= floor), 0)


def leaderboard_credits(correct: int, answered: int) -> int:
    if answered <= 0:
        return 0
    share = correct / answered * 100
    return next((credits for floor, credits in LEADERBOARD_CREDITS if share >= floor), 0)


def days_until_next_attempt(last: datetime, now: datetime) -> int:
    elapsed_days = math.floor((now - last).total_seconds() / 86400)
    return max(1, PARTICIPATION_COOLDOWN.days - elapsed_days)


def relative_time(then: datetime, now: datetime) -> str:
    minutes = int((now - then).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 24 * 60:
        return f"{minutes // 60}h ago"
    return "Today"


def display_name(participation: QuizParticipation) -> str:
    if participation.user is not None and participation.user.full_name:
        return participation.user.full_name
    if participation.full_name:
        return participation.full_name
    if participation.email:
        return participation.email.split("@")[0]
    return "Anonymous"


# ---------------------------------------------------------------------------
# Questions & participations
# ---------------------------------------------------------------------------


async def list_questions(db: AsyncSession, limit: int = QUESTIONS_PER_QUIZ) -> list[QuizQuestion]:
    result = await db.execute(
        select(QuizQuestion)
        .where(QuizQuestion.is_active.is_(True))
        .order_by(QuizQuestion.created_at.desc(), QuizQuestion.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def start_participation(
    db: AsyncSession,
    user: User | None,
    *,
    email: str | None = None,
    full_name: str | None = None,
    phone: str | None = None,
    betting_experience: str | None = None,
    referral_code: str | None = None,
    now: datetime | None = None,
) -> QuizParticipation:
    """
    Open a participation. Signed-in users may start one per week.

    Raises:
        ValueError: Anonymous participant without an email.
        CooldownError: The user started a quiz within the last seven days.
    """
    now = now or datetime.now(timezone.utc)
    if user is not None:
        last_started = (
            await db.execute(
                select(QuizParticipation.created_at)
                .where(QuizParticipation.user_id == user.id, QuizParticipation.created_at >= now - PARTICIPATION_COOLDOWN)
                .order_by(QuizParticipation.created_at.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        if last_started is not None:
            days = days_until_next_attempt(last_started, now)
            msg = f"You can only take the quiz once per week. Try again in {days} days."
            raise CooldownError(msg, retry_after_days=days)
    elif not email:
        msg = "Email is required"
        raise ValueError(msg)

    participation = QuizParticipation(
        user_id=user.id if user is not None else None,
        email=email or (user.email if user is not None else None),
        full_name=full_name or (user.full_name if user is not None else None),
        phone=phone,
        betting_experience=betting_experience,
        referral_code=referral_code.strip().upper() if referral_code else None,
        created_at=now,
    )
    db.add(participation)
    await db.commit()
    logger.info("quiz_started", participation_id=participation.id, user_id=participation.user_id)
    return participation


async def get_participation(db: AsyncSession, participation_id: int, user: User | None) -> QuizParticipation:
    """
    Raises:
        LookupError: Unknown participation.
        PermissionError: It belongs to another user.
    """
    participation = await db.get(QuizParticipation, participation_id)
    if participation is None:
        msg = "Quiz participation not found"
        raise LookupError(msg)
    if participation.user_id is not None and (user is None or user.id != participation.user_id):
        msg = "Access denied"
        raise PermissionError(msg)
    return participation


async def submit_answer(
    db: AsyncSession,
    participation_id: int,
    user: User | None,
    question_id: int,
    selected_answer: str,
) -> dict[str, Any]:
    """
    Score one answer and add its points to the participation.

    Raises:
        LookupError: Unknown participation or question.
        PermissionError: Another user's participation.
        ConflictError: Quiz already completed, or question already answered.
    """
    participation = await get_participation(db, participation_id, user)
    if participation.is_completed:
        msg = "Quiz already completed"
        raise ConflictError(msg)
    question = await db.get(QuizQuestion, question_id)
    if question is None or not question.is_active:
        msg = "Question not found"
        raise LookupError(msg)
    answered = (
        await db.execute(
            select(QuizAnswer.id).where(
                QuizAnswer.participation_id == participation_id, QuizAnswer.question_id == question_id
            )
        )
    ).first()
    if answered is not None:
        msg = "Question already answered"
        raise ConflictError(msg)

    is_correct = selected_answer.strip() == question.correct_answer
    points = question.points if is_correct else 0
    db.add(
        QuizAnswer(
            participation_id=participation_id,
            question_id=question_id,
            selected_answer=selected_answer.strip(),
            is_correct=is_correct,
            points_earned=points,
        )
    )
    participation.questions_answered += 1
    participation.correct_answers += int(is_correct)
    participation.total_score += points
    await db.commit()
    return {
        "is_correct": is_correct,
        "points_earned": points,
        "correct_answer": question.correct_answer,
        "total_score": participation.total_score,
    }


async def complete_participation(db: AsyncSession, participation_id: int, user: User | None) -> dict[str, Any]:
    """
    Close the participation and add the accuracy bonus.

    Raises:
        LookupError: Unknown participation.
        PermissionError: Another user's participation.
        ConflictError: Already completed.
    """
    participation = await get_participation(db, participation_id, user)
    if participation.is_completed:
        msg = "Quiz already completed"
        raise ConflictError(msg)

    pct = accuracy(participation.correct_answers, participation.questions_answered)
    bonus = completion_bonus(pct)
    participation.total_score += bonus
    participation.is_completed = True
    await db.commit()
    logger.info(
        "quiz_completed",
        participation_id=participation_id,
        user_id=participation.user_id,
        total_score=participation.total_score,
        bonus=bonus,
    )
    return {
        "participation_id": participation.id,
        "total_points": participation.total_score,
        "correct_answers": participation.correct_answers,
        "total_questions": participation.questions_answered,
        "accuracy": pct,
        "bonus_points": bonus,
    }


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


def _entry(participation: QuizParticipation, rank: int, user: User | None, now: datetime) -> dict[str, Any]:
    return {
        "id": participation.id,
        "rank": rank,
        "name": display_name(participation),
        "score": f"{participation.correct_answers}/{participation.questions_answered}",
        "total_score": participation.total_score,
        "correct_answers": participation.correct_answers,
        "questions_answered": participation.questions_answered,
        "time": relative_time(participation.created_at, now),
        "credits": leaderboard_credits(participation.correct_answers, participation.questions_answered),
        "is_current_user": user is not None and participation.user_id == user.id,
        "participated_at": participation.created_at,
    }


def _outranks(entry: dict[str, Any], other: dict[str, Any]) -> bool:
    return (other["total_score"], other["correct_answers"]) > (entry["total_score"], entry["correct_answers"])


async def get_leaderboard(
    db: AsyncSession,
    limit: int = 10,
    user: User | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Today's (UTC) completed participations, best first, with the caller slotted in."""
    now = now or datetime.now(timezone.utc)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    today = (
        QuizParticipation.created_at >= day_start,
        QuizParticipation.created_at < day_start + timedelta(days=1),
        QuizParticipation.is_completed.is_(True),
    )

    top = (
        await db.execute(
            select(QuizParticipation)
            .where(*today, QuizParticipation.total_score > 0)
            .order_by(
                QuizParticipation.total_score.desc(),
                QuizParticipation.correct_answers.desc(),
                QuizParticipation.created_at.asc(),
            )
            .limit(limit)
        )
    ).unique().scalars().all()
    entries = [_entry(p, rank, user, now) for rank, p in enumerate(top, start=1)]

    if user is not None and not any(e["is_current_user"] for e in entries):
        own = (
            await db.execute(
                select(QuizParticipation)
                .where(*today, QuizParticipation.user_id == user.id)
                .order_by(QuizParticipation.total_score.desc())
                .limit(1)
            )
        ).unique().scalar_one_or_none()
        if own is not None:
            mine = _entry(own, 0, user, now)
            position = next((i for i, e in enumerate(entries) if _outranks(e, mine)), len(entries))
            entries.insert(position, mine)
            entries = [{**e, "rank": rank} for rank, e in enumerate(entries[:limit], start=1)]

    count, avg_score, avg_correct = (
        await db.execute(
            select(
                func.count(QuizParticipation.id),
                func.avg(QuizParticipation.total_score),
                func.avg(QuizParticipation.correct_answers),
            ).where(*today)
        )
    ).one()
    return {
        "leaderboard": entries,
        "stats": {
            "total_participants": count,
            "average_score": round(float(avg_score or 0), 1),
            "average_correct": round(float(avg_correct or 0), 1),
        },
        "generated_at": now.isoformat(),
    }
