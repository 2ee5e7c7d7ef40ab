"""Weekly quiz endpoints: questions, attempts, answers and the daily leaderboard."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_optional_user
from tipster.database import get_session
from tipster.db.models import User
from tipster.errors import ConflictError, CooldownError
from tipster.quiz.schemas import (
    AnswerRequest,
    AnswerResponse,
    CompleteQuizResponse,
    QuestionResponse,
    StartQuizRequest,
)
from tipster.quiz.service import (
    complete_participation,
    get_leaderboard,
    list_questions,
    start_participation,
    submit_answer,
)

router = APIRouter(prefix="/api/v1/quiz", tags=["Quiz"])


def _attempt_error(e: Exception) -> HTTPException:
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))


@router.get("/questions")
async def questions(db: AsyncSession = Depends(get_session)) -> dict[str, Any]:
    rows = await list_questions(db)
    return {
        "questions": [
            QuestionResponse(
                id=q.id, question=q.question, options=list(q.options or []), points=q.points, category=q.category
            )
            for q in rows
        ]
    }


@router.post("/participations", status_code=201)
async def start(
    body: StartQuizRequest,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        participation = await start_participation(
            db,
            user,
            email=body.email,
            full_name=body.full_name,
            phone=body.phone,
            betting_experience=body.betting_experience,
            referral_code=body.referral_code,
        )
    except CooldownError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after_days * 86400)},
        ) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"success": True, "participation_id": participation.id}


@router.post("/participations/{participation_id}/answers", response_model=AnswerResponse)
async def answer(
    participation_id: int,
    body: AnswerRequest,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        return await submit_answer(db, participation_id, user, body.question_id, body.selected_answer)
    except (LookupError, PermissionError, ConflictError) as e:
        raise _attempt_error(e) from e


@router.post("/participations/{participation_id}/complete", response_model=CompleteQuizResponse)
async def complete(
    participation_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Close the attempt; accuracy of 60% or better earns bonus points."""
    try:
        return await complete_participation(db, participation_id, user)
    except (LookupError, PermissionError, ConflictError) as e:
        raise _attempt_error(e) from e


@router.get("/leaderboard")
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return await get_leaderboard(db, limit, user)
