"""Integration tests for the weekly quiz endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tipster.db.models import QuizParticipation, QuizQuestion
from tipster.errors import ConflictError, CooldownError
from tipster.quiz import router as quiz_router


def _raising(exc: Exception):
    async def _fn(*args, **kwargs):
        raise exc

    return _fn


@pytest.mark.asyncio
class TestQuestions:
    """GET /api/v1/quiz/questions"""

    async def test_hides_correct_answer(self, client: AsyncClient, monkeypatch):
        async def _list(db):
            return [
                QuizQuestion(
                    id=1, question="Who won the 2022 final?", options=["ARG", "FRA"], correct_answer="ARG", points=10
                )
            ]

        monkeypatch.setattr(quiz_router, "list_questions", _list)
        response = await client.get("/api/v1/quiz/questions")
        assert response.status_code == 200
        question = response.json()["questions"][0]
        assert question["options"] == ["ARG", "FRA"]
        assert "correct_answer" not in question


@pytest.mark.asyncio
class TestStart:
    """POST /api/v1/quiz/participations"""

    async def test_anonymous_without_email_is_400(self, client: AsyncClient, login_as, fake_db):
        login_as(None)
        response = await client.post("/api/v1/quiz/participations", json={"full_name": "Guest"})
        assert response.status_code == 400
        fake_db.add.assert_not_called()

    async def test_anonymous_with_email(self, client: AsyncClient, login_as, fake_db):
        login_as(None)
        response = await client.post(
            "/api/v1/quiz/participations", json={"email": "guest@example.com", "full_name": "Guest"}
        )
        assert response.status_code == 201
        participation = fake_db.add.call_args.args[0]
        assert isinstance(participation, QuizParticipation)
        assert participation.user_id is None
        assert participation.email == "guest@example.com"

    async def test_weekly_cooldown_is_429(self, client: AsyncClient, login_as, make_user, monkeypatch):
        monkeypatch.setattr(
            quiz_router,
            "start_participation",
            _raising(CooldownError("You can only take the quiz once per week. Try again in 3 days.", 3)),
        )
        login_as(make_user())
        response = await client.post("/api/v1/quiz/participations", json={})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == str(3 * 86400)


@pytest.mark.asyncio
class TestAnswers:
    """POST /api/v1/quiz/participations/{id}/answers"""

    async def test_scored_answer(self, client: AsyncClient, login_as, make_user, monkeypatch):
        calls = []

        async def _submit(db, participation_id, user, question_id, selected_answer):
            calls.append((participation_id, question_id, selected_answer))
            return {"is_correct": True, "points_earned": 10, "correct_answer": "ARG", "total_score": 30}

        monkeypatch.setattr(quiz_router, "submit_answer", _submit)
        login_as(make_user())
        response = await client.post(
            "/api/v1/quiz/participations/5/answers", json={"question_id": 2, "selected_answer": "ARG"}
        )
        assert response.status_code == 200
        assert response.json()["total_score"] == 30
        assert calls == [(5, 2, "ARG")]

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (LookupError("Question not found"), 404),
            (PermissionError("Access denied"), 403),
            (ConflictError("Question already answered"), 409),
        ],
    )
    async def test_error_mapping(self, client: AsyncClient, login_as, make_user, monkeypatch, exc, status):
        monkeypatch.setattr(quiz_router, "submit_answer", _raising(exc))
        login_as(make_user())
        response = await client.post(
            "/api/v1/quiz/participations/5/answers", json={"question_id": 2, "selected_answer": "ARG"}
        )
        assert response.status_code == status
        assert response.json()["detail"] == str(exc)

    async def test_empty_answer_is_422(self, client: AsyncClient, login_as):
        login_as(None)
        response = await client.post(
            "/api/v1/quiz/participations/5/answers", json={"question_id": 2, "selected_answer": ""}
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestComplete:
    """POST /api/v1/quiz/participations/{id}/complete"""

    async def test_already_completed_is_409(self, client: AsyncClient, login_as, monkeypatch):
        monkeypatch.setattr(quiz_router, "complete_participation", _raising(ConflictError("Quiz already completed")))
        login_as(None)
        response = await client.post("/api/v1/quiz/participations/5/complete")
        assert response.status_code == 409

    async def test_result(self, client: AsyncClient, login_as, monkeypatch):
        async def _complete(db, participation_id, user):
            return {
                "participation_id": participation_id,
                "total_points": 90,
                "correct_answers": 4,
                "total_questions": 5,
                "accuracy": 80,
                "bonus_points": 30,
            }

        monkeypatch.setattr(quiz_router, "complete_participation", _complete)
        login_as(None)
        response = await client.post("/api/v1/quiz/participations/5/complete")
        assert response.status_code == 200
        assert response.json()["bonus_points"] == 30


@pytest.mark.asyncio
class TestLeaderboard:
    """GET /api/v1/quiz/leaderboard"""

    async def test_passes_limit_and_viewer(self, client: AsyncClient, login_as, make_user, monkeypatch):
        seen = {}

        async def _board(db, limit, user):
            seen.update(limit=limit, user=user)
            return {"leaderboard": [], "stats": {"total_participants": 0}, "generated_at": "now"}

        monkeypatch.setattr(quiz_router, "get_leaderboard", _board)
        user = make_user()
        login_as(user)
        response = await client.get("/api/v1/quiz/leaderboard", params={"limit": 3})
        assert response.status_code == 200
        assert seen == {"limit": 3, "user": user}

    async def test_limit_is_bounded(self, client: AsyncClient, login_as):
        login_as(None)
        response = await client.get("/api/v1/quiz/leaderboard", params={"limit": 0})
        assert response.status_code == 422
