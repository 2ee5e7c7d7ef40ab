"""Quiz scoring, leaderboard rewards and attempt rules."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tipster.db.models import QuizParticipation, QuizQuestion, User
from tipster.errors import ConflictError, CooldownError
from tipster.quiz.service import (
    accuracy,
    complete_participation,
    completion_bonus,
    days_until_next_attempt,
    display_name,
    leaderboard_credits,
    relative_time,
    start_participation,
    submit_answer,
)

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def _participation(**overrides):
    fields = {
        "id": 1,
        "user_id": None,
        "user": None,
        "email": "guest@example.com",
        "full_name": None,
        "questions_answered": 0,
        "correct_answers": 0,
        "total_score": 0,
        "is_completed": False,
        "created_at": NOW,
    }
    fields.update(overrides)
    return QuizParticipation(**fields)


def _question(**overrides):
    fields = {"id": 9, "question": "Who won?", "options": ["A", "B"], "correct_answer": "A", "points": 10}
    fields.update({"is_active": True, **overrides})
    return QuizQuestion(**fields)


class TestScoring:
    @pytest.mark.parametrize(
        ("correct", "answered", "expected"),
        [(5, 5, 100), (2, 3, 67), (1, 3, 33), (0, 0, 0)],
    )
    def test_accuracy(self, correct, answered, expected):
        assert accuracy(correct, answered) == expected

    @pytest.mark.parametrize(
        ("pct", "bonus"),
        [(100, 50), (90, 50), (89, 30), (80, 30), (70, 20), (60, 10), (59, 0), (0, 0)],
    )
    def test_completion_bonus(self, pct, bonus):
        assert completion_bonus(pct) == bonus

    @pytest.mark.parametrize(
        ("correct", "answered", "credits"),
        [(5, 5, 50), (4, 5, 25), (3, 5, 10), (2, 5, 5), (1, 5, 0), (0, 0, 0)],
    )
    def test_leaderboard_credits(self, correct, answered, credits):
        assert leaderboard_credits(correct, answered) == credits


class TestDisplayName:
    def test_prefers_account_name(self):
        user = User(id=3, email="a@example.com", full_name="Account Name")
        assert display_name(_participation(user=user, full_name="Typed Name")) == "Account Name"

    def test_falls_back_to_typed_name(self):
        assert display_name(_participation(full_name="Typed Name")) == "Typed Name"

    def test_falls_back_to_email_local_part(self):
        assert display_name(_participation()) == "guest"

    def test_anonymous(self):
        assert display_name(_participation(email=None)) == "Anonymous"


class TestTimes:
    @pytest.mark.parametrize(
        ("ago", "label"),
        [
            (timedelta(seconds=20), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3, minutes=10), "3h ago"),
            (timedelta(days=1, hours=1), "Today"),
        ],
    )
    def test_relative_time(self, ago, label):
        assert relative_time(NOW - ago, NOW) == label

    def test_days_until_next_attempt(self):
        assert days_until_next_attempt(NOW - timedelta(days=2, hours=3), NOW) == 5
        assert days_until_next_attempt(NOW - timedelta(days=6, hours=23), NOW) == 1


@pytest.mark.asyncio
class TestStartParticipation:
    async def test_weekly_cooldown(self):
        db = AsyncMock()
        db.add = MagicMock()
        db.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=NOW - timedelta(days=2)))
        user = User(id=4, email="u@example.com", full_name="U")
        with pytest.raises(CooldownError) as excinfo:
            await start_participation(db, user, now=NOW)
        assert excinfo.value.retry_after_days == 5
        db.add.assert_not_called()

    async def test_anonymous_needs_email(self):
        db = AsyncMock()
        with pytest.raises(ValueError, match="Email is required"):
            await start_participation(db, None, full_name="Guest")
        db.execute.assert_not_awaited()

    async def test_signed_in_defaults_contact_details(self):
        db = AsyncMock()
        db.add = MagicMock()
        db.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=None))
        user = User(id=4, email="u@example.com", full_name="U Person")
        participation = await start_participation(db, user, referral_code=" abcd1234 ", now=NOW)
        assert participation.user_id == 4
        assert participation.email == "u@example.com"
        assert participation.full_name == "U Person"
        assert participation.referral_code == "ABCD1234"
        db.commit.assert_awaited_once()


@pytest.mark.asyncio
class TestSubmitAnswer:
    def _db(self, participation, question, already_answered=False):
        db = AsyncMock()
        db.add = MagicMock()
        db.get.side_effect = [participation, question]
        db.execute.return_value = MagicMock(first=MagicMock(return_value=(1,) if already_answered else None))
        return db

    async def test_correct_answer_scores_points(self):
        participation = _participation()
        db = self._db(participation, _question(points=15))
        result = await submit_answer(db, 1, None, 9, "A")
        assert result == {"is_correct": True, "points_earned": 15, "correct_answer": "A", "total_score": 15}
        assert (participation.questions_answered, participation.correct_answers) == (1, 1)
        db.commit.assert_awaited_once()

    async def test_wrong_answer_reveals_correct_one(self):
        participation = _participation(questions_answered=2, correct_answers=2, total_score=20)
        db = self._db(participation, _question())
        result = await submit_answer(db, 1, None, 9, "B")
        assert result["is_correct"] is False
        assert result["points_earned"] == 0
        assert result["correct_answer"] == "A"
        assert (participation.questions_answered, participation.correct_answers, participation.total_score) == (
            3,
            2,
            20,
        )

    async def test_question_answered_twice(self):
        db = self._db(_participation(), _question(), already_answered=True)
        with pytest.raises(ConflictError):
            await submit_answer(db, 1, None, 9, "A")
        db.add.assert_not_called()

    async def test_completed_attempt_is_closed(self):
        db = self._db(_participation(is_completed=True), _question())
        with pytest.raises(ConflictError, match="already completed"):
            await submit_answer(db, 1, None, 9, "A")

    async def test_unknown_question(self):
        db = self._db(_participation(), None)
        with pytest.raises(LookupError):
            await submit_answer(db, 1, None, 9, "A")

    async def test_other_users_attempt(self):
        db = self._db(_participation(user_id=77), _question())
        with pytest.raises(PermissionError):
            await submit_answer(db, 1, User(id=78), 9, "A")


@pytest.mark.asyncio
class TestCompleteParticipation:
    async def test_bonus_added_to_score(self):
        participation = _participation(questions_answered=5, correct_answers=4, total_score=40)
        db = AsyncMock()
        db.get.return_value = participation
        result = await complete_participation(db, 1, None)
        assert result["accuracy"] == 80
        assert result["bonus_points"] == 30
        assert result["total_points"] == 70
        assert participation.is_completed is True

    async def test_completing_twice(self):
        db = AsyncMock()
        db.get.return_value = _participation(is_completed=True)
        with pytest.raises(ConflictError):
            await complete_participation(db, 1, None)
        db.commit.assert_not_awaited()

    async def test_unknown_attempt(self):
        db = AsyncMock()
        db.get.return_value = None
        with pytest.raises(LookupError):
            await complete_participation(db, 1, None)
