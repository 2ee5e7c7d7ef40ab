"""Settling predictions and completing referrals against the database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from tipster.db.models import (
    CreditTransaction,
    Match,
    Prediction,
    QuizParticipation,
    Referral,
    ReferralCode,
    User,
    UserPackage,
    UserPoints,
    UserPrediction,
)
from tipster.predictions.service import update_prediction_result
from tipster.referrals.service import check_completion


async def _follow(db, user_id, prediction_id, status="pending", placed_at=None):
    db.add(
        UserPrediction(
            user_id=user_id,
            prediction_id=prediction_id,
            status=status,
            stake=Decimal("1.00"),
            placed_at=placed_at or datetime.now(timezone.utc),
        )
    )
    await db.commit()


async def _fresh(db, model, pk):
    query = select(model).where(model.id == pk).execution_options(populate_existing=True)
    return (await db.execute(query)).unique().scalar_one()


class TestUpdatePredictionResult:
    @pytest.mark.asyncio
    async def test_result_reaches_match_followers_and_streaks(self, world, add_user, add_prediction):
        db = world.db
        follower = await add_user("follower@example.com")
        earlier = await add_prediction(status="won")
        await _follow(db, follower.id, earlier.id, "won", datetime.now(timezone.utc) - timedelta(days=1))
        await _follow(db, follower.id, world.prediction.id)

        prediction, affected = await update_prediction_result(db, world.prediction.id, "won", 2, 1)

        assert affected == [follower.id]
        assert prediction.status == "won"
        assert prediction.result_updated_at is not None
        match = await _fresh(db, Match, world.match.id)
        assert (match.home_score, match.away_score, match.status) == (2, 1, "finished")
        statuses = (
            await db.execute(
                select(UserPrediction.status).where(UserPrediction.prediction_id == world.prediction.id)
            )
        ).scalars().all()
        assert statuses == ["won"]
        assert (await _fresh(db, User, follower.id)).win_streak == 2

    @pytest.mark.asyncio
    async def test_loss_resets_streak(self, world, add_user, add_prediction):
        db = world.db
        follower = await add_user("loser@example.com", win_streak=3)
        earlier = await add_prediction(status="won")
        await _follow(db, follower.id, earlier.id, "won", datetime.now(timezone.utc) - timedelta(days=1))
        await _follow(db, follower.id, world.prediction.id)

        await update_prediction_result(db, world.prediction.id, "lost")

        assert (await _fresh(db, User, follower.id)).win_streak == 0
        match = await _fresh(db, Match, world.match.id)
        assert match.status == "upcoming"
        assert match.home_score is None

    @pytest.mark.asyncio
    async def test_unknown_status_changes_nothing(self, world):
        with pytest.raises(ValueError):
            await update_prediction_result(world.db, world.prediction.id, "cancelled")
        assert (await _fresh(world.db, Prediction, world.prediction.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_unknown_prediction(self, world):
        with pytest.raises(LookupError):
            await update_prediction_result(world.db, 424242, "won")


class TestCheckCompletion:
    async def _referred(self, world, add_user, **fields):
        db = world.db
        referred = await add_user("friend@example.com", **fields)
        code = ReferralCode(user_id=world.user.id, code="ABCD2345", usage_count=0)
        db.add(code)
        await db.flush()
        referral = Referral(referrer_id=world.user.id, referred_id=referred.id, referral_code_id=code.id)
        db.add(referral)
        await db.commit()
        return referred, code, referral

    async def _meet_criteria(self, world, user, add_prediction, quiz_completed=True):
        db = world.db
        db.add(
            QuizParticipation(
                user_id=user.id, total_score=85, correct_answers=4, questions_answered=5, is_completed=quiz_completed
            )
        )
        db.add(
            UserPackage(
                user_id=user.id,
                package_type="weekly_pass",
                name="Weekly Package",
                expires_at=datetime.now(timezone.utc) + timedelta(days=7),
                total_tips=8,
                tips_remaining=8,
            )
        )
        await db.commit()
        for _ in range(3):
            prediction = await add_prediction()
            await _follow(db, user.id, prediction.id)

    @pytest.mark.asyncio
    async def test_rewards_both_sides(self, world, add_user, add_prediction):
        db = world.db
        referred, code, referral = await self._referred(
            world, add_user, created_at=datetime.now(timezone.utc) - timedelta(days=8)
        )
        await self._meet_criteria(world, referred, add_prediction)

        result = await check_completion(db, referred)

        assert result["completed"] is True
        assert result["rewards"] == {"credits": 25, "points": 50}
        assert (await _fresh(db, Referral, referral.id)).status == "completed"
        assert (await _fresh(db, ReferralCode, code.id)).usage_count == 1
        assert (await _fresh(db, User, world.user.id)).prediction_credits == 50
        assert (await _fresh(db, User, referred.id)).prediction_credits == 25
        points = {row.user_id: row.points for row in (await db.execute(select(UserPoints))).scalars()}
        assert points == {world.user.id: 100, referred.id: 50}
        sources = (await db.execute(select(CreditTransaction.source))).scalars().all()
        assert sources == ["referral", "referral"]

    @pytest.mark.asyncio
    async def test_young_account_waits(self, world, add_user, add_prediction):
        referred, _, referral = await self._referred(
            world, add_user, created_at=datetime.now(timezone.utc) - timedelta(days=2)
        )
        await self._meet_criteria(world, referred, add_prediction)

        result = await check_completion(world.db, referred)

        assert result["completed"] is False
        assert result["progress"]["account_age_ok"] is False
        assert (await _fresh(world.db, Referral, referral.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_unfinished_quiz_does_not_count(self, world, add_user, add_prediction):
        referred, _, _ = await self._referred(
            world, add_user, created_at=datetime.now(timezone.utc) - timedelta(days=8)
        )
        await self._meet_criteria(world, referred, add_prediction, quiz_completed=False)

        result = await check_completion(world.db, referred)

        assert result["completed"] is False
        assert result["progress"]["quiz_ok"] is False

    @pytest.mark.asyncio
    async def test_without_referral(self, world):
        assert await check_completion(world.db, world.user) == {"completed": False, "reason": "No pending referral"}
