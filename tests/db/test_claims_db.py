"""Spending credits, package tips and quiz points against the database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from tipster.credits.service import claim_quiz_credits, claim_tip
from tipster.db.models import (
    CreditTipClaim,
    PointTransaction,
    QuizParticipation,
    User,
    UserPackageTip,
    UserPoints,
)
from tipster.errors import ConflictError, CooldownError
from tipster.packages.service import claim_tip_from_package


async def _set_credits(db, user, amount):
    await db.execute(update(User).where(User.id == user.id).values(prediction_credits=amount))
    await db.commit()
    await db.refresh(user)


class TestClaimTip:
    @pytest.mark.asyncio
    async def test_spends_one_credit_for_a_day(self, world):
        db, user = world.db, world.user
        await _set_credits(db, user, 3)

        claim = await claim_tip(db, user, world.prediction.id)

        assert user.prediction_credits == 2
        assert claim.status == "active"
        assert timedelta(hours=23, minutes=59) < claim.expires_at - claim.claimed_at <= timedelta(hours=24)
        stored = (await db.execute(select(CreditTipClaim))).unique().scalar_one()
        assert stored.prediction_id == world.prediction.id

    @pytest.mark.asyncio
    async def test_last_credit_cannot_be_spent(self, world):
        db, user = world.db, world.user
        await _set_credits(db, user, 1)
        with pytest.raises(ValueError, match="Insufficient credits"):
            await claim_tip(db, user, world.prediction.id)
        assert (await db.execute(select(CreditTipClaim.id))).first() is None

    @pytest.mark.asyncio
    async def test_same_prediction_twice(self, world):
        db, user = world.db, world.user
        await _set_credits(db, user, 5)
        await claim_tip(db, user, world.prediction.id)
        with pytest.raises(ConflictError):
            await claim_tip(db, user, world.prediction.id)
        await db.refresh(user)
        assert user.prediction_credits == 4


class TestClaimFromPackage:
    @pytest.mark.asyncio
    async def test_limited_package_used_before_unlimited(self, world, add_package):
        unlimited = await add_package(-1, 0, timedelta(days=1), package_type="monthly_sub", name="Monthly")
        limited = await add_package(2, 2, timedelta(days=5))

        tip = await claim_tip_from_package(world.db, world.user.id, world.prediction.id)

        assert tip.user_package_id == limited.id
        await world.db.refresh(limited)
        await world.db.refresh(unlimited)
        assert limited.tips_remaining == 1
        assert unlimited.tips_remaining == 0

    @pytest.mark.asyncio
    async def test_last_tip_completes_package(self, world, add_package):
        package = await add_package(5, 1, timedelta(days=2))
        await claim_tip_from_package(world.db, world.user.id, world.prediction.id)
        await world.db.refresh(package)
        assert (package.tips_remaining, package.status) == (0, "completed")

    @pytest.mark.asyncio
    async def test_unlimited_package_is_not_decremented(self, world, add_package, add_prediction):
        package = await add_package(-1, 0, timedelta(days=10), package_type="monthly_sub", name="Monthly")
        other = await add_prediction()
        await claim_tip_from_package(world.db, world.user.id, world.prediction.id)
        await claim_tip_from_package(world.db, world.user.id, other.id)
        await world.db.refresh(package)
        assert (package.tips_remaining, package.status) == (0, "active")

    @pytest.mark.asyncio
    async def test_expired_or_empty_packages_do_not_count(self, world, add_package):
        await add_package(5, 3, timedelta(days=-1))
        await add_package(5, 0, timedelta(days=3))
        with pytest.raises(ValueError, match="No active package"):
            await claim_tip_from_package(world.db, world.user.id, world.prediction.id)

    @pytest.mark.asyncio
    async def test_same_prediction_twice(self, world, add_package):
        await add_package(5, 5, timedelta(days=3))
        await claim_tip_from_package(world.db, world.user.id, world.prediction.id)
        with pytest.raises(ConflictError):
            await claim_tip_from_package(world.db, world.user.id, world.prediction.id)
        rows = (await world.db.execute(select(UserPackageTip.id))).all()
        assert len(rows) == 1


class TestClaimQuizCredits:
    async def _completed(self, db, user, score, **fields):
        participation = QuizParticipation(
            user_id=user.id,
            email=user.email,
            questions_answered=5,
            correct_answers=4,
            total_score=score,
            is_completed=True,
            **fields,
        )
        db.add(participation)
        await db.commit()
        return participation

    @pytest.mark.asyncio
    async def test_points_awarded_once(self, world):
        db, user = world.db, world.user
        participation = await self._completed(db, user, 120)

        result = await claim_quiz_credits(db, user, participation.id)

        assert result["points_earned"] == 120
        assert result["credits_earned"] == 2
        assert (await db.get(UserPoints, user.id)).points == 120
        await db.refresh(participation)
        assert participation.credits_claimed is True
        with pytest.raises(ConflictError):
            await claim_quiz_credits(db, user, participation.id)

    @pytest.mark.asyncio
    async def test_weekly_cooldown(self, world):
        db, user = world.db, world.user
        db.add(
            PointTransaction(
                user_id=user.id,
                points=60,
                type="QUIZ_COMPLETION",
                created_at=datetime.now(timezone.utc) - timedelta(days=2),
            )
        )
        participation = await self._completed(db, user, 80)

        with pytest.raises(CooldownError) as excinfo:
            await claim_quiz_credits(db, user, participation.id)
        assert excinfo.value.retry_after_days == 5

    @pytest.mark.asyncio
    async def test_cooldown_over_after_a_week(self, world):
        db, user = world.db, world.user
        db.add(
            PointTransaction(
                user_id=user.id,
                points=60,
                type="QUIZ_COMPLETION",
                created_at=datetime.now(timezone.utc) - timedelta(days=7, minutes=1),
            )
        )
        participation = await self._completed(db, user, 80)
        result = await claim_quiz_credits(db, user, participation.id)
        assert result["points_earned"] == 80

    @pytest.mark.asyncio
    async def test_too_few_points(self, world):
        participation = await self._completed(world.db, world.user, 40)
        with pytest.raises(ValueError, match="at least 50 points"):
            await claim_quiz_credits(world.db, world.user, participation.id)

    @pytest.mark.asyncio
    async def test_someone_elses_participation(self, world, add_user):
        other = await add_user("other@example.com")
        participation = await self._completed(world.db, other, 100)
        with pytest.raises(LookupError):
            await claim_quiz_credits(world.db, world.user, participation.id)
