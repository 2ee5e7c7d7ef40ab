"""Integration tests for credit claim endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

from tipster.credits import router as credits_router
from tipster.errors import ConflictError, CooldownError


def _raising(exc: Exception):
    async def _fn(*args, **kwargs):
        raise exc

    return _fn


@pytest.mark.asyncio
class TestClaimTip:
    """POST /api/v1/credits/claim-tip"""

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post("/api/v1/credits/claim-tip", json={"prediction_id": 1})
        assert response.status_code == 401

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (LookupError("Prediction not found"), 404),
            (ConflictError("Tip already claimed"), 409),
            (ValueError("Insufficient credits"), 400),
        ],
    )
    async def test_error_mapping(self, client: AsyncClient, login_as, make_user, monkeypatch, mock_redis, exc, status):
        monkeypatch.setattr(credits_router, "claim_tip", _raising(exc))
        login_as(make_user())
        response = await client.post("/api/v1/credits/claim-tip", json={"prediction_id": 1})
        assert response.status_code == status
        assert response.json()["detail"] == str(exc)
        mock_redis.delete.assert_not_called()


@pytest.mark.asyncio
class TestClaimQuiz:
    """POST /api/v1/credits/claim-quiz"""

    async def test_cooldown_sets_retry_after(self, client: AsyncClient, login_as, make_user, monkeypatch, mock_redis):
        monkeypatch.setattr(
            credits_router,
            "claim_quiz_credits",
            _raising(CooldownError("Quiz credits can only be claimed once every 3 days", retry_after_days=2)),
        )
        login_as(make_user())
        response = await client.post("/api/v1/credits/claim-quiz", json={"participation_id": 4})
        assert response.status_code == 429
        assert response.headers["Retry-After"] == str(2 * 86400)

    async def test_success_invalidates_balance(
        self, client: AsyncClient, login_as, make_user, monkeypatch, mock_redis
    ):
        async def _claim(db, user, participation_id):
            return {"credits_awarded": 5, "total_credits": 12}

        invalidated = []

        async def _invalidate(redis, user_id):
            invalidated.append(user_id)

        monkeypatch.setattr(credits_router, "claim_quiz_credits", _claim)
        monkeypatch.setattr(credits_router, "invalidate_credit_balance", _invalidate)
        user = make_user()
        login_as(user)
        response = await client.post("/api/v1/credits/claim-quiz", json={"participation_id": 4})
        assert response.status_code == 200
        assert response.json() == {"success": True, "credits_awarded": 5, "total_credits": 12}
        assert invalidated == [user.id]
