"""Integration tests for referral code validation and completion."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from tipster.referrals import router as referrals_router


def _code(**overrides):
    fields = {"code": "ABCD1234", "is_active": True, "max_usage": None, "usage_count": 0, "expires_at": None}
    fields.update(overrides)
    return SimpleNamespace(**fields)


@pytest.mark.asyncio
class TestValidate:
    """POST /api/v1/referrals/validate"""

    async def test_valid_code(self, client: AsyncClient, fake_db):
        fake_db.execute.return_value.scalar_one_or_none.return_value = _code()
        response = await client.post("/api/v1/referrals/validate", json={"code": " abcd1234 "})
        assert response.status_code == 200
        assert response.json() == {"valid": True, "code": "ABCD1234"}

    async def test_unknown_code(self, client: AsyncClient, fake_db):
        fake_db.execute.return_value.scalar_one_or_none.return_value = None
        response = await client.post("/api/v1/referrals/validate", json={"code": "ZZZZ9999"})
        assert response.json() == {"valid": False, "error": "Invalid referral code"}

    async def test_usage_limit_reached(self, client: AsyncClient, fake_db):
        fake_db.execute.return_value.scalar_one_or_none.return_value = _code(max_usage=5, usage_count=5)
        response = await client.post("/api/v1/referrals/validate", json={"code": "ABCD1234"})
        assert response.json()["valid"] is False
        assert "limit" in response.json()["error"]

    async def test_expired(self, client: AsyncClient, fake_db):
        expired = datetime.now(timezone.utc) - timedelta(days=1)
        fake_db.execute.return_value.scalar_one_or_none.return_value = _code(expires_at=expired)
        response = await client.post("/api/v1/referrals/validate", json={"code": "ABCD1234"})
        assert response.json() == {"valid": False, "error": "Referral code has expired"}


@pytest.mark.asyncio
class TestCheckCompletion:
    """POST /api/v1/referrals/check-completion"""

    async def test_completion_invalidates_both_balances(
        self, client: AsyncClient, login_as, make_user, mock_redis, monkeypatch
    ):
        invalidated = []

        async def _check(db, user):
            return {"completed": True, "referral_id": 4, "referrer_id": 77}

        async def _invalidate(redis, user_id):
            invalidated.append(user_id)

        monkeypatch.setattr(referrals_router, "check_completion", _check)
        monkeypatch.setattr(referrals_router, "invalidate_credit_balance", _invalidate)
        user = make_user()
        login_as(user)
        response = await client.post("/api/v1/referrals/check-completion")
        assert response.status_code == 200
        assert invalidated == [user.id, 77]

    async def test_incomplete_leaves_balances(self, client: AsyncClient, login_as, make_user, monkeypatch):
        async def _check(db, user):
            return {"completed": False, "reason": "Completion criteria not met"}

        monkeypatch.setattr(referrals_router, "check_completion", _check)
        login_as(make_user())
        response = await client.post("/api/v1/referrals/check-completion")
        assert response.status_code == 200
        assert response.json()["completed"] is False


@pytest.mark.asyncio
async def test_apply_requires_auth(client: AsyncClient) -> None:
    response = await client.post("/api/v1/referrals/apply", json={"code": "ABCD1234"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_apply_own_code_rejected(client: AsyncClient, login_as, make_user, monkeypatch) -> None:
    async def _apply(db, user, code):
        raise ValueError("You cannot use your own referral code")

    monkeypatch.setattr(referrals_router, "apply_referral_code", _apply)
    login_as(make_user())
    response = await client.post("/api/v1/referrals/apply", json={"code": "ABCD1234"})
    assert response.status_code == 400
