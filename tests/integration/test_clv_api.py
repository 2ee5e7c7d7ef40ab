"""Integration tests for the CLV cache endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from tipster.clv import router as clv_router
from tipster.clv.service import BackendUnavailableError, to_cache_row

CACHED_AT = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
class TestCachedOpportunities:
    """GET /api/v1/clv/cache"""

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/clv/cache", params={"use_cache": "true"})
        assert response.status_code == 401

    async def test_cache_not_requested(self, client: AsyncClient, login_as, make_user):
        login_as(make_user())
        response = await client.get("/api/v1/clv/cache")
        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Cache not requested"}

    async def test_returns_cached_rows(self, client: AsyncClient, login_as, make_user, monkeypatch):
        row = to_cache_row(
            {
                "match_id": "881",
                "home_team": "Inter",
                "away_team": "Milan",
                "match_date": "2026-03-12T19:45:00Z",
                "market_type": "1X2",
                "selection": "away",
                "entry_odds": 3.4,
                "entry_time": "2026-03-10T07:00:00Z",
            },
            "72h",
            CACHED_AT,
        )

        async def _cached(db, window):
            assert window == "72h"
            return [row]

        monkeypatch.setattr(clv_router, "get_cached", _cached)
        login_as(make_user())
        response = await client.get("/api/v1/clv/cache", params={"use_cache": "true", "window": "72h"})
        assert response.status_code == 200
        data = response.json()
        assert data["opportunities"][0]["match_id"] == 881
        assert data["meta"]["count"] == 1
        assert data["meta"]["cached"] is True
        assert data["meta"]["generated_at"].startswith("2026-03-10T09:00:00")


@pytest.mark.asyncio
class TestRefreshCache:
    """POST /api/v1/admin/clv/cache"""

    async def test_requires_admin(self, client: AsyncClient, login_as, make_user):
        login_as(make_user())
        response = await client.post("/api/v1/admin/clv/cache")
        assert response.status_code == 403

    async def test_backend_failure_is_502(self, client: AsyncClient, login_as, make_user, monkeypatch):
        async def _refresh(db, settings, window):
            raise BackendUnavailableError("Backend responded with status 500")

        monkeypatch.setattr(clv_router, "refresh_cache", _refresh)
        login_as(make_user("admin"))
        response = await client.post("/api/v1/admin/clv/cache", json={"window": "all"})
        assert response.status_code == 502

    async def test_refresh_defaults_to_all(self, client: AsyncClient, login_as, make_user, monkeypatch):
        async def _refresh(db, settings, window):
            return 14 if window == "all" else 0

        monkeypatch.setattr(clv_router, "refresh_cache", _refresh)
        login_as(make_user("admin"))
        response = await client.post("/api/v1/admin/clv/cache")
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["cached"] == 14
        assert data["window"] == "all"
