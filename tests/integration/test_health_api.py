"""Health endpoint tests."""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from tipster.middleware.security_headers import SecurityHeadersMiddleware


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient, mock_redis) -> None:
    """GET /ready returns 200 when database and redis both answer."""
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "ok"}


@pytest.mark.asyncio
async def test_readiness_degraded(client: AsyncClient, fake_db, mock_redis) -> None:
    """A failing database check turns readiness into 503."""
    fake_db.execute.side_effect = ConnectionError("connection refused")
    response = await client.get("/ready")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"].startswith("error:")
    assert data["checks"]["redis"] == "ok"


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient) -> None:
    """Every response carries the baseline security headers; HSTS only in production."""
    response = await client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Strict-Transport-Security" not in response.headers


@pytest.mark.asyncio
async def test_hsts_when_enabled() -> None:
    app = FastAPI()
    app.add_middleware(SecurityHeadersMiddleware, hsts=True)

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"pong": "ok"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/ping")
    assert response.headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains"


@pytest.mark.asyncio
async def test_unhandled_error_keeps_security_headers(app: FastAPI) -> None:
    """A 500 from the catch-all handler still carries the baseline headers."""

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("kaput")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/boom")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
