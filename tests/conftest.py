"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator, Callable, Iterator
from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from tipster.auth.dependencies import get_current_user, get_optional_user
from tipster.config import get_settings
from tipster.database import get_session
from tipster.db.models import User
from tipster.main import create_app


def _ensure_test_keys() -> tuple[str, str]:
    """Generate an RSA key pair for signing test tokens if the configured one is missing."""
    settings = get_settings()
    private_path = settings.jwt_private_key_path
    public_path = settings.jwt_public_key_path
    if os.path.exists(private_path) and os.path.exists(public_path):
        return private_path, public_path

    tmpdir = tempfile.mkdtemp(prefix="tipster_test_keys_")
    private_path = os.path.join(tmpdir, "jwt_private.pem")
    public_path = os.path.join(tmpdir, "jwt_public.pem")

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with open(private_path, "wb") as f:
        f.write(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
    with open(public_path, "wb") as f:
        f.write(
            key.public_key().public_bytes(
                serialization.Encoding.PEM,
                serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

    os.environ["TIPSTER_JWT_PRIVATE_KEY_PATH"] = private_path
    os.environ["TIPSTER_JWT_PUBLIC_KEY_PATH"] = public_path
    get_settings.cache_clear()
    from tipster.auth.jwt import signing_keys

    signing_keys.cache_clear()
    return private_path, public_path


@pytest.fixture(scope="session", autouse=True)
def jwt_keys() -> tuple[str, str]:
    return _ensure_test_keys()


_ids = count(1000)


@pytest.fixture
def make_user() -> Callable[..., User]:
    """Build a detached User row without touching the database."""

    def _make(role: str = "user", **overrides: Any) -> User:
        user_id = overrides.pop("id", next(_ids))
        fields: dict[str, Any] = {
            "id": user_id,
            "email": f"user{user_id}@example.com",
            "full_name": f"User {user_id}",
            "role": role,
            "country_id": None,
            "country": None,
            "prediction_credits": 0,
            "win_streak": 0,
            "is_active": True,
            "email_verified": True,
            "created_at": datetime.now(timezone.utc) - timedelta(days=30),
            "login_count": 1,
        }
        fields.update(overrides)
        return User(**fields)

    return _make


@pytest.fixture
def fake_db() -> MagicMock:
    """Stand-in AsyncSession for routes whose service calls are patched out."""
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock(return_value=MagicMock())
    db.get = AsyncMock(return_value=None)
    return db


@pytest.fixture
def app(fake_db: MagicMock) -> Iterator[FastAPI]:
    """Application with the database session replaced by ``fake_db``."""
    application = create_app()

    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield fake_db

    application.dependency_overrides[get_session] = _session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def login_as(app: FastAPI) -> Callable[[User | None], None]:
    """Authenticate every request as ``user`` (``None`` means anonymous)."""

    def _login(user: User | None) -> None:
        if user is None:
            app.dependency_overrides.pop(get_current_user, None)
            app.dependency_overrides[get_optional_user] = lambda: None
            return
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_optional_user] = lambda: user

    return _login


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app without running its lifespan."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_redis(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Redis double returned by every ``get_redis()`` call site in the routers."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    for module in (
        "tipster.credits.router",
        "tipster.referrals.router",
        "tipster.payments.router",
        "tipster.health.router",
    ):
        monkeypatch.setattr(f"{module}.get_redis", lambda: redis)
    return redis


@pytest.fixture
def mock_email_service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Mock the email service to prevent actual email sending."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("tipster.auth.router.get_email_service", lambda *a, **kw: mock_service)
    monkeypatch.setattr("tipster.support.service.get_email_service", lambda *a, **kw: mock_service)
    return mock_service
