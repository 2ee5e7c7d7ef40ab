"""Sign-in lockout and credential checks."""

from unittest.mock import AsyncMock

import pytest

from tipster.auth import service
from tipster.auth.password import hash_password
from tipster.db.models import User


class FakeRedis:
    """Just enough of a Redis client for counters with expiry."""

    def __init__(self):
        self.values: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        value = self.values.get(key)
        return None if value is None else str(value)

    async def incr(self, key):
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -1)

    async def delete(self, key):
        self.values.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def account(monkeypatch):
    user = User(id=5, email="ana@example.com", password_hash=hash_password("StrongP@ss1"), is_active=True, login_count=2)

    async def _lookup(db, email):
        return user if email.strip().lower() == user.email else None

    monkeypatch.setattr(service, "get_user_by_email", _lookup)
    return user


@pytest.fixture
def db():
    session = AsyncMock()
    session.add = lambda obj: None
    return session


class TestAuthenticate:
    async def test_success_resets_failures(self, db, redis, account):
        await service.record_failed_login(redis, "ana@example.com")
        user = await service.authenticate_user(db, redis, "Ana@Example.com", "StrongP@ss1")
        assert user is account
        assert user.login_count == 3
        assert user.last_login is not None
        assert redis.values == {}

    async def test_wrong_password(self, db, redis, account):
        with pytest.raises(ValueError, match="Invalid email or password"):
            await service.authenticate_user(db, redis, "ana@example.com", "WrongP@ss1")
        assert redis.values == {"login-failures:ana@example.com": 1}

    async def test_unknown_email_counts_failures(self, db, redis, account):
        with pytest.raises(ValueError, match="Invalid email or password"):
            await service.authenticate_user(db, redis, "ghost@example.com", "Whatever1")
        assert redis.values == {"login-failures:ghost@example.com": 1}

    async def test_locks_after_threshold(self, db, redis, account):
        for _ in range(5):
            with pytest.raises(ValueError):
                await service.authenticate_user(db, redis, "ana@example.com", "WrongP@ss1")
        with pytest.raises(service.AccountLockedError) as exc_info:
            await service.authenticate_user(db, redis, "ana@example.com", "StrongP@ss1")
        assert exc_info.value.retry_after_seconds == 15 * 60

    async def test_deactivated(self, db, redis, account):
        account.is_active = False
        with pytest.raises(PermissionError, match="deactivated"):
            await service.authenticate_user(db, redis, "ana@example.com", "StrongP@ss1")


class TestAccountLockedError:
    def test_message_rounds_to_minutes(self):
        assert "2 minutes" in str(service.AccountLockedError(150))

    def test_never_below_one_minute(self):
        assert "in 1 minute." in str(service.AccountLockedError(20))
