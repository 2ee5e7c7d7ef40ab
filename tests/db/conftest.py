"""Fixtures for service tests that run against PostgreSQL.

Uses ``TIPSTER_DATABASE_URL``; the tests are skipped when the database is unreachable.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import get_settings
from tipster.database import close_db, get_session, get_session_factory, init_db
from tipster.db import models
from tipster.db.base import Base


async def _reset_schema() -> None:
    async with get_session_factory()() as session:
        conn = await session.connection()
        await conn.run_sync(Base.metadata.create_all)
        tables = ", ".join(table.name for table in Base.metadata.sorted_tables)
        await session.execute(sql_text(f"TRUNCATE TABLE {tables} RESTART IDENTITY CASCADE"))  # noqa: S608
        await session.commit()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Clean database session; every table is emptied before the test."""
    settings = get_settings()
    await init_db(settings.database_url, pool_size=2, max_overflow=0)
    try:
        await _reset_schema()
    except (OSError, SQLAlchemyError) as e:
        await close_db()
        pytest.skip(f"PostgreSQL unavailable: {e}")
    async for session in get_session():
        yield session
        break
    await close_db()


@dataclass
class World:
    """Rows most service tests need: a market, a user and a pending prediction."""

    db: AsyncSession
    country: models.Country
    user: models.User
    match: models.Match
    prediction: models.Prediction


@pytest_asyncio.fixture
async def world(db_session: AsyncSession) -> World:
    country = models.Country(code="KE", name="Kenya", currency_code="KES", currency_symbol="KSh")
    league = models.League(name="Premier League", country_name="England")
    db_session.add_all([country, league])
    await db_session.flush()

    home = models.Team(name="Arsenal", league_id=league.id)
    away = models.Team(name="Chelsea", league_id=league.id)
    db_session.add_all([home, away])
    await db_session.flush()

    match = models.Match(
        league_id=league.id,
        home_team_id=home.id,
        away_team_id=away.id,
        match_date=datetime.now(timezone.utc) + timedelta(days=1),
    )
    user = models.User(
        email="buyer@example.com",
        full_name="Buyer",
        country_id=country.id,
        prediction_credits=0,
        created_at=datetime.now(timezone.utc) - timedelta(days=30),
    )
    db_session.add_all([match, user])
    await db_session.flush()

    prediction = models.Prediction(match_id=match.id, prediction_type="home_win", confidence_score=72)
    db_session.add(prediction)
    await db_session.commit()
    return World(db_session, country, user, match, prediction)


@pytest.fixture
def add_prediction(world: World) -> Callable[..., Awaitable[models.Prediction]]:
    """Another prediction on a fresh match between the world's teams."""

    async def _add(**fields: Any) -> models.Prediction:  # noqa: ANN401
        match = models.Match(
            league_id=world.match.league_id,
            home_team_id=world.match.home_team_id,
            away_team_id=world.match.away_team_id,
            match_date=datetime.now(timezone.utc) + timedelta(days=2),
        )
        world.db.add(match)
        await world.db.flush()
        fields.setdefault("prediction_type", "draw")
        prediction = models.Prediction(match_id=match.id, **fields)
        world.db.add(prediction)
        await world.db.commit()
        return prediction

    return _add


@pytest.fixture
def add_user(world: World) -> Callable[..., Awaitable[models.User]]:
    async def _add(email: str, **fields: Any) -> models.User:  # noqa: ANN401
        user = models.User(email=email, full_name=email.split("@")[0], country_id=world.country.id, **fields)
        world.db.add(user)
        await world.db.commit()
        return user

    return _add


@pytest.fixture
def add_package(world: World) -> Callable[..., Awaitable[models.UserPackage]]:
    """Owned package for the world's user; ``total_tips`` of -1 is unlimited."""

    async def _add(
        total_tips: int, tips_remaining: int, expires_in: timedelta, **fields: Any  # noqa: ANN401
    ) -> models.UserPackage:
        package = models.UserPackage(
            user_id=fields.pop("user_id", world.user.id),
            package_type=fields.pop("package_type", "weekly_pass"),
            name=fields.pop("name", "Weekly Package"),
            expires_at=datetime.now(timezone.utc) + expires_in,
            total_tips=total_tips,
            tips_remaining=tips_remaining,
            status=fields.pop("status", "active"),
            **fields,
        )
        world.db.add(package)
        await world.db.commit()
        return package

    return _add
