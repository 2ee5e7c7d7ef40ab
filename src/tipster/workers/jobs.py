"""arq worker for periodic maintenance jobs.

Runs as a separate process alongside the API:
- refresh_win_streaks: nightly recompute of every user's win streak
- refresh_clv_cache: periodic snapshot of CLV opportunities from the backend
"""

from __future__ import annotations

import structlog
from arq import cron
from arq.connections import RedisSettings

from tipster.clv.service import BackendUnavailableError, refresh_cache
from tipster.config import get_settings
from tipster.database import close_db, get_session_factory, init_db
from tipster.middleware.logging import setup_logging
from tipster.predictions.streak import update_all_win_streaks

logger = structlog.get_logger()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url, settings.database_pool_size, settings.database_max_overflow)
    ctx["settings"] = settings
    logger.info("worker_started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("worker_stopped")


async def refresh_win_streaks(ctx: dict) -> int:  # type: ignore[type-arg]
    """Recompute win streaks for all users."""
    async with get_session_factory()() as db:
        updated = await update_all_win_streaks(db)
    return updated


async def refresh_clv_cache(ctx: dict) -> int:  # type: ignore[type-arg]
    """Pull the default CLV window into the cache. Backend outages are logged and skipped."""
    async with get_session_factory()() as db:
        try:
            return await refresh_cache(db, ctx["settings"], "all")
        except BackendUnavailableError:
            logger.warning("clv_cache_refresh_skipped", exc_info=True)
            return 0


class WorkerSettings:
    """arq worker settings for maintenance jobs."""

    functions = [refresh_win_streaks, refresh_clv_cache]
    cron_jobs = [
        cron(refresh_win_streaks, hour=3, minute=0),  # 03:00 UTC
        cron(refresh_clv_cache, minute=get_settings().clv_refresh_minutes),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 2
    job_timeout = 600
