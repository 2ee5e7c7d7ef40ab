"""Redis connection pool and JSON cache helpers."""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


# ---------------------------------------------------------------------------
# JSON cache
# ---------------------------------------------------------------------------


async def cache_get_json(client: redis.Redis, key: str) -> Any | None:  # noqa: ANN401
    """Return the decoded value stored under ``key``, or None on miss.

    Redis errors are treated as a miss so a cache outage never fails a request.
    """
    try:
        raw = await client.get(key)
    except redis.RedisError:
        logger.warning("cache_get_failed", key=key, exc_info=True)
        return None
    if raw is None:
        logger.debug("cache_miss", key=key)
        return None
    return json.loads(raw)


async def cache_set_json(client: redis.Redis, key: str, value: Any, ttl_seconds: int) -> None:  # noqa: ANN401
    """Store ``value`` as JSON with a TTL."""
    try:
        await client.set(key, json.dumps(value, default=str), ex=ttl_seconds)
    except redis.RedisError:
        logger.warning("cache_set_failed", key=key, exc_info=True)


async def cache_delete(client: redis.Redis, *keys: str) -> None:
    """Invalidate one or more cache keys."""
    if not keys:
        return
    try:
        await client.delete(*keys)
    except redis.RedisError:
        logger.warning("cache_delete_failed", keys=list(keys), exc_info=True)
