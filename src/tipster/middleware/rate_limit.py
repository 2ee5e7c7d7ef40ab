"""Redis-backed fixed window rate limiting middleware."""

import time
from typing import Any

import redis.asyncio as aioredis
import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tipster.redis_client import get_redis

logger = structlog.get_logger()

# Health checks and provider callbacks are never throttled
_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version", "/api/v1/payments/webhook"})
_AUTH_PREFIX = "/api/v1/auth/"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per client IP using Redis counters.

    Auth endpoints get their own, tighter bucket.
    """

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        window_seconds: int = 60,
        auth_requests_per_window: int = 10,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.auth_requests_per_window = auth_requests_per_window

    def _bucket(self, path: str) -> tuple[str, int]:
        if path.startswith(_AUTH_PREFIX):
            return "auth", self.auth_requests_per_window
        return "api", self.requests_per_window

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check the rate limit, returning 429 once the window is exhausted."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket, limit = self._bucket(request.url.path)
        now = int(time.time())
        window, elapsed = divmod(now, self.window_seconds)
        rate_key = f"ratelimit:{bucket}:{client_ip}:{window}"

        try:
            redis = get_redis()
            pipe = redis.pipeline()
            pipe.incr(rate_key)
            pipe.expire(rate_key, self.window_seconds + 1)
            results: list[Any] = await pipe.execute()
        except (RuntimeError, aioredis.RedisError):
            # Redis unavailable: fail open
            return await call_next(request)

        current_count: int = results[0]
        remaining = max(0, limit - current_count)

        if current_count > limit:
            logger.info("rate_limited", client_ip=client_ip, bucket=bucket, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={
                    "Retry-After": str(self.window_seconds - elapsed),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response
