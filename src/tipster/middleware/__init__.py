"""Middleware registration."""

from fastapi import FastAPI

from tipster.config import Settings
from tipster.middleware.cors import setup_cors
from tipster.middleware.error_handler import setup_error_handlers
from tipster.middleware.logging import setup_logging
from tipster.middleware.rate_limit import RateLimitMiddleware
from tipster.middleware.request_id import RequestIdMiddleware
from tipster.middleware.security_headers import SecurityHeadersMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware.

    Starlette runs middleware in reverse-add order, so CORS is added last to
    wrap 429 responses from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app, hsts=settings.environment == "production")
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        auth_requests_per_window=settings.rate_limit_auth,
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.environment == "production")
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
