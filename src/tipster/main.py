"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import stripe
import structlog
from fastapi import FastAPI

from tipster.auth.router import router as auth_router
from tipster.blogs.router import router as blogs_router
from tipster.clv.router import router as clv_router
from tipster.config import get_settings
from tipster.credits.router import router as credits_router
from tipster.database import close_db, init_db
from tipster.email.service import get_email_service, reset_email_service
from tipster.health.router import router as health_router
from tipster.leagues.router import router as leagues_router
from tipster.middleware import setup_middleware
from tipster.notifications.router import router as notifications_router
from tipster.packages.router import router as packages_router
from tipster.parlays.router import router as parlays_router
from tipster.payments.router import router as payments_router
from tipster.predictions.router import router as predictions_router
from tipster.pricing.router import router as pricing_router
from tipster.quick_purchases.router import router as quick_purchases_router
from tipster.quiz.router import router as quiz_router
from tipster.redis_client import close_redis, get_redis, init_redis
from tipster.referrals.router import router as referrals_router
from tipster.seo.router import router as seo_router
from tipster.support.router import router as support_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, settings.database_pool_size, settings.database_max_overflow)
    await init_redis(settings.redis_url)

    # Bind the email service to Redis so the per-recipient cap is enforced
    reset_email_service()
    get_email_service(get_redis())

    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
    else:
        logger.warning("stripe_not_configured")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Tipster API",
        description="Backend API for AI-powered sports predictions, tip packages and credits",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(seo_router)
    app.include_router(auth_router)
    app.include_router(predictions_router)
    app.include_router(parlays_router)
    app.include_router(payments_router)
    app.include_router(packages_router)
    app.include_router(quick_purchases_router)
    app.include_router(pricing_router)
    app.include_router(credits_router)
    app.include_router(quiz_router)
    app.include_router(referrals_router)
    app.include_router(support_router)
    app.include_router(leagues_router)
    app.include_router(blogs_router)
    app.include_router(notifications_router)
    app.include_router(clv_router)

    return app


app = create_app()
