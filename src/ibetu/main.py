"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from ibetu.achievements.router import router as achievements_router
from ibetu.bets.router import router as bets_router
from ibetu.config import get_settings
from ibetu.database import close_db, init_db
from ibetu.friends.router import router as friends_router
from ibetu.health.router import router as health_router
from ibetu.middleware import setup_middleware
from ibetu.redis_client import close_redis, init_redis
from ibetu.reminders.router import router as reminders_router
from ibetu.social.router import router as social_router
from ibetu.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    logger.info("startup", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="IBetU API",
        description="Friendly wagers between friends: bets, friendships and achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(achievements_router)
    app.include_router(users_router)
    app.include_router(friends_router)
    app.include_router(bets_router)
    app.include_router(social_router)
    app.include_router(reminders_router)

    return app


app = create_app()
