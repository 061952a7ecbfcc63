"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from xnrt.admin.router import router as admin_router
from xnrt.auth.router import router as auth_router
from xnrt.config import get_settings
from xnrt.database import Database
from xnrt.gamification.router import router as gamification_router
from xnrt.health.router import router as health_router
from xnrt.leaderboard.router import router as leaderboard_router
from xnrt.ledger.router import router as balance_router
from xnrt.middleware import setup_middleware
from xnrt.mining.router import router as mining_router
from xnrt.progress.catalog import seed_catalog
from xnrt.progress.router import router as progress_router
from xnrt.redis_client import close_redis, create_redis
from xnrt.referrals.router import router as referrals_router
from xnrt.social.router import router as social_router
from xnrt.staking.router import router as staking_router
from xnrt.users.router import router as users_router
from xnrt.wallet.router import router as wallet_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the database and Redis clients for this app instance and seed the catalog."""
    settings = get_settings()
    database = Database.from_url(settings.database_url, pool_size=settings.database_pool_size)
    redis = create_redis(settings.redis_url) if settings.redis_url else None
    app.state.database = database
    app.state.redis = redis

    if settings.seed_catalog_on_startup:
        try:
            async with database.session_factory() as db:
                await seed_catalog(db)
        except SQLAlchemyError:
            logger.warning("catalog_seed_failed", exc_info=True)

    yield

    await close_redis(redis)
    await database.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="XNRT Rewards API",
        description="Backend API for the XNRT rewards platform: staking, mining, referrals and tasks",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(balance_router)
    app.include_router(referrals_router)
    app.include_router(progress_router)
    app.include_router(gamification_router)
    app.include_router(mining_router)
    app.include_router(staking_router)
    app.include_router(wallet_router)
    app.include_router(social_router)
    app.include_router(leaderboard_router)
    app.include_router(admin_router)

    return app


app = create_app()
