"""Async SQLAlchemy engine and session management."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


class Database:
    """Owns the engine and session factory for one application instance.

    Constructed in the app lifespan and stored on ``app.state.database``;
    request handlers receive sessions through :func:`get_session`.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_url(cls, url: str, pool_size: int = 20) -> Database:
        """Build a Database with production pool settings for server URLs."""
        if url.startswith("sqlite"):
            return cls(url)
        return cls(
            url,
            pool_size=pool_size,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
        )

    async def create_all(self) -> None:
        """Create all tables (tests and local development only)."""
        from xnrt.db.base import Base
        from xnrt.db import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session bound to this database."""
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """Return the Database attached to the running application."""
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None:
        msg = "Database not initialized. Start the app through its lifespan."
        raise RuntimeError(msg)
    return database


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    database = get_database(request)
    async with database.session_factory() as session:
        yield session
