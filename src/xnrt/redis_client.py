"""Redis connection pool."""

from __future__ import annotations

import redis.asyncio as redis
from fastapi import Request


def create_redis(url: str) -> redis.Redis:
    """Create a Redis client with a shared connection pool."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the Redis connection pool."""
    if client is not None:
        await client.aclose()


def get_redis(request: Request) -> redis.Redis | None:
    """Get the Redis client attached to the app (FastAPI dependency).

    Returns None when Redis is not configured; every publisher treats
    a missing client as a no-op.
    """
    return getattr(request.app.state, "redis", None)
