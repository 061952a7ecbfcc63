"""Mining session endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.mining.schemas import MiningHistoryResponse, MiningSessionResponse, MiningStatusResponse
from xnrt.mining.service import (
    STATUS_ACTIVE,
    boost_session,
    complete_session,
    get_current_session,
    get_session_history,
    start_session,
)
from xnrt.redis_client import get_redis

router = APIRouter(prefix="/api/v1/mining", tags=["Mining"])


@router.get("/current", response_model=MiningStatusResponse)
async def current_session(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> MiningStatusResponse:
    """Current or latest session; an expired active session is completed here."""
    now = datetime.now(timezone.utc)
    session = await get_current_session(db, redis, user.id, now)
    await db.commit()
    if session is None:
        return MiningStatusResponse(session=None, can_start=True)
    return MiningStatusResponse(
        session=MiningSessionResponse.model_validate(session),
        can_start=session.status != STATUS_ACTIVE and now >= session.next_available,
        next_available=session.next_available,
    )


@router.post("/start", response_model=MiningSessionResponse, status_code=201)
async def start(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> MiningSessionResponse:
    """Start a new mining session."""
    now = datetime.now(timezone.utc)
    await get_current_session(db, redis, user.id, now)
    session = await start_session(db, user.id, now)
    await db.commit()
    return MiningSessionResponse.model_validate(session)


@router.post("/boost", response_model=MiningSessionResponse)
async def boost(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MiningSessionResponse:
    """Apply one ad boost to the active session."""
    session = await boost_session(db, user.id)
    await db.commit()
    return MiningSessionResponse.model_validate(session)


@router.post("/complete", response_model=MiningSessionResponse)
async def complete(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> MiningSessionResponse:
    """Complete the active session once its end time has passed."""
    session = await complete_session(db, redis, user.id)
    await db.commit()
    return MiningSessionResponse.model_validate(session)


@router.get("/history", response_model=MiningHistoryResponse)
async def history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MiningHistoryResponse:
    """Past mining sessions, most recent first."""
    sessions, total = await get_session_history(db, user.id, page, per_page)
    return MiningHistoryResponse(
        sessions=[MiningSessionResponse.model_validate(s) for s in sessions],
        total=total,
        page=page,
        per_page=per_page,
    )
