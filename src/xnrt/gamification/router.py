"""Check-in and XP endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.gamification.level_thresholds import compute_level
from xnrt.gamification.schemas import CheckInHistoryResponse, CheckInResponse, XPEntry, XPResponse
from xnrt.gamification.streak_service import check_in, get_checkin_history
from xnrt.gamification.xp_service import get_xp_history
from xnrt.redis_client import get_redis

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.post("/checkin", response_model=CheckInResponse)
async def daily_checkin(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> CheckInResponse:
    """Check in for today and collect the streak reward."""
    result = await check_in(db, redis, user.id)
    await db.commit()
    return CheckInResponse(**result)


@router.get("/checkin/history", response_model=CheckInHistoryResponse)
async def checkin_history(
    year: int | None = Query(None, ge=2000, le=2999),
    month: int | None = Query(None, ge=1, le=12),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> CheckInHistoryResponse:
    """Days checked in during one month (defaults to the current UTC month)."""
    today = datetime.now(timezone.utc).date()
    year = year or today.year
    month = month or today.month
    dates = await get_checkin_history(db, user.id, year, month)
    return CheckInHistoryResponse(year=year, month=month, dates=dates)


@router.get("/xp", response_model=XPResponse)
async def xp_summary(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> XPResponse:
    """Level progress plus the XP ledger."""
    await db.refresh(user)
    entries, total = await get_xp_history(db, user.id, page, per_page)
    level = compute_level(user.xp)
    return XPResponse(
        xp=user.xp,
        level=level["level"],
        xp_into_level=level["xp_into_level"],
        xp_for_level=level["xp_for_level"],
        next_level_xp=level["next_level_xp"],
        history=[
            XPEntry(amount=e.amount, source=e.source, description=e.description, created_at=e.created_at)
            for e in entries
        ],
        total_entries=total,
    )
