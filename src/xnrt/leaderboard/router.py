"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.leaderboard.schemas import ReferralLeaderboardResponse, XPLeaderboardResponse
from xnrt.leaderboard.service import Period, get_referral_leaderboard, get_xp_leaderboard

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("/xp", response_model=XPLeaderboardResponse)
async def xp_leaderboard(
    period: Period = Query(Period.ALL_TIME),
    category: str | None = Query(None, description="mining, checkin, task or achievement"),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> XPLeaderboardResponse:
    """Top users by XP; the caller's own rank is always included."""
    data = await get_xp_leaderboard(db, user.id, user.is_admin, period, category, limit)
    return XPLeaderboardResponse(**data)


@router.get("/referrals", response_model=ReferralLeaderboardResponse)
async def referral_leaderboard(
    period: Period = Query(Period.ALL_TIME),
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ReferralLeaderboardResponse:
    """Top referrers by direct referrals, then commission."""
    data = await get_referral_leaderboard(db, user.id, user.is_admin, period, limit)
    return ReferralLeaderboardResponse(**data)
