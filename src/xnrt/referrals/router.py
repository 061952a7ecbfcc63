"""Referral API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.config import get_settings
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.ledger.service import get_balance
from xnrt.referrals.schemas import (
    ReferralLevelStats,
    ReferralNode,
    ReferralStatsResponse,
    ReferralTreeResponse,
)
from xnrt.referrals.service import get_referral_stats, get_referral_tree

router = APIRouter(prefix="/api/v1/referrals", tags=["Referrals"])


@router.get("/stats", response_model=ReferralStatsResponse)
async def referral_stats(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ReferralStatsResponse:
    """Per-level referral counts and commission earned."""
    stats = await get_referral_stats(db, user.id)
    balance = await get_balance(db, user.id)
    rates = get_settings().referral_rates
    return ReferralStatsResponse(
        referral_code=user.referral_code,
        total_referrals=stats["total_referrals"],
        total_commission=stats["total_commission"],
        referral_balance=balance.referral_balance,
        levels={
            level: ReferralLevelStats(
                count=data["count"], commission=data["commission"], rate_percent=rates[level]
            )
            for level, data in stats["levels"].items()
        },
    )


@router.get("/tree", response_model=ReferralTreeResponse)
async def referral_tree(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ReferralTreeResponse:
    """Everyone up to three levels below the authenticated user."""
    rows = await get_referral_tree(db, user.id)
    return ReferralTreeResponse(
        referrals=[
            ReferralNode(
                user_id=r.referred_user_id,
                username=r.referred_user.username,
                level=r.level,
                total_commission=r.total_commission,
                joined_at=r.created_at,
            )
            for r in rows
        ],
        total=len(rows),
    )
