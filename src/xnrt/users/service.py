"""User profile aggregates."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import MiningSession, Stake, User, UserAchievement, UserTask
from xnrt.gamification.level_thresholds import compute_level
from xnrt.ledger.service import get_balance
from xnrt.referrals.service import get_referral_stats


async def _count(db: AsyncSession, model: type, *criteria: object) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


async def get_user_stats(db: AsyncSession, user: User) -> dict[str, Any]:
    """Dashboard summary: balances, level progress and activity counters."""
    balance = await get_balance(db, user.id)
    referrals = await get_referral_stats(db, user.id)
    level = compute_level(user.xp)

    return {
        "xp": user.xp,
        "level": level["level"],
        "xp_into_level": level["xp_into_level"],
        "xp_for_level": level["xp_for_level"],
        "streak": user.streak,
        "total_earned": balance.total_earned,
        "main_balance": balance.main_balance,
        "total_referrals": referrals["total_referrals"],
        "total_commission": referrals["total_commission"],
        "completed_tasks": await _count(
            db, UserTask, UserTask.user_id == user.id, UserTask.completed.is_(True)
        ),
        "unlocked_achievements": await _count(
            db, UserAchievement, UserAchievement.user_id == user.id, UserAchievement.unlocked.is_(True)
        ),
        "completed_mining_sessions": await _count(
            db, MiningSession, MiningSession.user_id == user.id, MiningSession.status == "completed"
        ),
        "active_stakes": await _count(db, Stake, Stake.user_id == user.id, Stake.status == "active"),
    }
