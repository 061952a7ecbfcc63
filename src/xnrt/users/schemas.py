"""Response schemas for user endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class UserStatsResponse(BaseModel):
    xp: int
    level: int
    xp_into_level: int
    xp_for_level: int
    streak: int
    total_earned: Decimal
    main_balance: Decimal
    total_referrals: int
    total_commission: Decimal
    completed_tasks: int
    unlocked_achievements: int
    completed_mining_sessions: int
    active_stakes: int
