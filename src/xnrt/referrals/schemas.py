"""Pydantic schemas for referral endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class ReferralLevelStats(BaseModel):
    count: int
    commission: Decimal
    rate_percent: Decimal


class ReferralStatsResponse(BaseModel):
    referral_code: str
    total_referrals: int
    total_commission: Decimal
    referral_balance: Decimal
    levels: dict[int, ReferralLevelStats]


class ReferralNode(BaseModel):
    user_id: int
    username: str
    level: int
    total_commission: Decimal
    joined_at: datetime | None = None


class ReferralTreeResponse(BaseModel):
    referrals: list[ReferralNode]
    total: int
