"""Pydantic schemas for leaderboard endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class XPLeaderboardEntry(BaseModel):
    rank: int
    display_name: str
    user_id: int | None = None
    score: int
    xp: int


class XPPosition(BaseModel):
    rank: int | None = None
    score: int


class XPLeaderboardResponse(BaseModel):
    period: str
    category: str
    entries: list[XPLeaderboardEntry]
    user_position: XPPosition


class ReferralLeaderboardEntry(BaseModel):
    rank: int
    display_name: str
    user_id: int | None = None
    level1_count: int
    level2_count: int
    level3_count: int
    total_referrals: int
    total_commission: Decimal


class ReferralPosition(BaseModel):
    rank: int | None = None
    level1_count: int
    total_commission: Decimal


class ReferralLeaderboardResponse(BaseModel):
    period: str
    entries: list[ReferralLeaderboardEntry]
    user_position: ReferralPosition
