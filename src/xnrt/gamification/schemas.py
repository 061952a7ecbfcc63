"""Pydantic schemas for check-in and XP endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel


class CheckInResponse(BaseModel):
    streak: int
    xnrt_reward: Decimal
    xp_reward: int
    checked_in_at: datetime


class XPEntry(BaseModel):
    amount: int
    source: str
    description: str | None = None
    created_at: datetime | None = None


class XPResponse(BaseModel):
    xp: int
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level_xp: int
    history: list[XPEntry]
    total_entries: int


class CheckInHistoryResponse(BaseModel):
    year: int
    month: int
    dates: list[date]
