"""Pydantic schemas for mining endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class MiningSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    base_reward: Decimal
    boost_percentage: int
    ad_boost_count: int
    final_reward: Decimal | None = None
    start_time: datetime
    end_time: datetime
    next_available: datetime
    completed_at: datetime | None = None


class MiningStatusResponse(BaseModel):
    session: MiningSessionResponse | None = None
    can_start: bool
    next_available: datetime | None = None


class MiningHistoryResponse(BaseModel):
    sessions: list[MiningSessionResponse]
    total: int
    page: int
    per_page: int
