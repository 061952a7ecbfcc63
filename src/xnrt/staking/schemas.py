"""Pydantic schemas for staking endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class StakingTierResponse(BaseModel):
    name: str
    display_name: str
    duration_days: int
    daily_rate: Decimal
    total_return_percent: Decimal
    min_amount: Decimal
    max_amount: Decimal


class CreateStakeRequest(BaseModel):
    tier: str = Field(..., min_length=1, max_length=32)
    amount: Decimal = Field(..., gt=0)


class StakeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tier: str
    amount: Decimal
    daily_rate: Decimal
    duration: int
    start_date: datetime
    end_date: datetime
    paid_days: int
    total_profit: Decimal
    last_profit_date: datetime | None = None
    status: str
    withdrawn_at: datetime | None = None


class ProcessRewardsResponse(BaseModel):
    processed: int
    matured: int
    total_paid: Decimal
