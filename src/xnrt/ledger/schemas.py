"""Pydantic schemas for balance endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class BalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    main_balance: Decimal
    staking_balance: Decimal
    mining_balance: Decimal
    referral_balance: Decimal
    total_earned: Decimal
    updated_at: datetime | None = None
