"""Pydantic schemas for admin endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class PlatformStatsResponse(BaseModel):
    total_users: int
    today_new_users: int
    total_deposits: Decimal
    total_withdrawals: Decimal
    today_deposits: Decimal
    today_withdrawals: Decimal
    pending_deposits_count: int
    pending_withdrawals_count: int
    active_stakes_count: int
