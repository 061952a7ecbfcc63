"""Staking tiers and linear accrual math."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from xnrt.exceptions import ValidationError

SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class StakingTier:
    name: str
    display_name: str
    duration_days: int
    daily_rate: Decimal  # percent per day
    min_amount: Decimal
    max_amount: Decimal

    @property
    def total_return_percent(self) -> Decimal:
        return self.daily_rate * self.duration_days


STAKING_TIERS: dict[str, StakingTier] = {
    tier.name: tier
    for tier in (
        StakingTier("royal_sapphire", "Royal Sapphire", 15, Decimal("1.1"), Decimal("50000"), Decimal("1000000")),
        StakingTier("legendary_emerald", "Legendary Emerald", 30, Decimal("1.4"), Decimal("10000"), Decimal("10000000")),
        StakingTier("imperial_platinum", "Imperial Platinum", 45, Decimal("1.5"), Decimal("5000"), Decimal("10000000")),
        StakingTier("mythic_diamond", "Mythic Diamond", 90, Decimal("2.0"), Decimal("100"), Decimal("10000000")),
    )
}


def get_tier(name: str) -> StakingTier:
    tier = STAKING_TIERS.get(name)
    if tier is None:
        raise ValidationError(f"Invalid staking tier: {name}")
    return tier


def validate_amount(tier: StakingTier, amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if amount < tier.min_amount or amount > tier.max_amount:
        raise ValidationError(
            f"{tier.display_name} stakes must be between {tier.min_amount} and {tier.max_amount} XNRT"
        )


def elapsed_days(start: datetime, now: datetime) -> int:
    """Whole days elapsed since ``start``; 0 before it."""
    if now <= start:
        return 0
    return int((now - start).total_seconds()) // SECONDS_PER_DAY


def daily_reward(amount: Decimal, daily_rate: Decimal) -> Decimal:
    return amount * daily_rate / Decimal(100)


def accrued_reward(
    amount: Decimal,
    daily_rate: Decimal,
    duration: int,
    start: datetime,
    now: datetime,
) -> Decimal:
    """amount x daily_rate% x min(whole elapsed days, duration)."""
    return daily_reward(amount, daily_rate) * min(elapsed_days(start, now), duration)
