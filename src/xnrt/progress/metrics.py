"""Source-of-truth metrics behind task and achievement progress.

``compute_metric`` is a pure function of a :class:`MetricSnapshot`;
``load_snapshot`` is the only place that reads the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Balance, MiningSession, Referral, Stake, Transaction, User
from xnrt.exceptions import NotFoundError
from xnrt.progress.events import ProgressMetric


@dataclass(frozen=True)
class MetricSnapshot:
    total_earned: Decimal = Decimal("0")
    direct_referrals: int = 0
    streak: int = 0
    completed_mining_sessions: int = 0
    stakes_created: int = 0
    approved_deposits: int = 0


def compute_metric(metric: ProgressMetric, snapshot: MetricSnapshot) -> int:
    """Current value of ``metric``; earnings are floored to whole XNRT."""
    if metric is ProgressMetric.EARNINGS:
        return int(snapshot.total_earned.to_integral_value(rounding=ROUND_FLOOR))
    if metric is ProgressMetric.REFERRALS:
        return snapshot.direct_referrals
    if metric is ProgressMetric.STREAKS:
        return snapshot.streak
    if metric is ProgressMetric.MINING:
        return snapshot.completed_mining_sessions
    if metric is ProgressMetric.STAKING:
        return snapshot.stakes_created
    if metric is ProgressMetric.DEPOSITS:
        return snapshot.approved_deposits
    raise ValueError(f"Unknown progress metric: {metric}")


async def _count(db: AsyncSession, model: type, *criteria: object) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*criteria))
    return result.scalar_one()


async def load_snapshot(db: AsyncSession, user_id: int) -> MetricSnapshot:
    """Read every running metric for a user."""
    streak = (await db.execute(select(User.streak).where(User.id == user_id))).scalar_one_or_none()
    if streak is None:
        raise NotFoundError("User not found")

    total_earned = (
        await db.execute(select(Balance.total_earned).where(Balance.user_id == user_id))
    ).scalar_one_or_none()

    return MetricSnapshot(
        total_earned=Decimal(str(total_earned)) if total_earned is not None else Decimal("0"),
        direct_referrals=await _count(db, Referral, Referral.referrer_id == user_id, Referral.level == 1),
        streak=streak,
        completed_mining_sessions=await _count(
            db, MiningSession, MiningSession.user_id == user_id, MiningSession.status == "completed"
        ),
        stakes_created=await _count(db, Stake, Stake.user_id == user_id),
        approved_deposits=await _count(
            db, Transaction,
            Transaction.user_id == user_id,
            Transaction.type == "deposit",
            Transaction.status == "approved",
        ),
    )
