"""Referral graph and multi-level commission propagation.

Each user has at most one referrer (``users.referred_by``). When a user
earns, 6% / 3% / 1% of the gross amount is credited to the referral
balance of up to three ancestors. Reaching the top of the tree is normal
termination, not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.config import get_settings
from xnrt.db.models import Referral, User
from xnrt.exceptions import NotFoundError, ValidationError
from xnrt.ledger.service import Account, credit
from xnrt.referrals.codes import normalize_referral_code
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)

MAX_REFERRAL_LEVELS = 3


@dataclass(frozen=True)
class Commission:
    """One ancestor's cut of a descendant's earning."""

    referrer_id: int
    level: int
    amount: Decimal


def compute_commissions(
    chain: list[int],
    amount: Decimal,
    rates: dict[int, Decimal] | None = None,
) -> list[Commission]:
    """Pure commission split for an ancestor chain (nearest first).

    Every level is computed on the gross ``amount``; levels without a
    configured rate are skipped.
    """
    if rates is None:
        rates = get_settings().referral_rates
    commissions = []
    for level, referrer_id in enumerate(chain[:MAX_REFERRAL_LEVELS], start=1):
        rate = rates.get(level)
        if not rate:
            continue
        commissions.append(Commission(referrer_id, level, amount * rate / Decimal(100)))
    return commissions


async def get_referrer_chain(
    db: AsyncSession,
    user_id: int,
    max_levels: int | None = MAX_REFERRAL_LEVELS,
) -> list[int]:
    """Walk ``referred_by`` upward, nearest ancestor first.

    ``max_levels=None`` walks to the root. A repeated id ends the walk.
    """
    chain: list[int] = []
    seen = {user_id}
    current = user_id
    while max_levels is None or len(chain) < max_levels:
        result = await db.execute(select(User.referred_by).where(User.id == current))
        parent = result.scalar_one_or_none()
        if parent is None or parent in seen:
            break
        chain.append(parent)
        seen.add(parent)
        current = parent
    return chain


async def assign_referrer(
    db: AsyncSession,
    user: User,
    referral_code: str,
    redis: Any | None = None,
) -> User:
    """Set ``user.referred_by`` once and materialize level 1-3 referral rows."""
    if user.referred_by is not None:
        raise ValidationError("Referrer already assigned")

    result = await db.execute(
        select(User).where(User.referral_code == normalize_referral_code(referral_code))
    )
    referrer = result.scalar_one_or_none()
    if referrer is None:
        raise NotFoundError("Invalid referral code")
    if referrer.id == user.id:
        raise ValidationError("Cannot refer yourself")

    ancestors = await get_referrer_chain(db, referrer.id, max_levels=None)
    if user.id in ancestors:
        raise ValidationError("Referral would create a cycle")

    assigned = await db.execute(
        update(User)
        .where(User.id == user.id, User.referred_by.is_(None))
        .values(referred_by=referrer.id)
        .execution_options(synchronize_session=False)
    )
    if assigned.rowcount == 0:
        raise ValidationError("Referrer already assigned")
    user.referred_by = referrer.id

    now = datetime.now(timezone.utc)
    for level, ancestor_id in enumerate([referrer.id, *ancestors[: MAX_REFERRAL_LEVELS - 1]], start=1):
        db.add(Referral(
            referrer_id=ancestor_id,
            referred_user_id=user.id,
            level=level,
            created_at=now,
        ))
    await db.flush()

    await record_activity(
        db, referrer.id, "referral_joined",
        f"{user.username} joined with your referral code",
        {"referred_user_id": user.id},
    )
    await create_notification(
        db, referrer.id, "referral", "New Referral",
        f"{user.username} joined using your referral code",
        action_url="/referrals",
        metadata={"referred_user_id": user.id},
        redis=redis,
    )

    from xnrt.progress.evaluator import ProgressEvaluator
    from xnrt.progress.events import ProgressEvent

    await ProgressEvaluator(db, redis).evaluate(referrer.id, ProgressEvent.REFERRAL_ACQUIRED)
    logger.info("User %d referred by %d", user.id, referrer.id)
    return user


async def distribute_commissions(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    amount: Decimal,
    source: str,
) -> list[Commission]:
    """Credit referral commission on ``amount`` earned by ``user_id`` to its ancestors.

    Each ancestor gets one atomic credit to referral_balance and total_earned
    plus an atomic bump of the matching Referral row's total_commission.
    """
    if amount <= 0:
        return []

    chain = await get_referrer_chain(db, user_id)
    commissions = compute_commissions(chain, amount)

    from xnrt.progress.evaluator import ProgressEvaluator
    from xnrt.progress.events import ProgressEvent

    for commission in commissions:
        if commission.amount <= 0:
            continue
        await credit(db, commission.referrer_id, Account.REFERRAL, commission.amount)
        await db.execute(
            update(Referral)
            .where(
                Referral.referrer_id == commission.referrer_id,
                Referral.referred_user_id == user_id,
            )
            .values(total_commission=Referral.total_commission + commission.amount)
            .execution_options(synchronize_session=False)
        )
        await record_activity(
            db, commission.referrer_id, "referral_commission",
            f"Level {commission.level} commission of {commission.amount} XNRT",
            {
                "from_user_id": user_id,
                "level": commission.level,
                "amount": str(commission.amount),
                "source": source,
            },
        )
        await create_notification(
            db, commission.referrer_id, "referral", "Referral Commission",
            f"You earned {commission.amount} XNRT from a level {commission.level} referral",
            action_url="/referrals",
            metadata={"level": commission.level, "amount": str(commission.amount), "source": source},
            redis=redis,
        )
        await ProgressEvaluator(db, redis).evaluate(
            commission.referrer_id, ProgressEvent.EARNINGS_CREDITED
        )

    if commissions:
        logger.info(
            "Distributed %d commissions on %s (%s) from user %d",
            len(commissions), amount, source, user_id,
        )
    return commissions


async def get_referral_stats(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """Per-level referral counts and commission totals."""
    result = await db.execute(
        select(
            Referral.level,
            func.count(Referral.id),
            func.coalesce(func.sum(Referral.total_commission), 0),
        )
        .where(Referral.referrer_id == user_id)
        .group_by(Referral.level)
    )
    levels = {
        level: {"count": 0, "commission": Decimal("0")}
        for level in range(1, MAX_REFERRAL_LEVELS + 1)
    }
    for level, count, commission in result.all():
        levels[level] = {"count": count, "commission": Decimal(str(commission))}

    return {
        "total_referrals": sum(v["count"] for v in levels.values()),
        "total_commission": sum((v["commission"] for v in levels.values()), Decimal("0")),
        "levels": levels,
    }


async def get_referral_tree(db: AsyncSession, user_id: int) -> list[Referral]:
    """All referral rows below ``user_id``, nearest level first."""
    result = await db.execute(
        select(Referral)
        .where(Referral.referrer_id == user_id)
        .order_by(Referral.level, Referral.created_at, Referral.id)
    )
    return list(result.scalars().all())
