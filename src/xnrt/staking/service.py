"""Staking positions: creation, lazy reward realization and withdrawal.

Rewards are realized continuously: every settle credits the whole days
accrued since the last one into staking_balance and total_earned.
``paid_days`` records how many days have been paid, and the conditional
update on it makes concurrent settles pay each day once.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Stake
from xnrt.exceptions import NotFoundError, PermissionDeniedError, StateConflictError, ValidationError
from xnrt.ledger.service import Account, credit, transfer
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.progress.events import ProgressEvent
from xnrt.referrals.service import distribute_commissions
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification
from xnrt.staking.tiers import daily_reward, elapsed_days, get_tier, validate_amount

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_WITHDRAWN = "withdrawn"


async def create_stake(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    tier_name: str,
    amount: Decimal,
    now: datetime | None = None,
) -> Stake:
    """Lock ``amount`` from the main balance into a new position."""
    if now is None:
        now = datetime.now(timezone.utc)
    tier = get_tier(tier_name)
    validate_amount(tier, amount)

    await transfer(db, user_id, Account.MAIN, Account.STAKING, amount)

    stake = Stake(
        user_id=user_id,
        tier=tier.name,
        amount=amount,
        daily_rate=tier.daily_rate,
        duration=tier.duration_days,
        start_date=now,
        end_date=now + timedelta(days=tier.duration_days),
        paid_days=0,
        total_profit=Decimal("0"),
        status=STATUS_ACTIVE,
        created_at=now,
    )
    db.add(stake)
    await db.flush()

    await record_activity(
        db, user_id, "stake_created", f"Staked {amount} XNRT in {tier.display_name}",
        {"stake_id": stake.id, "tier": tier.name, "amount": str(amount)},
    )
    await create_notification(
        db, user_id, "staking", "Stake Created",
        f"{amount} XNRT staked in {tier.display_name} for {tier.duration_days} days",
        action_url="/staking",
        metadata={"stake_id": stake.id},
        redis=redis,
    )
    await ProgressEvaluator(db, redis).evaluate(user_id, ProgressEvent.STAKE_CREATED)
    logger.info("User %d created stake %d (%s, %s)", user_id, stake.id, tier.name, amount)
    return stake


async def settle_stake(
    db: AsyncSession,
    redis: Any | None,
    stake: Stake,
    now: datetime | None = None,
) -> Decimal:
    """Realize newly accrued whole days. Returns the amount credited."""
    if now is None:
        now = datetime.now(timezone.utc)
    if stake.status != STATUS_ACTIVE:
        return Decimal("0")

    days = min(elapsed_days(stake.start_date, now), stake.duration)
    new_days = days - stake.paid_days
    payout = Decimal("0")

    if new_days > 0:
        payout = daily_reward(Decimal(stake.amount), Decimal(stake.daily_rate)) * new_days
        result = await db.execute(
            update(Stake)
            .where(Stake.id == stake.id, Stake.paid_days == stake.paid_days, Stake.status == STATUS_ACTIVE)
            .values(
                paid_days=days,
                total_profit=Stake.total_profit + payout,
                last_profit_date=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.refresh(stake)
            return Decimal("0")

        await credit(db, stake.user_id, Account.STAKING, payout)
        await record_activity(
            db, stake.user_id, "staking_reward", f"Staking reward of {payout} XNRT",
            {"stake_id": stake.id, "days": new_days, "amount": str(payout)},
        )
        await distribute_commissions(db, redis, stake.user_id, payout, "staking")
        await ProgressEvaluator(db, redis).evaluate(stake.user_id, ProgressEvent.EARNINGS_CREDITED)

    if days >= stake.duration:
        matured = await db.execute(
            update(Stake)
            .where(Stake.id == stake.id, Stake.status == STATUS_ACTIVE)
            .values(status=STATUS_COMPLETED)
            .execution_options(synchronize_session=False)
        )
        if matured.rowcount:
            await create_notification(
                db, stake.user_id, "staking", "Stake Matured",
                "Your staking position has matured and can be withdrawn",
                action_url="/staking",
                metadata={"stake_id": stake.id},
                redis=redis,
            )

    await db.refresh(stake)
    return payout


async def get_stake(db: AsyncSession, user_id: int, stake_id: int) -> Stake:
    stake = await db.get(Stake, stake_id, populate_existing=True)
    if stake is None:
        raise NotFoundError("Stake not found")
    if stake.user_id != user_id:
        raise PermissionDeniedError("Stake belongs to another user")
    return stake


async def withdraw_stake(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    stake_id: int,
    now: datetime | None = None,
) -> Stake:
    """Return principal plus realized profit to the main balance after maturity."""
    if now is None:
        now = datetime.now(timezone.utc)

    stake = await get_stake(db, user_id, stake_id)
    if stake.status == STATUS_WITHDRAWN:
        raise StateConflictError("Stake already withdrawn")
    if now < stake.end_date:
        raise ValidationError("Stake has not matured yet")

    await settle_stake(db, redis, stake, now)

    result = await db.execute(
        update(Stake)
        .where(Stake.id == stake.id, Stake.status.in_([STATUS_ACTIVE, STATUS_COMPLETED]))
        .values(status=STATUS_WITHDRAWN, withdrawn_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflictError("Stake already withdrawn")

    await db.refresh(stake)
    payout = Decimal(stake.amount) + Decimal(stake.total_profit)
    await transfer(db, user_id, Account.STAKING, Account.MAIN, payout)

    await record_activity(
        db, user_id, "stake_withdrawn", f"Withdrew {payout} XNRT from staking",
        {"stake_id": stake.id, "principal": str(stake.amount), "profit": str(stake.total_profit)},
    )
    await create_notification(
        db, user_id, "staking", "Stake Withdrawn",
        f"{payout} XNRT returned to your main balance",
        action_url="/staking",
        metadata={"stake_id": stake.id},
        redis=redis,
    )
    logger.info("User %d withdrew stake %d: %s XNRT", user_id, stake.id, payout)
    return stake


async def get_user_stakes(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    now: datetime | None = None,
) -> list[Stake]:
    """All stakes for a user, settling active ones first."""
    result = await db.execute(
        select(Stake)
        .where(Stake.user_id == user_id)
        .order_by(Stake.created_at.desc(), Stake.id.desc())
        .execution_options(populate_existing=True)
    )
    stakes = list(result.scalars().all())
    for stake in stakes:
        if stake.status == STATUS_ACTIVE:
            await settle_stake(db, redis, stake, now)
    return stakes


async def process_staking_rewards(
    db: AsyncSession,
    redis: Any | None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Settle every active stake. Returns processed/matured counts and total paid."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Stake)
        .where(Stake.status == STATUS_ACTIVE)
        .order_by(Stake.id)
        .execution_options(populate_existing=True)
    )
    processed = 0
    matured = 0
    paid = Decimal("0")
    for stake in list(result.scalars().all()):
        paid += await settle_stake(db, redis, stake, now)
        processed += 1
        if stake.status == STATUS_COMPLETED:
            matured += 1

    logger.info("Processed %d stakes (%d matured), paid %s XNRT", processed, matured, paid)
    return {"processed": processed, "matured": matured, "total_paid": paid}
