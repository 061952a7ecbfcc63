"""Mining session cycle: none -> active -> completed -> (cooldown) -> none.

There is no scheduler. An active session past its end time is completed
lazily the next time it is read (see :func:`get_current_session`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.config import get_settings
from xnrt.db.models import MiningSession
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.gamification.xp_service import grant_xp
from xnrt.ledger.service import Account, credit
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.progress.events import ProgressEvent
from xnrt.referrals.service import distribute_commissions
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"


def compute_final_reward(
    base_reward: Decimal,
    boost_percentage: int,
    ad_boost_count: int,
    ad_boost_reward: Decimal,
) -> Decimal:
    """base x (1 + boost% / 100) + ad boosts x per-boost increment."""
    boosted = base_reward * (Decimal(1) + Decimal(boost_percentage) / Decimal(100))
    return boosted + Decimal(ad_boost_count) * ad_boost_reward


async def get_active_session(db: AsyncSession, user_id: int) -> MiningSession | None:
    result = await db.execute(
        select(MiningSession)
        .where(MiningSession.user_id == user_id, MiningSession.status == STATUS_ACTIVE)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_latest_session(db: AsyncSession, user_id: int) -> MiningSession | None:
    result = await db.execute(
        select(MiningSession)
        .where(MiningSession.user_id == user_id)
        .order_by(MiningSession.start_time.desc(), MiningSession.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def start_session(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> MiningSession:
    """Open a new session. Rejected while one is active or during cooldown."""
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    if await get_active_session(db, user_id) is not None:
        raise ValidationError("Mining session already active")

    latest = await get_latest_session(db, user_id)
    if latest is not None and now < latest.next_available:
        raise ValidationError(f"Next mining session available at {latest.next_available.isoformat()}")

    end_time = now + timedelta(hours=settings.mining_session_hours)
    session = MiningSession(
        user_id=user_id,
        base_reward=settings.mining_base_reward,
        boost_percentage=settings.mining_boost_percentage,
        ad_boost_count=0,
        start_time=now,
        end_time=end_time,
        next_available=end_time + timedelta(minutes=settings.mining_cooldown_minutes),
        status=STATUS_ACTIVE,
        created_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(session)
            await db.flush()
    except IntegrityError:
        # Lost the race against a concurrent start; only the savepoint is rolled back.
        raise ValidationError("Mining session already active") from None

    logger.info("User %d started mining session %d", user_id, session.id)
    return session


async def boost_session(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> MiningSession:
    """Record one ad boost on the active session."""
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    session = await get_active_session(db, user_id)
    if session is None or now >= session.end_time:
        raise ValidationError("No active mining session to boost")

    result = await db.execute(
        update(MiningSession)
        .where(
            MiningSession.id == session.id,
            MiningSession.status == STATUS_ACTIVE,
            MiningSession.ad_boost_count < settings.mining_max_ad_boosts,
        )
        .values(ad_boost_count=MiningSession.ad_boost_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ValidationError(f"Maximum of {settings.mining_max_ad_boosts} boosts per session reached")

    await db.refresh(session)
    return session


async def complete_session(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    now: datetime | None = None,
) -> MiningSession:
    """Complete the active session and pay its reward.

    Before end_time this raises StateConflictError and touches no balance.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    settings = get_settings()

    session = await get_active_session(db, user_id)
    if session is None:
        raise NotFoundError("No active mining session")
    if now < session.end_time:
        raise StateConflictError("Mining session has not finished yet")

    reward = compute_final_reward(
        Decimal(session.base_reward),
        session.boost_percentage,
        session.ad_boost_count,
        settings.mining_ad_boost_reward,
    )
    result = await db.execute(
        update(MiningSession)
        .where(MiningSession.id == session.id, MiningSession.status == STATUS_ACTIVE)
        .values(
            status=STATUS_COMPLETED,
            final_reward=reward,
            completed_at=now,
            next_available=now + timedelta(minutes=settings.mining_cooldown_minutes),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflictError("Mining session already completed")

    if reward > 0:
        await credit(db, user_id, Account.MINING, reward)
    await grant_xp(
        db, redis, user_id, settings.mining_xp_reward, "mining", str(session.id),
        "Completed mining session",
        f"mining:{session.id}",
    )
    await record_activity(
        db, user_id, "mining_completed", f"Mined {reward} XNRT",
        {"session_id": session.id, "reward": str(reward)},
    )
    await create_notification(
        db, user_id, "mining", "Mining Complete!",
        f"Your mining session earned {reward} XNRT",
        action_url="/mining",
        metadata={"session_id": session.id, "reward": str(reward)},
        redis=redis,
    )
    await distribute_commissions(db, redis, user_id, reward, "mining")
    await ProgressEvaluator(db, redis).evaluate(user_id, ProgressEvent.MINING_COMPLETED)

    await db.refresh(session)
    logger.info("User %d completed mining session %d: %s XNRT", user_id, session.id, reward)
    return session


async def get_current_session(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    now: datetime | None = None,
) -> MiningSession | None:
    """Latest session for the user, completing an expired active one first."""
    if now is None:
        now = datetime.now(timezone.utc)

    active = await get_active_session(db, user_id)
    if active is not None:
        if now < active.end_time:
            return active
        return await complete_session(db, redis, user_id, now)
    return await get_latest_session(db, user_id)


async def get_session_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[MiningSession], int]:
    """Paginated mining sessions, most recent first."""
    total_result = await db.execute(
        select(func.count()).select_from(MiningSession).where(MiningSession.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(MiningSession)
        .where(MiningSession.user_id == user_id)
        .order_by(MiningSession.start_time.desc(), MiningSession.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
