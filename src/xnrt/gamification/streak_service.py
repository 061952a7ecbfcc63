"""Daily check-in streaks.

A check-in is allowed once per UTC calendar day. Checking in the day after
the previous check-in continues the streak; any longer gap restarts it at 1.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.config import get_settings
from xnrt.db.models import Activity, User
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.gamification.xp_service import grant_xp
from xnrt.ledger.service import Account, credit
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.progress.events import ProgressEvent
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)

CHECKIN_ACTIVITY = "daily_checkin"


def next_streak(last_check_in: datetime | None, current_streak: int, today: date) -> int:
    """Streak after checking in on ``today``."""
    if last_check_in is not None and last_check_in.date() == today - timedelta(days=1):
        return current_streak + 1
    return 1


def checkin_rewards(streak: int) -> tuple[Decimal, int]:
    """(XNRT, XP) paid for a check-in at ``streak``, both capped."""
    settings = get_settings()
    xnrt = min(streak * settings.checkin_xnrt_per_day, settings.checkin_xnrt_cap)
    xp = min(streak * settings.checkin_xp_per_day, settings.checkin_xp_cap)
    return Decimal(xnrt), xp


async def check_in(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Record today's check-in and pay the streak reward."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    today = now.date()

    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")

    previous = user.last_check_in
    if previous is not None and previous.astimezone(timezone.utc).date() == today:
        raise StateConflictError("Already checked in today")

    streak = next_streak(previous.astimezone(timezone.utc) if previous else None, user.streak, today)

    # Guard on the value we read so two concurrent check-ins cannot both win.
    guard = User.last_check_in.is_(None) if previous is None else User.last_check_in == previous
    claimed = await db.execute(
        update(User)
        .where(User.id == user_id, guard)
        .values(streak=streak, last_check_in=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        raise StateConflictError("Already checked in today")

    xnrt_reward, xp_reward = checkin_rewards(streak)
    await credit(db, user_id, Account.MAIN, xnrt_reward)
    await grant_xp(
        db, redis, user_id, xp_reward, "checkin", today.isoformat(),
        f"Daily check-in (day {streak})",
        f"checkin:{user_id}:{today.isoformat()}",
    )
    await record_activity(
        db, user_id, CHECKIN_ACTIVITY, f"Checked in for day {streak} of your streak",
        {"streak": streak, "xnrt_reward": str(xnrt_reward), "xp_reward": xp_reward},
        now=now,
    )
    await create_notification(
        db, user_id, "checkin", "Daily Check-in",
        f"Day {streak} streak! You earned {xnrt_reward} XNRT and {xp_reward} XP",
        metadata={"streak": streak},
        redis=redis,
    )
    await ProgressEvaluator(db, redis).evaluate(user_id, ProgressEvent.STREAK_INCREMENTED)

    logger.info("User %d checked in: streak=%d", user_id, streak)
    return {"streak": streak, "xnrt_reward": xnrt_reward, "xp_reward": xp_reward, "checked_in_at": now}


async def get_checkin_history(db: AsyncSession, user_id: int, year: int, month: int) -> list[date]:
    """UTC dates of the user's check-ins in one calendar month, oldest first."""
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else start.replace(month=month + 1)

    result = await db.execute(
        select(Activity.created_at)
        .where(
            Activity.user_id == user_id,
            Activity.type == CHECKIN_ACTIVITY,
            Activity.created_at >= start,
            Activity.created_at < end,
        )
        .order_by(Activity.created_at)
    )
    return [created.astimezone(timezone.utc).date() for created in result.scalars()]
