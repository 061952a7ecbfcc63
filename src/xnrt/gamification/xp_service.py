"""XP grant service with idempotency and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import User, XPLedger
from xnrt.exceptions import NotFoundError
from xnrt.gamification.level_thresholds import compute_level
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)


async def grant_xp(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    amount: int,
    source: str,
    source_id: str,
    description: str,
    idempotency_key: str,
) -> bool:
    """Grant XP to a user. Returns True if granted, False if duplicate.

    After granting:
    1. Insert into xp_ledger
    2. Atomically bump users.xp
    3. Recompute level from the new total
    4. If level changed, emit a level_up notification
    """
    existing = await db.execute(
        select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key)
    )
    if existing.scalar_one_or_none() is not None:
        return False

    if amount <= 0:
        return False

    now = datetime.now(timezone.utc)
    db.add(XPLedger(
        user_id=user_id,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    ))

    bumped = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(xp=User.xp + amount, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if bumped.rowcount == 0:
        raise NotFoundError("User not found")
    row = (await db.execute(select(User.xp, User.level).where(User.id == user_id))).one()
    total_xp, old_level = row

    new_level = compute_level(total_xp)["level"]
    if new_level != old_level:
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(level=new_level)
            .execution_options(synchronize_session=False)
        )
    await db.flush()

    if new_level > old_level:
        await create_notification(
            db,
            user_id,
            "level_up",
            "Level Up!",
            f"You reached level {new_level}",
            action_url="/profile",
            metadata={"old_level": old_level, "new_level": new_level},
            redis=redis,
        )
        logger.info("User %d leveled up %d -> %d", user_id, old_level, new_level)

    return True


async def get_xp_history(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[XPLedger], int]:
    """Paginated XP ledger for a user, most recent first."""
    total_result = await db.execute(
        select(func.count()).select_from(XPLedger).where(XPLedger.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(XPLedger)
        .where(XPLedger.user_id == user_id)
        .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
