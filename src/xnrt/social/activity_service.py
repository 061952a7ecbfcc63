"""User activity recording for the personal feed."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Activity


async def record_activity(
    db: AsyncSession,
    user_id: int,
    activity_type: str,
    description: str,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Activity:
    """Append an activity row to the user's feed, stamped ``now`` (default: current time)."""
    activity = Activity(
        user_id=user_id,
        type=activity_type,
        description=description,
        activity_metadata=metadata or {},
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(activity)
    await db.flush()
    return activity


async def get_activity_feed(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Activity], int]:
    """Get the user's personal activity feed (paginated)."""
    offset = (page - 1) * per_page

    total_result = await db.execute(
        select(func.count()).select_from(Activity).where(Activity.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Activity)
        .where(Activity.user_id == user_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
