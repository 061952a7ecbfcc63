"""Default task and achievement catalog.

Seeding is idempotent: rows are matched by title and updated in place,
so it is safe to run on every startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Achievement, Task, UserTask
from xnrt.progress.events import ProgressMetric

logger = logging.getLogger(__name__)

TASK_SEED_DATA: list[dict] = [
    {
        "title": "First Deposit",
        "description": "Get your first deposit approved",
        "category": ProgressMetric.DEPOSITS.value,
        "xp_reward": 50,
        "xnrt_reward": Decimal("10"),
        "max_progress": 1,
    },
    {
        "title": "First Stake",
        "description": "Create your first staking position",
        "category": ProgressMetric.STAKING.value,
        "xp_reward": 100,
        "xnrt_reward": Decimal("25"),
        "max_progress": 1,
    },
    {
        "title": "Mining Master",
        "description": "Complete 10 mining sessions",
        "category": ProgressMetric.MINING.value,
        "xp_reward": 200,
        "xnrt_reward": Decimal("50"),
        "max_progress": 10,
    },
    {
        "title": "Referral Champion",
        "description": "Refer 5 new users",
        "category": ProgressMetric.REFERRALS.value,
        "xp_reward": 300,
        "xnrt_reward": Decimal("100"),
        "max_progress": 5,
    },
    {
        "title": "Daily Streak 7",
        "description": "Maintain a 7-day check-in streak",
        "category": ProgressMetric.STREAKS.value,
        "xp_reward": 150,
        "xnrt_reward": Decimal("30"),
        "max_progress": 7,
    },
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Earnings
    {"title": "First Earnings", "description": "Earn your first 100 XNRT", "icon": "TrendingUp",
     "category": "earnings", "requirement": 100, "xp_reward": 50},
    {"title": "Wealth Builder", "description": "Accumulate 1,000 XNRT", "icon": "Wallet",
     "category": "earnings", "requirement": 1000, "xp_reward": 200},
    {"title": "Crypto Whale", "description": "Earn 10,000 XNRT in total", "icon": "Crown",
     "category": "earnings", "requirement": 10000, "xp_reward": 500},
    # Referrals
    {"title": "Networker", "description": "Refer your first user", "icon": "Users",
     "category": "referrals", "requirement": 1, "xp_reward": 100},
    {"title": "Community Builder", "description": "Build a network of 10 users", "icon": "Network",
     "category": "referrals", "requirement": 10, "xp_reward": 300},
    {"title": "Ambassador", "description": "Grow your network to 50 users", "icon": "Award",
     "category": "referrals", "requirement": 50, "xp_reward": 1000},
    # Streaks
    {"title": "Committed", "description": "Maintain a 7-day streak", "icon": "Flame",
     "category": "streaks", "requirement": 7, "xp_reward": 100},
    {"title": "Dedicated", "description": "Maintain a 30-day streak", "icon": "Zap",
     "category": "streaks", "requirement": 30, "xp_reward": 500},
    {"title": "Unstoppable", "description": "Achieve a 100-day streak", "icon": "Star",
     "category": "streaks", "requirement": 100, "xp_reward": 2000},
    # Mining
    {"title": "Miner", "description": "Complete your first mining session", "icon": "Pickaxe",
     "category": "mining", "requirement": 1, "xp_reward": 50},
    {"title": "Professional Miner", "description": "Complete 50 mining sessions", "icon": "Gem",
     "category": "mining", "requirement": 50, "xp_reward": 300},
    {"title": "Mining Legend", "description": "Complete 200 mining sessions", "icon": "Trophy",
     "category": "mining", "requirement": 200, "xp_reward": 1000},
]


async def _upsert_by_title(db: AsyncSession, model: type, rows: list[dict]) -> int:
    existing = {
        row.title: row
        for row in (await db.execute(select(model).where(model.title.in_([r["title"] for r in rows])))).scalars()
    }
    for data in rows:
        current = existing.get(data["title"])
        if current is None:
            db.add(model(**data))
        else:
            for key, value in data.items():
                setattr(current, key, value)
    await db.flush()
    return len(rows)


async def seed_catalog(db: AsyncSession) -> int:
    """Upsert the default tasks and achievements. Returns number of rows seeded."""
    seeded = await _upsert_by_title(db, Task, TASK_SEED_DATA)
    # Open user tasks follow a changed threshold; completed ones keep theirs.
    await db.execute(
        update(UserTask)
        .where(UserTask.completed.is_(False))
        .values(max_progress=select(Task.max_progress).where(Task.id == UserTask.task_id).scalar_subquery())
        .execution_options(synchronize_session=False)
    )
    seeded += await _upsert_by_title(db, Achievement, ACHIEVEMENT_SEED_DATA)
    await db.commit()
    logger.info("Seeded %d catalog entries", seeded)
    return seeded
