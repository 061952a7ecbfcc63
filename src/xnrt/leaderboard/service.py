"""XP and referral leaderboards.

Rankings are computed in SQL from the XP ledger and the referral table.
Ties break on the user id so a rank is stable between requests. Non-admin
viewers see a short anonymized handle instead of other users' names.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from sqlalchemy import Subquery, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Referral, User, XPLedger
from xnrt.exceptions import ValidationError

logger = logging.getLogger(__name__)

# XP ledger sources that have their own board.
XP_CATEGORIES = frozenset({"mining", "checkin", "task", "achievement"})


class Period(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all-time"


def period_start(period: Period, now: datetime) -> datetime | None:
    """Lower bound of the ranking window; None means all time.

    daily starts at UTC midnight, weekly covers the last seven days and
    monthly starts on the first of the current UTC month.
    """
    now = now.astimezone(timezone.utc)
    if period is Period.DAILY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period is Period.WEEKLY:
        return now - timedelta(days=7)
    if period is Period.MONTHLY:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def anonymized_handle(user_id: int) -> str:
    digest = hashlib.sha256(str(user_id).encode()).hexdigest()
    return f"Player-{digest[:4].upper()}"


async def _position(db: AsyncSession, scores: Subquery, keys: list[Any], user_id: int) -> int | None:
    """1-based rank of ``user_id`` under ``keys`` (all descending), or None if unranked."""
    mine = (await db.execute(select(*keys).where(scores.c.user_id == user_id))).one_or_none()
    if mine is None:
        return None

    ahead = []
    for i, key in enumerate(keys):
        ahead.append(and_(*[keys[j] == mine[j] for j in range(i)], key > mine[i]))
    ahead.append(and_(*[key == value for key, value in zip(keys, mine)], scores.c.user_id < user_id))

    result = await db.execute(select(func.count()).select_from(scores).where(or_(*ahead)))
    return result.scalar_one() + 1


def _identity(row: Any, viewer_id: int, viewer_is_admin: bool) -> dict[str, Any]:
    if viewer_is_admin:
        return {"user_id": row.user_id, "display_name": row.username}
    if row.user_id == viewer_id:
        return {"user_id": None, "display_name": "You"}
    return {"user_id": None, "display_name": anonymized_handle(row.user_id)}


async def get_xp_leaderboard(
    db: AsyncSession,
    viewer_id: int,
    viewer_is_admin: bool = False,
    period: Period = Period.ALL_TIME,
    category: str | None = None,
    limit: int = 10,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Rank users by XP earned in ``period``, optionally from one XP source."""
    if category is not None and category not in XP_CATEGORIES:
        raise ValidationError(f"Unknown leaderboard category: {category}")
    if now is None:
        now = datetime.now(timezone.utc)
    start = period_start(period, now)

    if start is None and category is None:
        # Lifetime XP is kept on the user row.
        scores = select(User.id.label("user_id"), User.xp.label("score")).where(User.xp > 0).subquery()
    else:
        criteria = []
        if start is not None:
            criteria.append(XPLedger.created_at >= start)
        if category is not None:
            criteria.append(XPLedger.source == category)
        earned = func.sum(XPLedger.amount)
        scores = (
            select(XPLedger.user_id.label("user_id"), earned.label("score"))
            .where(*criteria)
            .group_by(XPLedger.user_id)
            .having(earned > 0)
            .subquery()
        )

    rows = await db.execute(
        select(scores.c.user_id, scores.c.score, User.username, User.xp)
        .join(User, User.id == scores.c.user_id)
        .order_by(scores.c.score.desc(), scores.c.user_id)
        .limit(limit)
    )
    entries = [
        {**_identity(row, viewer_id, viewer_is_admin), "rank": rank, "score": int(row.score), "xp": row.xp}
        for rank, row in enumerate(rows.all(), start=1)
    ]

    rank = await _position(db, scores, [scores.c.score], viewer_id)
    my_score = (await db.execute(select(scores.c.score).where(scores.c.user_id == viewer_id))).scalar_one_or_none()
    return {
        "period": period.value,
        "category": category or "overall",
        "entries": entries,
        "user_position": {"rank": rank, "score": int(my_score or 0)},
    }


async def get_referral_leaderboard(
    db: AsyncSession,
    viewer_id: int,
    viewer_is_admin: bool = False,
    period: Period = Period.ALL_TIME,
    limit: int = 50,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Rank referrers by direct (level 1) referrals, then by commission earned."""
    if now is None:
        now = datetime.now(timezone.utc)
    start = period_start(period, now)

    direct = func.count(case((Referral.level == 1, Referral.id)))
    commission = func.coalesce(func.sum(Referral.total_commission), 0)
    stmt = (
        select(
            Referral.referrer_id.label("user_id"),
            direct.label("level1_count"),
            func.count(case((Referral.level == 2, Referral.id))).label("level2_count"),
            func.count(case((Referral.level == 3, Referral.id))).label("level3_count"),
            func.count(Referral.id).label("total_referrals"),
            commission.label("total_commission"),
        )
        .group_by(Referral.referrer_id)
        .having(direct > 0)
    )
    if start is not None:
        stmt = stmt.where(Referral.created_at >= start)
    scores = stmt.subquery()

    rows = await db.execute(
        select(scores, User.username)
        .join(User, User.id == scores.c.user_id)
        .order_by(scores.c.level1_count.desc(), scores.c.total_commission.desc(), scores.c.user_id)
        .limit(limit)
    )
    entries = [
        {
            **_identity(row, viewer_id, viewer_is_admin),
            "rank": rank,
            "level1_count": row.level1_count,
            "level2_count": row.level2_count,
            "level3_count": row.level3_count,
            "total_referrals": row.total_referrals,
            "total_commission": row.total_commission,
        }
        for rank, row in enumerate(rows.all(), start=1)
    ]

    rank = await _position(db, scores, [scores.c.level1_count, scores.c.total_commission], viewer_id)
    mine = (
        await db.execute(
            select(scores.c.level1_count, scores.c.total_commission).where(scores.c.user_id == viewer_id)
        )
    ).one_or_none()
    logger.debug("Referral leaderboard %s: %d entries", period.value, len(entries))
    return {
        "period": period.value,
        "entries": entries,
        "user_position": {
            "rank": rank,
            "level1_count": mine.level1_count if mine else 0,
            "total_commission": mine.total_commission if mine else 0,
        },
    }
