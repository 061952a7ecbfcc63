"""Integration tests for daily check-in streaks and XP grants."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_user
from xnrt.db.models import Notification, User
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.gamification.streak_service import check_in, get_checkin_history
from xnrt.gamification.xp_service import get_xp_history, grant_xp
from xnrt.ledger.service import get_balance

DAY1 = datetime(2026, 6, 1, 9, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def user_db(db_session: AsyncSession):
    user = await make_user(db_session, "checker")
    await db_session.commit()
    return db_session, user


async def _user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id).execution_options(populate_existing=True))
    return result.scalar_one()


class TestCheckIn:
    @pytest.mark.asyncio
    async def test_first_check_in(self, user_db):
        db, user = user_db
        result = await check_in(db, None, user.id, DAY1)

        assert result["streak"] == 1
        assert result["xnrt_reward"] == Decimal("10")
        assert result["xp_reward"] == 5
        balance = await get_balance(db, user.id)
        assert balance.main_balance == Decimal("10")
        assert balance.total_earned == Decimal("10")
        assert (await _user(db, user.id)).xp == 5

    @pytest.mark.asyncio
    async def test_second_check_in_same_day_conflicts(self, user_db):
        db, user = user_db
        await check_in(db, None, user.id, DAY1)
        with pytest.raises(StateConflictError):
            await check_in(db, None, user.id, DAY1 + timedelta(hours=10))

        assert (await get_balance(db, user.id)).main_balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_consecutive_days_grow_streak(self, user_db):
        db, user = user_db
        for day in range(3):
            result = await check_in(db, None, user.id, DAY1 + timedelta(days=day))
        assert result["streak"] == 3
        assert result["xnrt_reward"] == Decimal("30")
        # 10 + 20 + 30
        assert (await get_balance(db, user.id)).main_balance == Decimal("60")

    @pytest.mark.asyncio
    async def test_just_after_midnight_counts_as_next_day(self, user_db):
        db, user = user_db
        await check_in(db, None, user.id, datetime(2026, 6, 1, 23, 59, tzinfo=timezone.utc))
        result = await check_in(db, None, user.id, datetime(2026, 6, 2, 0, 1, tzinfo=timezone.utc))
        assert result["streak"] == 2

    @pytest.mark.asyncio
    async def test_missed_day_resets_streak(self, user_db):
        db, user = user_db
        await check_in(db, None, user.id, DAY1)
        await check_in(db, None, user.id, DAY1 + timedelta(days=1))
        result = await check_in(db, None, user.id, DAY1 + timedelta(days=3))
        assert result["streak"] == 1
        assert (await _user(db, user.id)).streak == 1

    @pytest.mark.asyncio
    async def test_history_lists_days_in_month(self, user_db):
        db, user = user_db
        await check_in(db, None, user.id, DAY1 - timedelta(days=1))
        await check_in(db, None, user.id, DAY1)
        await check_in(db, None, user.id, DAY1 + timedelta(days=2))

        june = await get_checkin_history(db, user.id, 2026, 6)
        may = await get_checkin_history(db, user.id, 2026, 5)

        assert june == [date(2026, 6, 1), date(2026, 6, 3)]
        assert may == [date(2026, 5, 31)]
        assert await get_checkin_history(db, user.id, 2026, 7) == []

    @pytest.mark.asyncio
    async def test_history_rejects_bad_month(self, user_db):
        db, user = user_db
        with pytest.raises(ValidationError):
            await get_checkin_history(db, user.id, 2026, 13)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await check_in(db_session, None, 4242, DAY1)


class TestGrantXP:
    @pytest.mark.asyncio
    async def test_duplicate_key_is_ignored(self, user_db):
        db, user = user_db
        assert await grant_xp(db, None, user.id, 100, "test", "1", "first", "test:1")
        assert not await grant_xp(db, None, user.id, 100, "test", "1", "again", "test:1")
        assert (await _user(db, user.id)).xp == 100

    @pytest.mark.asyncio
    async def test_level_up_notifies(self, user_db):
        db, user = user_db
        await grant_xp(db, None, user.id, 600, "test", "1", "one", "test:1")
        await grant_xp(db, None, user.id, 600, "test", "2", "two", "test:2")

        refreshed = await _user(db, user.id)
        assert refreshed.xp == 1200
        assert refreshed.level == 2
        notifications = (await db.execute(
            select(Notification).where(Notification.user_id == user.id, Notification.type == "level_up")
        )).scalars().all()
        assert len(notifications) == 1
        assert notifications[0].notification_metadata == {"old_level": 1, "new_level": 2}

    @pytest.mark.asyncio
    async def test_zero_amount_not_recorded(self, user_db):
        db, user = user_db
        assert not await grant_xp(db, None, user.id, 0, "test", "1", "nothing", "test:zero")
        _, total = await get_xp_history(db, user.id)
        assert total == 0

    @pytest.mark.asyncio
    async def test_history_most_recent_first(self, user_db):
        db, user = user_db
        await grant_xp(db, None, user.id, 10, "test", "1", "one", "test:1")
        await grant_xp(db, None, user.id, 20, "test", "2", "two", "test:2")
        entries, total = await get_xp_history(db, user.id)
        assert total == 2
        assert [e.amount for e in entries] == [20, 10]
