"""Integration tests for task/achievement evaluation and claiming."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import fund, make_user
from xnrt.db.models import Achievement, MiningSession, Notification, Task, User, UserTask, XPLedger
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.ledger.service import get_balance
from xnrt.progress import catalog
from xnrt.progress.catalog import ACHIEVEMENT_SEED_DATA, TASK_SEED_DATA, seed_catalog
from xnrt.progress.evaluator import (
    ProgressEvaluator,
    claim_achievement,
    get_user_achievements,
    get_user_tasks,
)
from xnrt.progress.events import ProgressEvent

T0 = datetime(2026, 5, 1, 8, 0, tzinfo=timezone.utc)


async def _add_completed_sessions(db: AsyncSession, user_id: int, count: int, offset: int = 0) -> None:
    for i in range(offset, offset + count):
        start = T0 + timedelta(days=2 * i)
        db.add(MiningSession(
            user_id=user_id,
            base_reward=Decimal("10"),
            final_reward=Decimal("10"),
            start_time=start,
            end_time=start + timedelta(hours=24),
            next_available=start + timedelta(hours=25),
            completed_at=start + timedelta(hours=24),
            status="completed",
        ))
    await db.flush()


async def _xp(db: AsyncSession, user_id: int) -> int:
    return (await db.execute(select(User.xp).where(User.id == user_id))).scalar_one()


@pytest_asyncio.fixture
async def miner_db(db_session: AsyncSession):
    """A user plus a five-session mining task and a three-session achievement."""
    db_session.add(Task(
        title="Five Sessions", description="Complete 5 mining sessions", category="mining",
        xp_reward=200, xnrt_reward=Decimal("50"), max_progress=5,
    ))
    db_session.add(Achievement(
        title="Triple Miner", description="Complete 3 mining sessions", icon="Pickaxe",
        category="mining", requirement=3, xp_reward=40,
    ))
    user = await make_user(db_session, "miner")
    await db_session.commit()
    return db_session, user


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_progress_below_threshold_pays_nothing(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 2)

        result = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)

        assert not result.changed
        row = (await get_user_tasks(db, user.id))[0]
        assert row.progress == 2
        assert not row.completed
        assert await _xp(db, user.id) == 0

    @pytest.mark.asyncio
    async def test_four_to_five_transition_pays_once(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 4)
        first = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        assert first.completed_task_ids == []
        assert len(first.unlocked_achievement_ids) == 1
        assert (await get_balance(db, user.id)).main_balance == 0

        await _add_completed_sessions(db, user.id, 1, offset=4)
        second = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        assert len(second.completed_task_ids) == 1

        balance = await get_balance(db, user.id)
        assert balance.main_balance == Decimal("50")
        assert balance.total_earned == Decimal("50")
        assert await _xp(db, user.id) == 240

        row = (await get_user_tasks(db, user.id))[0]
        assert row.completed
        assert row.progress == 5
        assert row.completed_at is not None

    @pytest.mark.asyncio
    async def test_re_evaluation_is_idempotent(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 6)
        evaluator = ProgressEvaluator(db)
        await evaluator.evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        again = await evaluator.evaluate(user.id, ProgressEvent.MINING_COMPLETED)

        assert not again.changed
        assert (await get_balance(db, user.id)).main_balance == Decimal("50")
        assert await _xp(db, user.id) == 240
        ledger_rows = (await db.execute(
            select(func.count()).select_from(XPLedger).where(XPLedger.user_id == user.id)
        )).scalar_one()
        assert ledger_rows == 2

    @pytest.mark.asyncio
    async def test_progress_capped_at_max(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 8)
        await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        row = (await get_user_tasks(db, user.id))[0]
        assert row.progress == 5

    @pytest.mark.asyncio
    async def test_lowered_catalog_threshold_reaches_existing_rows(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 3)
        evaluator = ProgressEvaluator(db)
        await evaluator.evaluate(user.id, ProgressEvent.MINING_COMPLETED)

        task = (await db.execute(select(Task).where(Task.title == "Five Sessions"))).scalar_one()
        task.max_progress = 3
        await db.flush()
        result = await evaluator.evaluate(user.id, ProgressEvent.MINING_COMPLETED)

        assert task.id in result.completed_task_ids
        row = (await get_user_tasks(db, user.id))[0]
        assert row.completed
        assert row.progress == 3
        assert row.max_progress == 3

    @pytest.mark.asyncio
    async def test_unrelated_event_does_not_touch_mining(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 5)
        result = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.REFERRAL_ACQUIRED)
        assert not result.changed
        assert (await get_user_tasks(db, user.id))[0].progress == 0

    @pytest.mark.asyncio
    async def test_task_reward_can_unlock_earnings_achievement(self, miner_db):
        db, user = miner_db
        db.add(Achievement(
            title="First Fifty", description="Earn 50 XNRT", category="earnings",
            requirement=50, xp_reward=5,
        ))
        await _add_completed_sessions(db, user.id, 5)
        result = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        assert len(result.unlocked_achievement_ids) == 2

    @pytest.mark.asyncio
    async def test_completion_notifies_user(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 5)
        await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        types = (await db.execute(
            select(Notification.type).where(Notification.user_id == user.id)
        )).scalars().all()
        assert "task" in types
        assert "achievement" in types

    @pytest.mark.asyncio
    async def test_earnings_threshold_uses_total_earned(self, db_session):
        db_session.add(Achievement(
            title="Hundred Club", description="Earn 100 XNRT", category="earnings",
            requirement=100, xp_reward=25,
        ))
        user = await make_user(db_session, "earner")
        await fund(db_session, user, "99.5")
        assert not (await ProgressEvaluator(db_session).evaluate(user.id, ProgressEvent.EARNINGS_CREDITED)).changed

        await fund(db_session, user, "0.5")
        result = await ProgressEvaluator(db_session).evaluate(user.id, ProgressEvent.EARNINGS_CREDITED)
        assert len(result.unlocked_achievement_ids) == 1


class TestEnsureRows:
    @pytest.mark.asyncio
    async def test_backfills_new_catalog_entries(self, miner_db):
        db, user = miner_db
        assert len(await get_user_tasks(db, user.id)) == 1

        db.add(Task(title="Later Task", description="Added later", category="staking", xp_reward=1))
        await db.flush()
        assert len(await get_user_tasks(db, user.id)) == 2

    @pytest.mark.asyncio
    async def test_inactive_tasks_hidden(self, miner_db):
        db, user = miner_db
        db.add(Task(title="Retired", description="Gone", category="staking", xp_reward=1, is_active=False))
        await db.flush()
        assert [row.task.title for row in await get_user_tasks(db, user.id)] == ["Five Sessions"]


class TestClaimAchievement:
    @pytest.mark.asyncio
    async def test_claim_unlocked(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 3)
        result = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        achievement_id = result.unlocked_achievement_ids[0]

        claimed = await claim_achievement(db, user.id, achievement_id)
        assert claimed.claimed
        assert claimed.claimed_at is not None
        # XP was granted at unlock; claiming adds none.
        assert await _xp(db, user.id) == 40

    @pytest.mark.asyncio
    async def test_claim_twice_conflicts(self, miner_db):
        db, user = miner_db
        await _add_completed_sessions(db, user.id, 3)
        result = await ProgressEvaluator(db).evaluate(user.id, ProgressEvent.MINING_COMPLETED)
        achievement_id = result.unlocked_achievement_ids[0]
        await claim_achievement(db, user.id, achievement_id)
        with pytest.raises(StateConflictError):
            await claim_achievement(db, user.id, achievement_id)

    @pytest.mark.asyncio
    async def test_claim_locked_rejected(self, miner_db):
        db, user = miner_db
        achievement = (await get_user_achievements(db, user.id))[0]
        with pytest.raises(ValidationError):
            await claim_achievement(db, user.id, achievement.achievement_id)

    @pytest.mark.asyncio
    async def test_claim_unknown(self, miner_db):
        db, user = miner_db
        with pytest.raises(NotFoundError):
            await claim_achievement(db, user.id, 9999)


class TestSeedCatalog:
    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        await seed_catalog(db_session)
        await seed_catalog(db_session)
        tasks = (await db_session.execute(select(func.count()).select_from(Task))).scalar_one()
        achievements = (await db_session.execute(select(func.count()).select_from(Achievement))).scalar_one()
        assert tasks == len(TASK_SEED_DATA)
        assert achievements == len(ACHIEVEMENT_SEED_DATA)

    @pytest.mark.asyncio
    async def test_reseed_updates_open_user_task_thresholds(self, db_session, monkeypatch):
        await seed_catalog(db_session)
        user = await make_user(db_session, "seeded")
        await ProgressEvaluator(db_session).ensure_rows(user.id)

        changed = [dict(row) for row in TASK_SEED_DATA]
        changed[0]["max_progress"] = 3
        monkeypatch.setattr(catalog, "TASK_SEED_DATA", changed)
        await seed_catalog(db_session)

        max_progress = (await db_session.execute(
            select(UserTask.max_progress)
            .join(Task, Task.id == UserTask.task_id)
            .where(UserTask.user_id == user.id, Task.title == changed[0]["title"])
        )).scalar_one()
        assert max_progress == 3

    @pytest.mark.asyncio
    async def test_seeded_categories_are_known_metrics(self, db_session):
        from xnrt.progress.events import ProgressMetric

        await seed_catalog(db_session)
        categories = set((await db_session.execute(select(Task.category))).scalars().all())
        categories |= set((await db_session.execute(select(Achievement.category))).scalars().all())
        assert categories <= {m.value for m in ProgressMetric}
