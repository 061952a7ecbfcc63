"""Integration tests for referral assignment and commission propagation."""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_user
from xnrt.db.models import Notification, Referral, Task, User
from xnrt.exceptions import NotFoundError, ValidationError
from xnrt.ledger.service import get_balance
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.progress.events import ProgressEvent
from xnrt.referrals.service import (
    assign_referrer,
    distribute_commissions,
    get_referral_stats,
    get_referral_tree,
    get_referrer_chain,
)


@pytest_asyncio.fixture
async def chain_db(db_session: AsyncSession):
    """u0 <- u1 <- u2 <- u3 <- u4 (u4 is the deepest descendant)."""
    users = [await make_user(db_session, "u0")]
    for i in range(1, 5):
        users.append(await make_user(db_session, f"u{i}", referrer=users[-1]))
    await db_session.commit()
    return db_session, users


class TestAssignReferrer:
    @pytest.mark.asyncio
    async def test_materializes_three_levels(self, chain_db):
        db, users = chain_db
        rows = (await db.execute(
            select(Referral.referrer_id, Referral.level)
            .where(Referral.referred_user_id == users[4].id)
            .order_by(Referral.level)
        )).all()
        assert rows == [(users[3].id, 1), (users[2].id, 2), (users[1].id, 3)]

    @pytest.mark.asyncio
    async def test_referrer_is_notified(self, chain_db):
        db, users = chain_db
        result = await db.execute(
            select(Notification).where(Notification.user_id == users[0].id, Notification.type == "referral")
        )
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, db_session):
        user = await make_user(db_session, "solo")
        with pytest.raises(ValidationError, match="yourself"):
            await assign_referrer(db_session, user, user.referral_code)

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, db_session):
        a = await make_user(db_session, "alpha")
        b = await make_user(db_session, "beta", referrer=a)
        c = await make_user(db_session, "gamma", referrer=b)
        with pytest.raises(ValidationError, match="cycle"):
            await assign_referrer(db_session, a, c.referral_code)

        refreshed = (await db_session.execute(select(User.referred_by).where(User.id == a.id))).scalar_one()
        assert refreshed is None

    @pytest.mark.asyncio
    async def test_reassignment_rejected(self, db_session):
        a = await make_user(db_session, "alpha")
        b = await make_user(db_session, "beta")
        c = await make_user(db_session, "gamma", referrer=a)
        with pytest.raises(ValidationError, match="already"):
            await assign_referrer(db_session, c, b.referral_code)

    @pytest.mark.asyncio
    async def test_unknown_code(self, db_session):
        user = await make_user(db_session, "lonely")
        with pytest.raises(NotFoundError):
            await assign_referrer(db_session, user, "ZZZZZZZZ")

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, db_session):
        a = await make_user(db_session, "alpha")
        b = await make_user(db_session, "beta")
        await assign_referrer(db_session, b, a.referral_code.lower())
        assert b.referred_by == a.id


class TestReferrerChain:
    @pytest.mark.asyncio
    async def test_nearest_first_capped_at_three(self, chain_db):
        db, users = chain_db
        chain = await get_referrer_chain(db, users[4].id)
        assert chain == [users[3].id, users[2].id, users[1].id]

    @pytest.mark.asyncio
    async def test_unbounded_walk_reaches_root(self, chain_db):
        db, users = chain_db
        chain = await get_referrer_chain(db, users[4].id, max_levels=None)
        assert chain == [u.id for u in reversed(users[:4])]

    @pytest.mark.asyncio
    async def test_root_has_empty_chain(self, chain_db):
        db, users = chain_db
        assert await get_referrer_chain(db, users[0].id) == []


class TestDistributeCommissions:
    @pytest.mark.asyncio
    async def test_deep_chain_pays_three_levels_only(self, chain_db):
        db, users = chain_db
        await distribute_commissions(db, None, users[4].id, Decimal("1000"), "mining")
        await db.commit()

        expected = {0: Decimal("0"), 1: Decimal("10"), 2: Decimal("30"), 3: Decimal("60"), 4: Decimal("0")}
        for index, amount in expected.items():
            balance = await get_balance(db, users[index].id)
            assert balance.referral_balance == amount, index
            assert balance.total_earned == amount, index

    @pytest.mark.asyncio
    async def test_single_ancestor(self, db_session):
        parent = await make_user(db_session, "parent")
        child = await make_user(db_session, "child", referrer=parent)
        commissions = await distribute_commissions(db_session, None, child.id, Decimal("500"), "deposit")

        assert len(commissions) == 1
        balance = await get_balance(db_session, parent.id)
        assert balance.referral_balance == Decimal("30")

    @pytest.mark.asyncio
    async def test_root_user_earning_pays_nobody(self, chain_db):
        db, users = chain_db
        assert await distribute_commissions(db, None, users[0].id, Decimal("1000"), "mining") == []

    @pytest.mark.asyncio
    async def test_referral_rows_track_commission(self, chain_db):
        db, users = chain_db
        await distribute_commissions(db, None, users[4].id, Decimal("1000"), "mining")
        await distribute_commissions(db, None, users[4].id, Decimal("500"), "mining")
        await db.commit()

        stats = await get_referral_stats(db, users[3].id)
        assert stats["levels"][1]["count"] == 1
        assert stats["levels"][1]["commission"] == Decimal("90")
        assert stats["total_commission"] == Decimal("90")

    @pytest.mark.asyncio
    async def test_task_reward_propagates_up_the_tree(self, db_session):
        """A <- B <- C: C's 1000 XNRT task reward pays B 60 and A 30."""
        a = await make_user(db_session, "alpha")
        b = await make_user(db_session, "beta", referrer=a)
        c = await make_user(db_session, "gamma", referrer=b)
        db_session.add(Task(
            title="Big Reward", description="Check in once", category="streaks",
            xp_reward=10, xnrt_reward=Decimal("1000"), max_progress=1,
        ))
        await db_session.execute(update(User).where(User.id == c.id).values(streak=1))
        await db_session.flush()

        result = await ProgressEvaluator(db_session).evaluate(c.id, ProgressEvent.STREAK_INCREMENTED)
        await db_session.commit()

        assert len(result.completed_task_ids) == 1
        assert (await get_balance(db_session, c.id)).main_balance == Decimal("1000")
        assert (await get_balance(db_session, b.id)).referral_balance == Decimal("60")
        assert (await get_balance(db_session, a.id)).referral_balance == Decimal("30")


class TestReferralStats:
    @pytest.mark.asyncio
    async def test_counts_per_level(self, chain_db):
        db, users = chain_db
        stats = await get_referral_stats(db, users[0].id)
        assert stats["total_referrals"] == 3
        assert [stats["levels"][lvl]["count"] for lvl in (1, 2, 3)] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_tree_nearest_level_first(self, chain_db):
        db, users = chain_db
        tree = await get_referral_tree(db, users[1].id)
        assert [(r.referred_user_id, r.level) for r in tree] == [
            (users[2].id, 1),
            (users[3].id, 2),
            (users[4].id, 3),
        ]
