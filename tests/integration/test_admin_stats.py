"""Integration tests for the admin platform overview."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import fund, make_user
from xnrt.admin.service import get_platform_stats
from xnrt.ledger.service import Account
from xnrt.staking.service import create_stake
from xnrt.wallet.service import approve_deposit, approve_withdrawal, create_deposit, create_withdrawal


class TestPlatformStats:
    @pytest.mark.asyncio
    async def test_empty_platform(self, db_session: AsyncSession):
        stats = await get_platform_stats(db_session)
        assert stats["total_users"] == 0
        assert stats["total_deposits"] == 0
        assert stats["active_stakes_count"] == 0

    @pytest.mark.asyncio
    async def test_totals_count_only_approved(self, db_session: AsyncSession):
        admin = await make_user(db_session, "admin", is_admin=True)
        user = await make_user(db_session, "whale")
        user.created_at = datetime.now(timezone.utc)
        admin.created_at = datetime.now(timezone.utc) - timedelta(days=3)

        approved = await create_deposit(db_session, user.id, Decimal("100"), "0x" + "aa" * 32)
        await approve_deposit(db_session, None, approved.id, admin.id)
        await create_deposit(db_session, user.id, Decimal("50"), "0x" + "bb" * 32)

        withdrawal = await create_withdrawal(db_session, user.id, Account.MAIN, Decimal("4000"), "0xwallet")
        await approve_withdrawal(db_session, None, withdrawal.id, admin.id)
        await create_withdrawal(db_session, user.id, Account.MAIN, Decimal("1000"), "0xwallet")

        await fund(db_session, user, "500")
        await create_stake(db_session, None, user.id, "mythic_diamond", Decimal("500"))
        await db_session.flush()

        stats = await get_platform_stats(db_session)

        assert stats["total_users"] == 2
        assert stats["today_new_users"] == 1
        assert stats["total_deposits"] == Decimal("10000")
        assert stats["today_deposits"] == Decimal("10000")
        assert stats["total_withdrawals"] == Decimal("4000")
        assert stats["today_withdrawals"] == Decimal("4000")
        assert stats["pending_deposits_count"] == 1
        assert stats["pending_withdrawals_count"] == 1
        assert stats["active_stakes_count"] == 1

    @pytest.mark.asyncio
    async def test_today_excludes_yesterday(self, db_session: AsyncSession):
        admin = await make_user(db_session, "admin", is_admin=True)
        user = await make_user(db_session, "user")
        deposit = await create_deposit(db_session, user.id, Decimal("10"), "0x" + "cc" * 32)
        await approve_deposit(db_session, None, deposit.id, admin.id)

        stats = await get_platform_stats(db_session, now=datetime.now(timezone.utc) + timedelta(days=1))

        assert stats["total_deposits"] == Decimal("1000")
        assert stats["today_deposits"] == 0
