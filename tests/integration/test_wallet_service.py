"""Integration tests for deposits, withdrawals and admin review."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import fund, make_user
from xnrt.db.models import Task
from xnrt.exceptions import InsufficientBalanceError, NotFoundError, StateConflictError, ValidationError
from xnrt.ledger.service import Account, get_balance
from xnrt.progress.evaluator import get_user_tasks
from xnrt.staking.service import create_stake, withdraw_stake
from xnrt.wallet.service import (
    approve_deposit,
    approve_withdrawal,
    create_deposit,
    create_withdrawal,
    get_transactions,
    reject_deposit,
    reject_withdrawal,
)

TX_HASH = "0x" + "ab" * 32
START = datetime(2026, 8, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def wallet_db(db_session: AsyncSession):
    admin = await make_user(db_session, "admin", is_admin=True)
    referrer = await make_user(db_session, "upline")
    user = await make_user(db_session, "depositor", referrer=referrer)
    await db_session.commit()
    return db_session, user, referrer, admin


class TestDeposits:
    @pytest.mark.asyncio
    async def test_pending_until_approved(self, wallet_db):
        db, user, _, _ = wallet_db
        deposit = await create_deposit(db, user.id, Decimal("100"), TX_HASH)

        assert deposit.status == "pending"
        assert deposit.amount == Decimal("10000")
        assert (await get_balance(db, user.id)).main_balance == 0

    @pytest.mark.asyncio
    async def test_approve_credits_and_pays_commission(self, wallet_db):
        db, user, referrer, admin = wallet_db
        deposit = await create_deposit(db, user.id, Decimal("100"), TX_HASH)
        approved = await approve_deposit(db, None, deposit.id, admin.id, "looks good")

        assert approved.status == "approved"
        assert approved.approved_by == admin.id
        balance = await get_balance(db, user.id)
        assert balance.main_balance == Decimal("10000")
        assert balance.total_earned == Decimal("10000")
        assert (await get_balance(db, referrer.id)).referral_balance == Decimal("600")

    @pytest.mark.asyncio
    async def test_approve_twice_conflicts(self, wallet_db):
        db, user, _, admin = wallet_db
        deposit = await create_deposit(db, user.id, Decimal("100"), TX_HASH)
        await approve_deposit(db, None, deposit.id, admin.id)
        with pytest.raises(StateConflictError):
            await approve_deposit(db, None, deposit.id, admin.id)
        with pytest.raises(StateConflictError):
            await reject_deposit(db, None, deposit.id, admin.id)
        assert (await get_balance(db, user.id)).main_balance == Decimal("10000")

    @pytest.mark.asyncio
    async def test_reject_credits_nothing(self, wallet_db):
        db, user, _, admin = wallet_db
        deposit = await create_deposit(db, user.id, Decimal("100"), TX_HASH)
        rejected = await reject_deposit(db, None, deposit.id, admin.id, "hash not found")
        assert rejected.status == "rejected"
        assert rejected.admin_notes == "hash not found"
        assert (await get_balance(db, user.id)).main_balance == 0

    @pytest.mark.asyncio
    async def test_approval_moves_deposit_task(self, wallet_db):
        db, user, _, admin = wallet_db
        db.add(Task(title="First Deposit", description="Make a deposit", category="deposits", xp_reward=50))
        deposit = await create_deposit(db, user.id, Decimal("1"), TX_HASH)
        await approve_deposit(db, None, deposit.id, admin.id)

        tasks = await get_user_tasks(db, user.id)
        assert tasks[0].completed

    @pytest.mark.asyncio
    async def test_invalid_hash(self, wallet_db):
        db, user, _, _ = wallet_db
        with pytest.raises(ValidationError):
            await create_deposit(db, user.id, Decimal("100"), "0x1234")

    @pytest.mark.asyncio
    async def test_duplicate_hash(self, wallet_db):
        db, user, _, _ = wallet_db
        await create_deposit(db, user.id, Decimal("100"), TX_HASH)
        with pytest.raises(StateConflictError):
            await create_deposit(db, user.id, Decimal("50"), TX_HASH.upper().replace("0X", "0x"))

    @pytest.mark.asyncio
    async def test_review_unknown(self, wallet_db):
        db, _, _, admin = wallet_db
        with pytest.raises(NotFoundError):
            await approve_deposit(db, None, 9999, admin.id)


class TestWithdrawals:
    @pytest.mark.asyncio
    async def test_request_reserves_amount_with_fee(self, wallet_db):
        db, user, _, _ = wallet_db
        await fund(db, user, "10000")
        withdrawal = await create_withdrawal(db, user.id, Account.MAIN, Decimal("10000"), "0xwallet")

        assert withdrawal.fee == Decimal("200")
        assert withdrawal.net_amount == Decimal("9800")
        assert withdrawal.usdt_amount == Decimal("98")
        assert (await get_balance(db, user.id)).main_balance == 0

    @pytest.mark.asyncio
    async def test_reject_refunds_without_counting_as_earning(self, wallet_db):
        db, user, _, admin = wallet_db
        await fund(db, user, "10000")
        withdrawal = await create_withdrawal(db, user.id, Account.MAIN, Decimal("4000"), "0xwallet")
        await reject_withdrawal(db, None, withdrawal.id, admin.id)

        balance = await get_balance(db, user.id)
        assert balance.main_balance == Decimal("10000")
        assert balance.total_earned == Decimal("10000")

    @pytest.mark.asyncio
    async def test_approve_keeps_reservation(self, wallet_db):
        db, user, _, admin = wallet_db
        await fund(db, user, "10000")
        withdrawal = await create_withdrawal(db, user.id, Account.MAIN, Decimal("4000"), "0xwallet")
        await approve_withdrawal(db, None, withdrawal.id, admin.id)
        assert (await get_balance(db, user.id)).main_balance == Decimal("6000")

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, wallet_db):
        db, user, _, _ = wallet_db
        await fund(db, user, "100")
        with pytest.raises(InsufficientBalanceError):
            await create_withdrawal(db, user.id, Account.MAIN, Decimal("101"), "0xwallet")
        assert (await get_balance(db, user.id)).main_balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_referral_minimum(self, wallet_db):
        db, user, _, _ = wallet_db
        await fund(db, user, "10000", Account.REFERRAL)
        with pytest.raises(ValidationError, match="Minimum"):
            await create_withdrawal(db, user.id, Account.REFERRAL, Decimal("4999"), "0xwallet")
        await create_withdrawal(db, user.id, Account.REFERRAL, Decimal("5000"), "0xwallet")
        assert (await get_balance(db, user.id)).referral_balance == Decimal("5000")

    @pytest.mark.asyncio
    async def test_staked_principal_cannot_be_withdrawn(self, wallet_db):
        db, user, _, _ = wallet_db
        await fund(db, user, "1000")
        stake = await create_stake(db, None, user.id, "mythic_diamond", Decimal("1000"), START)

        with pytest.raises(ValidationError, match="Staked funds"):
            await create_withdrawal(db, user.id, Account.STAKING, Decimal("1000"), "0xwallet")
        assert (await get_balance(db, user.id)).staking_balance == Decimal("1000")

        withdrawn = await withdraw_stake(db, None, user.id, stake.id, START + timedelta(days=91))
        assert withdrawn.status == "withdrawn"
        balance = await get_balance(db, user.id)
        assert balance.staking_balance == 0
        assert balance.main_balance == Decimal("2800")

    @pytest.mark.asyncio
    async def test_listing_filters(self, wallet_db):
        db, user, _, _ = wallet_db
        await fund(db, user, "10000")
        await create_deposit(db, user.id, Decimal("5"), TX_HASH)
        await create_withdrawal(db, user.id, Account.MAIN, Decimal("100"), "0xwallet")

        _, total = await get_transactions(db, user_id=user.id)
        assert total == 2
        withdrawals, total = await get_transactions(db, user_id=user.id, tx_type="withdrawal")
        assert total == 1
        assert withdrawals[0].type == "withdrawal"
        _, pending = await get_transactions(db, status="pending")
        assert pending == 2
