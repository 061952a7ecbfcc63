"""Deposit and withdrawal requests with admin review.

Deposits credit the main balance only once an admin approves them.
Withdrawals reserve their amount at request time with a guarded debit;
rejection refunds it. Status moves ``pending -> approved | rejected``
through a conditional UPDATE, so a request is processed once.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.config import get_settings
from xnrt.db.models import Transaction
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.ledger.service import Account, credit, debit
from xnrt.progress.evaluator import ProgressEvaluator
from xnrt.progress.events import ProgressEvent
from xnrt.referrals.service import distribute_commissions
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)

TX_HASH_RE = re.compile(r"^0x[0-9a-f]{64}$")

TYPE_DEPOSIT = "deposit"
TYPE_WITHDRAWAL = "withdrawal"

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


def withdrawal_breakdown(amount: Decimal) -> dict[str, Decimal]:
    """Fee, net XNRT and USDT payout for a withdrawal of ``amount``."""
    settings = get_settings()
    fee = amount * settings.withdrawal_fee_percent / Decimal(100)
    net = amount - fee
    return {"fee": fee, "net_amount": net, "usdt_amount": net / settings.xnrt_per_usdt}


def _minimum_for(source: Account) -> Decimal | None:
    settings = get_settings()
    if source is Account.REFERRAL:
        return settings.min_referral_withdrawal
    if source is Account.MINING:
        return settings.min_mining_withdrawal
    return None


async def create_deposit(
    db: AsyncSession,
    user_id: int,
    usdt_amount: Decimal,
    transaction_hash: str,
) -> Transaction:
    """Record a pending deposit for admin review."""
    if usdt_amount <= 0:
        raise ValidationError("Amount must be positive")
    tx_hash = transaction_hash.strip().lower()
    if not TX_HASH_RE.match(tx_hash):
        raise ValidationError("Invalid transaction hash")

    existing = await db.execute(select(Transaction.id).where(Transaction.transaction_hash == tx_hash))
    if existing.scalar_one_or_none() is not None:
        raise StateConflictError("Transaction hash already submitted")

    deposit = Transaction(
        user_id=user_id,
        type=TYPE_DEPOSIT,
        amount=usdt_amount * get_settings().xnrt_per_usdt,
        usdt_amount=usdt_amount,
        transaction_hash=tx_hash,
        status=STATUS_PENDING,
        created_at=datetime.now(timezone.utc),
    )
    db.add(deposit)
    await db.flush()
    logger.info("User %d submitted deposit %d (%s USDT)", user_id, deposit.id, usdt_amount)
    return deposit


async def create_withdrawal(
    db: AsyncSession,
    user_id: int,
    source: Account,
    amount: Decimal,
    wallet_address: str,
) -> Transaction:
    """Reserve ``amount`` from ``source`` and record a pending withdrawal.

    The staking balance is not a valid source: it is locked in stakes until
    they mature and are withdrawn to the main balance.
    """
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    if not wallet_address.strip():
        raise ValidationError("Wallet address is required")
    # Staking balance is principal and profit of open stakes; it leaves only via withdraw_stake.
    if source is Account.STAKING:
        raise ValidationError("Staked funds return to the main balance when the stake is withdrawn")
    minimum = _minimum_for(source)
    if minimum is not None and amount < minimum:
        raise ValidationError(f"Minimum withdrawal from {source.value} balance is {minimum} XNRT")

    await debit(db, user_id, source, amount)

    breakdown = withdrawal_breakdown(amount)
    withdrawal = Transaction(
        user_id=user_id,
        type=TYPE_WITHDRAWAL,
        amount=amount,
        fee=breakdown["fee"],
        net_amount=breakdown["net_amount"],
        usdt_amount=breakdown["usdt_amount"],
        source=source.value,
        wallet_address=wallet_address.strip(),
        status=STATUS_PENDING,
        created_at=datetime.now(timezone.utc),
    )
    db.add(withdrawal)
    await db.flush()

    await record_activity(
        db, user_id, "withdrawal_requested", f"Requested withdrawal of {amount} XNRT",
        {"transaction_id": withdrawal.id, "source": source.value},
    )
    logger.info("User %d requested withdrawal %d of %s from %s", user_id, withdrawal.id, amount, source.value)
    return withdrawal


async def _get_transaction(db: AsyncSession, tx_id: int, tx_type: str) -> Transaction:
    tx = await db.get(Transaction, tx_id, populate_existing=True)
    if tx is None or tx.type != tx_type:
        raise NotFoundError(f"{tx_type.capitalize()} not found")
    return tx


async def _review(
    db: AsyncSession,
    tx: Transaction,
    status: str,
    admin_id: int,
    notes: str | None,
) -> None:
    """Conditionally move a pending transaction to ``status``."""
    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == tx.id, Transaction.status == STATUS_PENDING)
        .values(
            status=status,
            approved_by=admin_id,
            approved_at=datetime.now(timezone.utc),
            admin_notes=notes,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflictError(f"{tx.type.capitalize()} already processed")
    await db.refresh(tx)


async def approve_deposit(
    db: AsyncSession,
    redis: Any | None,
    tx_id: int,
    admin_id: int,
    notes: str | None = None,
) -> Transaction:
    tx = await _get_transaction(db, tx_id, TYPE_DEPOSIT)
    await _review(db, tx, STATUS_APPROVED, admin_id, notes)

    amount = Decimal(tx.amount)
    await credit(db, tx.user_id, Account.MAIN, amount)
    await record_activity(
        db, tx.user_id, "deposit_approved", f"Deposit of {amount} XNRT approved",
        {"transaction_id": tx.id, "usdt_amount": str(tx.usdt_amount)},
    )
    await create_notification(
        db, tx.user_id, "deposit", "Deposit Approved",
        f"{amount} XNRT has been credited to your balance",
        action_url="/wallet",
        metadata={"transaction_id": tx.id},
        redis=redis,
    )
    await distribute_commissions(db, redis, tx.user_id, amount, "deposit")
    await ProgressEvaluator(db, redis).evaluate(tx.user_id, ProgressEvent.DEPOSIT_APPROVED)
    logger.info("Admin %d approved deposit %d", admin_id, tx.id)
    return tx


async def reject_deposit(
    db: AsyncSession,
    redis: Any | None,
    tx_id: int,
    admin_id: int,
    notes: str | None = None,
) -> Transaction:
    tx = await _get_transaction(db, tx_id, TYPE_DEPOSIT)
    await _review(db, tx, STATUS_REJECTED, admin_id, notes)
    await create_notification(
        db, tx.user_id, "deposit", "Deposit Rejected",
        notes or "Your deposit could not be verified",
        action_url="/wallet",
        metadata={"transaction_id": tx.id},
        redis=redis,
    )
    logger.info("Admin %d rejected deposit %d", admin_id, tx.id)
    return tx


async def approve_withdrawal(
    db: AsyncSession,
    redis: Any | None,
    tx_id: int,
    admin_id: int,
    notes: str | None = None,
) -> Transaction:
    tx = await _get_transaction(db, tx_id, TYPE_WITHDRAWAL)
    await _review(db, tx, STATUS_APPROVED, admin_id, notes)
    await create_notification(
        db, tx.user_id, "withdrawal", "Withdrawal Approved",
        f"{tx.usdt_amount} USDT is on its way to your wallet",
        action_url="/wallet",
        metadata={"transaction_id": tx.id},
        redis=redis,
    )
    logger.info("Admin %d approved withdrawal %d", admin_id, tx.id)
    return tx


async def reject_withdrawal(
    db: AsyncSession,
    redis: Any | None,
    tx_id: int,
    admin_id: int,
    notes: str | None = None,
) -> Transaction:
    """Reject a pending withdrawal and refund the reserved amount to its source."""
    tx = await _get_transaction(db, tx_id, TYPE_WITHDRAWAL)
    await _review(db, tx, STATUS_REJECTED, admin_id, notes)

    await credit(db, tx.user_id, Account(tx.source), Decimal(tx.amount), earning=False)
    await create_notification(
        db, tx.user_id, "withdrawal", "Withdrawal Rejected",
        notes or f"{tx.amount} XNRT has been returned to your {tx.source} balance",
        action_url="/wallet",
        metadata={"transaction_id": tx.id},
        redis=redis,
    )
    logger.info("Admin %d rejected withdrawal %d", admin_id, tx.id)
    return tx


async def get_transactions(
    db: AsyncSession,
    user_id: int | None = None,
    tx_type: str | None = None,
    status: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Transaction], int]:
    """Paginated transactions, optionally filtered by user, type and status."""
    criteria = []
    if user_id is not None:
        criteria.append(Transaction.user_id == user_id)
    if tx_type is not None:
        criteria.append(Transaction.type == tx_type)
    if status is not None:
        criteria.append(Transaction.status == status)

    total_result = await db.execute(select(func.count()).select_from(Transaction).where(*criteria))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Transaction)
        .where(*criteria)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
