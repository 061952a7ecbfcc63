"""Reward ledger: atomic credits, debits and transfers on user balances.

Every mutation is a single ``UPDATE ... SET col = col + :amount`` so
concurrent requests for the same user never lose an update. Debits carry a
``WHERE col >= :amount`` guard and the rowcount decides success.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Balance
from xnrt.exceptions import InsufficientBalanceError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class Account(str, Enum):
    """Balance sub-accounts."""

    MAIN = "main"
    STAKING = "staking"
    MINING = "mining"
    REFERRAL = "referral"


ACCOUNT_COLUMNS: dict[Account, str] = {
    Account.MAIN: "main_balance",
    Account.STAKING: "staking_balance",
    Account.MINING: "mining_balance",
    Account.REFERRAL: "referral_balance",
}


def _require_positive(amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be positive")


async def create_balance(db: AsyncSession, user_id: int) -> Balance:
    """Create the zeroed balance row for a newly registered user."""
    balance = Balance(user_id=user_id, updated_at=datetime.now(timezone.utc))
    db.add(balance)
    await db.flush()
    return balance


async def get_balance(db: AsyncSession, user_id: int) -> Balance:
    """Read the current balance row, bypassing stale identity-map state."""
    result = await db.execute(
        select(Balance)
        .where(Balance.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFoundError("Balance not found")
    return balance


async def credit(
    db: AsyncSession,
    user_id: int,
    account: Account,
    amount: Decimal,
    *,
    earning: bool = True,
) -> None:
    """Add ``amount`` to a sub-account.

    ``earning`` also bumps total_earned; refunds and principal returns
    pass ``earning=False``.
    """
    _require_positive(amount)
    column = getattr(Balance, ACCOUNT_COLUMNS[account])
    values = {
        ACCOUNT_COLUMNS[account]: column + amount,
        "updated_at": datetime.now(timezone.utc),
    }
    if earning:
        values["total_earned"] = Balance.total_earned + amount

    result = await db.execute(
        update(Balance)
        .where(Balance.user_id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Balance not found")
    logger.debug("Credited %s %s to user %d (earning=%s)", amount, account.value, user_id, earning)


async def debit(db: AsyncSession, user_id: int, account: Account, amount: Decimal) -> None:
    """Subtract ``amount`` from a sub-account; never goes below zero."""
    _require_positive(amount)
    column = getattr(Balance, ACCOUNT_COLUMNS[account])
    result = await db.execute(
        update(Balance)
        .where(Balance.user_id == user_id, column >= amount)
        .values(**{ACCOUNT_COLUMNS[account]: column - amount, "updated_at": datetime.now(timezone.utc)})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # NotFoundError for unknown users, otherwise the guard failed
        await get_balance(db, user_id)
        raise InsufficientBalanceError(f"Insufficient {account.value} balance")


async def transfer(
    db: AsyncSession,
    user_id: int,
    source: Account,
    target: Account,
    amount: Decimal,
) -> None:
    """Move ``amount`` between two sub-accounts of the same user in one statement."""
    _require_positive(amount)
    if source == target:
        raise ValidationError("Source and target accounts must differ")
    src = getattr(Balance, ACCOUNT_COLUMNS[source])
    dst = getattr(Balance, ACCOUNT_COLUMNS[target])
    result = await db.execute(
        update(Balance)
        .where(Balance.user_id == user_id, src >= amount)
        .values(
            **{
                ACCOUNT_COLUMNS[source]: src - amount,
                ACCOUNT_COLUMNS[target]: dst + amount,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await get_balance(db, user_id)
        raise InsufficientBalanceError(f"Insufficient {source.value} balance")
