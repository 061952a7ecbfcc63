"""Platform-wide aggregates for the admin overview."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Stake, Transaction, User
from xnrt.staking.service import STATUS_ACTIVE
from xnrt.wallet.service import STATUS_APPROVED, STATUS_PENDING, TYPE_DEPOSIT, TYPE_WITHDRAWAL


async def _scalar(db: AsyncSession, stmt: Any) -> Any:
    return (await db.execute(stmt)).scalar_one()


async def _approved_total(db: AsyncSession, tx_type: str, since: datetime | None = None) -> Decimal:
    stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
        Transaction.type == tx_type, Transaction.status == STATUS_APPROVED
    )
    if since is not None:
        stmt = stmt.where(Transaction.created_at >= since)
    return Decimal(await _scalar(db, stmt))


async def _pending_count(db: AsyncSession, tx_type: str) -> int:
    return await _scalar(
        db,
        select(func.count()).select_from(Transaction).where(
            Transaction.type == tx_type, Transaction.status == STATUS_PENDING
        ),
    )


async def get_platform_stats(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """User, deposit, withdrawal and staking totals; "today" is the current UTC day."""
    if now is None:
        now = datetime.now(timezone.utc)
    today = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

    return {
        "total_users": await _scalar(db, select(func.count()).select_from(User)),
        "today_new_users": await _scalar(
            db, select(func.count()).select_from(User).where(User.created_at >= today)
        ),
        "total_deposits": await _approved_total(db, TYPE_DEPOSIT),
        "total_withdrawals": await _approved_total(db, TYPE_WITHDRAWAL),
        "today_deposits": await _approved_total(db, TYPE_DEPOSIT, today),
        "today_withdrawals": await _approved_total(db, TYPE_WITHDRAWAL, today),
        "pending_deposits_count": await _pending_count(db, TYPE_DEPOSIT),
        "pending_withdrawals_count": await _pending_count(db, TYPE_WITHDRAWAL),
        "active_stakes_count": await _scalar(
            db, select(func.count()).select_from(Stake).where(Stake.status == STATUS_ACTIVE)
        ),
    }
