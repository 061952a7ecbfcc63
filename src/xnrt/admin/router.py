"""Admin endpoints: platform stats, deposit and withdrawal review, staking batch settlement."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.admin.schemas import PlatformStatsResponse
from xnrt.admin.service import get_platform_stats
from xnrt.auth.dependencies import require_admin
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.redis_client import get_redis
from xnrt.staking.schemas import ProcessRewardsResponse
from xnrt.staking.service import process_staking_rewards
from xnrt.wallet.schemas import ReviewRequest, TransactionListResponse, TransactionResponse
from xnrt.wallet.service import (
    STATUS_PENDING,
    TYPE_DEPOSIT,
    TYPE_WITHDRAWAL,
    approve_deposit,
    approve_withdrawal,
    get_transactions,
    reject_deposit,
    reject_withdrawal,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


async def _pending(db: AsyncSession, tx_type: str, page: int, per_page: int) -> TransactionListResponse:
    txs, total = await get_transactions(db, tx_type=tx_type, status=STATUS_PENDING, page=page, per_page=per_page)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in txs],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/stats", response_model=PlatformStatsResponse)
async def platform_stats(
    _admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> PlatformStatsResponse:
    """Overview counters for the admin dashboard."""
    return PlatformStatsResponse(**await get_platform_stats(db))


@router.get("/deposits/pending", response_model=TransactionListResponse)
async def pending_deposits(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionListResponse:
    return await _pending(db, TYPE_DEPOSIT, page, per_page)


@router.get("/withdrawals/pending", response_model=TransactionListResponse)
async def pending_withdrawals(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    _admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionListResponse:
    return await _pending(db, TYPE_WITHDRAWAL, page, per_page)


@router.post("/deposits/{tx_id}/approve", response_model=TransactionResponse)
async def approve_deposit_endpoint(
    tx_id: int,
    body: ReviewRequest | None = None,
    admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TransactionResponse:
    """Approve a deposit and credit the user."""
    tx = await approve_deposit(db, redis, tx_id, admin.id, body.notes if body else None)
    await db.commit()
    logger.info("deposit_approved", tx_id=tx_id, admin_id=admin.id)
    return TransactionResponse.model_validate(tx)


@router.post("/deposits/{tx_id}/reject", response_model=TransactionResponse)
async def reject_deposit_endpoint(
    tx_id: int,
    body: ReviewRequest | None = None,
    admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TransactionResponse:
    tx = await reject_deposit(db, redis, tx_id, admin.id, body.notes if body else None)
    await db.commit()
    logger.info("deposit_rejected", tx_id=tx_id, admin_id=admin.id)
    return TransactionResponse.model_validate(tx)


@router.post("/withdrawals/{tx_id}/approve", response_model=TransactionResponse)
async def approve_withdrawal_endpoint(
    tx_id: int,
    body: ReviewRequest | None = None,
    admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TransactionResponse:
    tx = await approve_withdrawal(db, redis, tx_id, admin.id, body.notes if body else None)
    await db.commit()
    logger.info("withdrawal_approved", tx_id=tx_id, admin_id=admin.id)
    return TransactionResponse.model_validate(tx)


@router.post("/withdrawals/{tx_id}/reject", response_model=TransactionResponse)
async def reject_withdrawal_endpoint(
    tx_id: int,
    body: ReviewRequest | None = None,
    admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> TransactionResponse:
    """Reject a withdrawal and refund the reserved amount."""
    tx = await reject_withdrawal(db, redis, tx_id, admin.id, body.notes if body else None)
    await db.commit()
    logger.info("withdrawal_rejected", tx_id=tx_id, admin_id=admin.id)
    return TransactionResponse.model_validate(tx)


@router.post("/stakes/process-rewards", response_model=ProcessRewardsResponse)
async def process_rewards(
    admin: User = Depends(require_admin),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> ProcessRewardsResponse:
    """Settle every active stake now."""
    result = await process_staking_rewards(db, redis)
    await db.commit()
    logger.info("staking_rewards_processed", admin_id=admin.id, **{k: str(v) for k, v in result.items()})
    return ProcessRewardsResponse(**result)
