"""Deposit and withdrawal endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.wallet.schemas import (
    DepositRequest,
    TransactionListResponse,
    TransactionResponse,
    WithdrawalRequest,
)
from xnrt.wallet.service import create_deposit, create_withdrawal, get_transactions

router = APIRouter(prefix="/api/v1/transactions", tags=["Wallet"])


@router.post("/deposit", response_model=TransactionResponse, status_code=201)
async def submit_deposit(
    body: DepositRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionResponse:
    """Submit a USDT deposit for admin verification."""
    tx = await create_deposit(db, user.id, body.usdt_amount, body.transaction_hash)
    await db.commit()
    return TransactionResponse.model_validate(tx)


@router.post("/withdrawal", response_model=TransactionResponse, status_code=201)
async def request_withdrawal(
    body: WithdrawalRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionResponse:
    """Request a withdrawal; the amount is reserved until review."""
    tx = await create_withdrawal(db, user.id, body.source, body.amount, body.wallet_address)
    await db.commit()
    return TransactionResponse.model_validate(tx)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    type: Literal["deposit", "withdrawal"] | None = Query(None),  # noqa: A002
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionListResponse:
    """The user's deposits and withdrawals."""
    txs, total = await get_transactions(db, user_id=user.id, tx_type=type, page=page, per_page=per_page)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in txs],
        total=total,
        page=page,
        per_page=per_page,
    )
