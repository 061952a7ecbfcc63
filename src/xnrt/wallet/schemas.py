"""Pydantic schemas for wallet endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from xnrt.ledger.service import Account


class DepositRequest(BaseModel):
    usdt_amount: Decimal = Field(..., gt=0)
    transaction_hash: str = Field(..., min_length=66, max_length=66)


class WithdrawalRequest(BaseModel):
    source: Account = Account.MAIN
    amount: Decimal = Field(..., gt=0)
    wallet_address: str = Field(..., min_length=1, max_length=128)


class ReviewRequest(BaseModel):
    notes: str | None = Field(None, max_length=1000)


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    amount: Decimal
    usdt_amount: Decimal | None = None
    fee: Decimal | None = None
    net_amount: Decimal | None = None
    source: str | None = None
    wallet_address: str | None = None
    transaction_hash: str | None = None
    status: str
    admin_notes: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    page: int
    per_page: int
