"""Balance API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.ledger.schemas import BalanceResponse
from xnrt.ledger.service import get_balance

router = APIRouter(prefix="/api/v1", tags=["Balance"])


@router.get("/balance", response_model=BalanceResponse)
async def read_balance(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> BalanceResponse:
    """Current sub-balances and lifetime earnings."""
    balance = await get_balance(db, user.id)
    return BalanceResponse.model_validate(balance)
