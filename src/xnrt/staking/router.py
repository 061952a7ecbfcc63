"""Staking endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.redis_client import get_redis
from xnrt.staking.schemas import CreateStakeRequest, StakeResponse, StakingTierResponse
from xnrt.staking.service import create_stake, get_user_stakes, withdraw_stake
from xnrt.staking.tiers import STAKING_TIERS

router = APIRouter(prefix="/api/v1", tags=["Staking"])


@router.get("/staking/tiers", response_model=list[StakingTierResponse])
async def list_tiers() -> list[StakingTierResponse]:
    """Available staking tiers."""
    return [
        StakingTierResponse(
            name=t.name,
            display_name=t.display_name,
            duration_days=t.duration_days,
            daily_rate=t.daily_rate,
            total_return_percent=t.total_return_percent,
            min_amount=t.min_amount,
            max_amount=t.max_amount,
        )
        for t in STAKING_TIERS.values()
    ]


@router.get("/stakes", response_model=list[StakeResponse])
async def list_stakes(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> list[StakeResponse]:
    """The user's stakes, with accrued rewards realized."""
    stakes = await get_user_stakes(db, redis, user.id)
    await db.commit()
    return [StakeResponse.model_validate(s) for s in stakes]


@router.post("/stakes", response_model=StakeResponse, status_code=201)
async def open_stake(
    body: CreateStakeRequest,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> StakeResponse:
    """Stake from the main balance."""
    stake = await create_stake(db, redis, user.id, body.tier, body.amount)
    await db.commit()
    await db.refresh(stake)
    return StakeResponse.model_validate(stake)


@router.post("/stakes/{stake_id}/withdraw", response_model=StakeResponse)
async def withdraw(
    stake_id: int,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Any = Depends(get_redis),  # noqa: B008
) -> StakeResponse:
    """Withdraw a matured stake to the main balance."""
    stake = await withdraw_stake(db, redis, user.id, stake_id)
    await db.commit()
    return StakeResponse.model_validate(stake)
