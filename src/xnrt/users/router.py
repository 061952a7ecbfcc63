"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.auth.schemas import UserResponse
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.users.schemas import UserStatsResponse
from xnrt.users.service import get_user_stats

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def read_me(user: User = Depends(get_current_user)) -> UserResponse:  # noqa: B008
    """Authenticated user's profile."""
    return UserResponse.model_validate(user)


@router.get("/me/stats", response_model=UserStatsResponse)
async def read_my_stats(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> UserStatsResponse:
    """Dashboard summary for the authenticated user."""
    return UserStatsResponse(**await get_user_stats(db, user))
