"""Task and achievement endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User, UserAchievement, UserTask
from xnrt.progress.evaluator import claim_achievement, get_user_achievements, get_user_tasks
from xnrt.progress.schemas import AchievementResponse, ClaimResponse, TaskResponse

router = APIRouter(prefix="/api/v1", tags=["Progress"])


def _task_response(row: UserTask) -> TaskResponse:
    return TaskResponse(
        id=row.task.id,
        title=row.task.title,
        description=row.task.description,
        category=row.task.category,
        xp_reward=row.task.xp_reward,
        xnrt_reward=row.task.xnrt_reward,
        progress=row.progress,
        max_progress=row.max_progress,
        completed=row.completed,
        completed_at=row.completed_at,
    )


def _achievement_response(row: UserAchievement) -> AchievementResponse:
    a = row.achievement
    return AchievementResponse(
        id=a.id,
        title=a.title,
        description=a.description,
        icon=a.icon,
        category=a.category,
        requirement=a.requirement,
        xp_reward=a.xp_reward,
        unlocked=row.unlocked,
        unlocked_at=row.unlocked_at,
        claimed=row.claimed,
        claimed_at=row.claimed_at,
    )


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[TaskResponse]:
    """Active tasks with the user's progress."""
    rows = await get_user_tasks(db, user.id)
    await db.commit()
    return [_task_response(r) for r in rows]


@router.get("/achievements", response_model=list[AchievementResponse])
async def list_achievements(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[AchievementResponse]:
    """All achievements with the user's unlock state."""
    rows = await get_user_achievements(db, user.id)
    await db.commit()
    return [_achievement_response(r) for r in rows]


@router.post("/achievements/{achievement_id}/claim", response_model=ClaimResponse)
async def claim(
    achievement_id: int,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ClaimResponse:
    """Claim an unlocked achievement."""
    row = await claim_achievement(db, user.id, achievement_id)
    await db.commit()
    return ClaimResponse(achievement_id=achievement_id, claimed=row.claimed, claimed_at=row.claimed_at)
