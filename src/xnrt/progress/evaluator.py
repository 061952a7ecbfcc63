"""Task and achievement progress evaluation.

Progress is recomputed from source-of-truth metrics, never incremented.
Completion and unlock flags flip through conditional UPDATEs
(``WHERE completed = false``) so only one caller ever pays out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.db.models import Achievement, Task, UserAchievement, UserTask
from xnrt.exceptions import NotFoundError, StateConflictError, ValidationError
from xnrt.gamification.xp_service import grant_xp
from xnrt.ledger.service import Account, credit
from xnrt.progress.events import ProgressEvent, ProgressMetric, metrics_for
from xnrt.progress.metrics import MetricSnapshot, compute_metric, load_snapshot
from xnrt.social.activity_service import record_activity
from xnrt.social.notification_service import create_notification

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    completed_task_ids: list[int] = field(default_factory=list)
    unlocked_achievement_ids: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.completed_task_ids or self.unlocked_achievement_ids)


class ProgressEvaluator:
    """Re-evaluates a user's tasks and achievements after a domain event."""

    def __init__(self, db: AsyncSession, redis: Any | None = None) -> None:
        self.db = db
        self.redis = redis

    async def ensure_rows(self, user_id: int) -> None:
        """Backfill UserTask / UserAchievement rows at progress 0."""
        now = datetime.now(timezone.utc)

        have_tasks = select(UserTask.task_id).where(UserTask.user_id == user_id)
        missing_tasks = await self.db.execute(
            select(Task.id, Task.max_progress).where(
                Task.is_active.is_(True), Task.id.not_in(have_tasks)
            )
        )
        for task_id, max_progress in missing_tasks.all():
            self.db.add(UserTask(
                user_id=user_id,
                task_id=task_id,
                progress=0,
                max_progress=max_progress,
                created_at=now,
            ))

        have_achievements = select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        missing_achievements = await self.db.execute(
            select(Achievement.id).where(Achievement.id.not_in(have_achievements))
        )
        for (achievement_id,) in missing_achievements.all():
            self.db.add(UserAchievement(user_id=user_id, achievement_id=achievement_id, created_at=now))

        await self.db.flush()

    async def evaluate(self, user_id: int, event: ProgressEvent) -> EvaluationResult:
        """Recompute progress for every tracker ``event`` can affect and pay newly crossed thresholds.

        Re-running on unchanged state is a no-op.
        """
        await self.ensure_rows(user_id)

        categories = [m.value for m in metrics_for(event)]
        snapshot = await load_snapshot(self.db, user_id)
        result = EvaluationResult()

        paid_xnrt = await self._evaluate_tasks(user_id, categories, snapshot, result)
        await self._evaluate_achievements(user_id, categories, snapshot, result)

        if paid_xnrt:
            # Task XNRT lands in total_earned, which can cross earnings thresholds.
            follow_up = await self.evaluate(user_id, ProgressEvent.EARNINGS_CREDITED)
            result.completed_task_ids += follow_up.completed_task_ids
            result.unlocked_achievement_ids += follow_up.unlocked_achievement_ids

        if result.changed:
            logger.info(
                "Progress for user %d after %s: tasks=%s achievements=%s",
                user_id, event.value, result.completed_task_ids, result.unlocked_achievement_ids,
            )
        return result

    async def _evaluate_tasks(
        self,
        user_id: int,
        categories: list[str],
        snapshot: MetricSnapshot,
        result: EvaluationResult,
    ) -> bool:
        rows = await self.db.execute(
            select(UserTask)
            .join(Task, Task.id == UserTask.task_id)
            .where(
                UserTask.user_id == user_id,
                UserTask.completed.is_(False),
                Task.is_active.is_(True),
                Task.category.in_(categories),
            )
            .order_by(UserTask.id)
            .execution_options(populate_existing=True)
        )
        paid_xnrt = False
        for user_task in rows.unique().scalars().all():
            # The catalog threshold wins over the copy taken when the row was created.
            target = user_task.task.max_progress
            if user_task.max_progress != target:
                await self.db.execute(
                    update(UserTask)
                    .where(UserTask.id == user_task.id)
                    .values(max_progress=target)
                    .execution_options(synchronize_session=False)
                )
            value = compute_metric(ProgressMetric(user_task.task.category), snapshot)
            progress = max(user_task.progress, min(value, target))
            if progress > user_task.progress:
                await self.db.execute(
                    update(UserTask)
                    .where(UserTask.id == user_task.id, UserTask.progress < progress)
                    .values(progress=progress)
                    .execution_options(synchronize_session=False)
                )
            if progress < target:
                continue
            if await self._complete_task(user_task):
                result.completed_task_ids.append(user_task.task_id)
                paid_xnrt = paid_xnrt or user_task.task.xnrt_reward > 0
        return paid_xnrt

    async def _complete_task(self, user_task: UserTask) -> bool:
        now = datetime.now(timezone.utc)
        flipped = await self.db.execute(
            update(UserTask)
            .where(UserTask.id == user_task.id, UserTask.completed.is_(False))
            .values(completed=True, completed_at=now, progress=user_task.task.max_progress)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            return False

        task = user_task.task
        user_id = user_task.user_id
        await grant_xp(
            self.db, self.redis, user_id, task.xp_reward, "task", str(task.id),
            f"Completed task: {task.title}",
            f"task:{user_id}:{task.id}",
        )
        reward = Decimal(task.xnrt_reward or 0)
        if reward > 0:
            await credit(self.db, user_id, Account.MAIN, reward)
        await record_activity(
            self.db, user_id, "task_completed", f"Completed task: {task.title}",
            {"task_id": task.id, "xp_reward": task.xp_reward, "xnrt_reward": str(reward)},
        )
        await create_notification(
            self.db, user_id, "task", "Task Completed!",
            f"You completed {task.title} and earned {task.xp_reward} XP",
            action_url="/tasks",
            metadata={"task_id": task.id},
            redis=self.redis,
        )
        if reward > 0:
            from xnrt.referrals.service import distribute_commissions

            await distribute_commissions(self.db, self.redis, user_id, reward, "task")
        return True

    async def _evaluate_achievements(
        self,
        user_id: int,
        categories: list[str],
        snapshot: MetricSnapshot,
        result: EvaluationResult,
    ) -> None:
        rows = await self.db.execute(
            select(UserAchievement)
            .join(Achievement, Achievement.id == UserAchievement.achievement_id)
            .where(
                UserAchievement.user_id == user_id,
                UserAchievement.unlocked.is_(False),
                Achievement.category.in_(categories),
            )
            .order_by(UserAchievement.id)
            .execution_options(populate_existing=True)
        )
        for user_achievement in rows.unique().scalars().all():
            achievement = user_achievement.achievement
            value = compute_metric(ProgressMetric(achievement.category), snapshot)
            if value < achievement.requirement:
                continue
            if await self._unlock_achievement(user_achievement):
                result.unlocked_achievement_ids.append(achievement.id)

    async def _unlock_achievement(self, user_achievement: UserAchievement) -> bool:
        now = datetime.now(timezone.utc)
        flipped = await self.db.execute(
            update(UserAchievement)
            .where(UserAchievement.id == user_achievement.id, UserAchievement.unlocked.is_(False))
            .values(unlocked=True, unlocked_at=now)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            return False

        achievement = user_achievement.achievement
        user_id = user_achievement.user_id
        await grant_xp(
            self.db, self.redis, user_id, achievement.xp_reward, "achievement", str(achievement.id),
            f"Unlocked achievement: {achievement.title}",
            f"achievement:{user_id}:{achievement.id}",
        )
        await record_activity(
            self.db, user_id, "achievement_unlocked", f"Unlocked achievement: {achievement.title}",
            {"achievement_id": achievement.id, "xp_reward": achievement.xp_reward},
        )
        await create_notification(
            self.db, user_id, "achievement", "Achievement Unlocked!",
            f"{achievement.title}: {achievement.description}",
            action_url="/achievements",
            metadata={"achievement_id": achievement.id},
            redis=self.redis,
        )
        return True


async def get_user_tasks(db: AsyncSession, user_id: int) -> list[UserTask]:
    """Active tasks with the user's progress, backfilling missing rows."""
    await ProgressEvaluator(db).ensure_rows(user_id)
    result = await db.execute(
        select(UserTask)
        .join(Task, Task.id == UserTask.task_id)
        .where(UserTask.user_id == user_id, Task.is_active.is_(True))
        .order_by(Task.id)
        .execution_options(populate_existing=True)
    )
    return list(result.unique().scalars().all())


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[UserAchievement]:
    """All achievements with the user's unlock state, backfilling missing rows."""
    await ProgressEvaluator(db).ensure_rows(user_id)
    result = await db.execute(
        select(UserAchievement)
        .join(Achievement, Achievement.id == UserAchievement.achievement_id)
        .where(UserAchievement.user_id == user_id)
        .order_by(Achievement.category, Achievement.requirement)
        .execution_options(populate_existing=True)
    )
    return list(result.unique().scalars().all())


async def claim_achievement(db: AsyncSession, user_id: int, achievement_id: int) -> UserAchievement:
    """Mark an unlocked achievement as claimed. XP was already granted at unlock."""
    achievement = await db.get(Achievement, achievement_id)
    if achievement is None:
        raise NotFoundError("Achievement not found")

    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id, UserAchievement.achievement_id == achievement_id)
        .execution_options(populate_existing=True)
    )
    user_achievement = result.unique().scalar_one_or_none()
    if user_achievement is None or not user_achievement.unlocked:
        raise ValidationError("Achievement not unlocked yet")

    now = datetime.now(timezone.utc)
    claimed = await db.execute(
        update(UserAchievement)
        .where(UserAchievement.id == user_achievement.id, UserAchievement.claimed.is_(False))
        .values(claimed=True, claimed_at=now)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        raise StateConflictError("Achievement already claimed")

    user_achievement.claimed = True
    user_achievement.claimed_at = now
    await db.flush()
    return user_achievement
