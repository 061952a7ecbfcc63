"""Pydantic schemas for task and achievement endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class TaskResponse(BaseModel):
    id: int
    title: str
    description: str
    category: str
    xp_reward: int
    xnrt_reward: Decimal
    progress: int
    max_progress: int
    completed: bool
    completed_at: datetime | None = None


class AchievementResponse(BaseModel):
    id: int
    title: str
    description: str
    icon: str
    category: str
    requirement: int
    xp_reward: int
    unlocked: bool
    unlocked_at: datetime | None = None
    claimed: bool
    claimed_at: datetime | None = None


class ClaimResponse(BaseModel):
    achievement_id: int
    claimed: bool
    claimed_at: datetime | None = None
