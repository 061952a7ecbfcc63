"""Pydantic schemas for notification and activity endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    action_url: str | None = None
    read: bool
    metadata: dict[str, Any] = {}
    timestamp: datetime | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread: int
    page: int
    per_page: int


class ActivityResponse(BaseModel):
    id: int
    type: str
    description: str
    metadata: dict[str, Any] = {}
    timestamp: datetime | None = None


class ActivityListResponse(BaseModel):
    activities: list[ActivityResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    count: int
