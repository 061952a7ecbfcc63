"""Notification and activity feed endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from xnrt.auth.dependencies import get_current_user
from xnrt.database import get_session
from xnrt.db.models import User
from xnrt.social.activity_service import get_activity_feed
from xnrt.social.notification_service import get_notifications, get_unread_count, mark_as_read
from xnrt.social.schemas import (
    ActivityListResponse,
    ActivityResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """List user's notifications (paginated)."""
    notifications, total = await get_notifications(db, user.id, page, per_page)
    return NotificationListResponse(
        notifications=[
            NotificationResponse(
                id=n.id,
                type=n.type,
                title=n.title,
                message=n.message,
                action_url=n.action_url,
                read=n.read,
                metadata=n.notification_metadata or {},
                timestamp=n.created_at,
            )
            for n in notifications
        ],
        total=total,
        unread=await get_unread_count(db, user.id),
        page=page,
        per_page=per_page,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_notification_count(
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """Unread badge count without loading the list."""
    return UnreadCountResponse(count=await get_unread_count(db, user.id))


@router.patch("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    notification_id: int,
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """Mark a notification as read."""
    found = await mark_as_read(db, user.id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"detail": "Notification marked as read"}


@router.get("/activity", response_model=ActivityListResponse)
async def activity_feed(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
):
    """Personal activity feed."""
    activities, total = await get_activity_feed(db, user.id, page, per_page)
    return ActivityListResponse(
        activities=[
            ActivityResponse(
                id=a.id,
                type=a.type,
                description=a.description,
                metadata=a.activity_metadata or {},
                timestamp=a.created_at,
            )
            for a in activities
        ],
        total=total,
        page=page,
        per_page=per_page,
    )
