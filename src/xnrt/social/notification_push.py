"""Push formatted notifications over Redis pub/sub for per-user delivery."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from xnrt.db.models import Notification

logger = logging.getLogger(__name__)


def notification_payload(notification: Notification) -> dict[str, Any]:
    """Wire format published on ``ws:user:{user_id}``."""
    return {
        "event": "notification",
        "data": {
            "id": str(notification.id),
            "type": notification.type,
            "title": notification.title,
            "message": notification.message,
            "timestamp": (
                notification.created_at.isoformat()
                if notification.created_at
                else None
            ),
            "read": False,
            "actionUrl": notification.action_url,
            "metadata": notification.notification_metadata,
        },
    }


async def push_notification_to_user(redis: Any | None, notification: Notification) -> None:
    """Publish a notification to ws:user:{user_id}.

    The notification must already be flushed (have an ``id``). Publishing
    is best effort: failures are logged and never raised.
    """
    if redis is None:
        return

    try:
        await redis.publish(
            f"ws:user:{notification.user_id}",
            json.dumps(notification_payload(notification), default=str),
        )
    except Exception:
        logger.warning(
            "Failed to push notification via ws:user:%s",
            notification.user_id,
            exc_info=True,
        )
