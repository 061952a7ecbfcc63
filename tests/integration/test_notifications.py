"""Integration tests for notifications and the activity feed."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_user
from xnrt.social.activity_service import get_activity_feed, record_activity
from xnrt.social.notification_service import (
    create_notification,
    get_notifications,
    get_unread_count,
    mark_as_read,
)


@pytest_asyncio.fixture
async def social_db(db_session: AsyncSession):
    user = await make_user(db_session, "social")
    other = await make_user(db_session, "other")
    await db_session.commit()
    return db_session, user, other


class TestNotifications:
    @pytest.mark.asyncio
    async def test_create_and_list(self, social_db):
        db, user, _ = social_db
        await create_notification(db, user.id, "system", "Hello", "Welcome aboard")
        await create_notification(db, user.id, "mining", "Mined", "You mined 10 XNRT")

        notifications, total = await get_notifications(db, user.id)
        assert total == 2
        assert await get_unread_count(db, user.id) == 2

    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, social_db):
        db, user, _ = social_db
        with pytest.raises(ValueError):
            await create_notification(db, user.id, "spam", "Buy", "now")

    @pytest.mark.asyncio
    async def test_mark_as_read_is_per_user(self, social_db):
        db, user, other = social_db
        notification = await create_notification(db, user.id, "system", "Hello", "Welcome")

        assert not await mark_as_read(db, other.id, notification.id)
        assert await mark_as_read(db, user.id, notification.id)
        assert await get_unread_count(db, user.id) == 0

    @pytest.mark.asyncio
    async def test_pushes_to_user_channel(self, social_db):
        db, user, _ = social_db
        redis = AsyncMock()
        await create_notification(db, user.id, "deposit", "Deposit", "Approved", redis=redis)

        redis.publish.assert_awaited_once()
        channel, payload = redis.publish.await_args.args
        assert channel == f"ws:user:{user.id}"
        assert json.loads(payload)["data"]["title"] == "Deposit"

    @pytest.mark.asyncio
    async def test_push_failure_keeps_notification(self, social_db):
        db, user, _ = social_db
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        await create_notification(db, user.id, "system", "Still saved", "yes", redis=redis)
        assert await get_unread_count(db, user.id) == 1


class TestActivityFeed:
    @pytest.mark.asyncio
    async def test_feed_is_personal(self, social_db):
        db, user, other = social_db
        await record_activity(db, user.id, "custom", "Did a thing", {"k": "v"})
        await record_activity(db, other.id, "custom", "Someone else")

        activities, _ = await get_activity_feed(db, user.id)
        assert [a.description for a in activities] == ["Did a thing"]
        assert activities[0].activity_metadata == {"k": "v"}
