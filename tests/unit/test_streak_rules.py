"""Check-in streak and reward rules."""

from datetime import date, datetime, timezone
from decimal import Decimal

from xnrt.gamification.streak_service import checkin_rewards, next_streak

TODAY = date(2026, 4, 10)


class TestNextStreak:
    def test_first_check_in(self):
        assert next_streak(None, 0, TODAY) == 1

    def test_consecutive_day_continues(self):
        yesterday = datetime(2026, 4, 9, 23, 59, tzinfo=timezone.utc)
        assert next_streak(yesterday, 4, TODAY) == 5

    def test_gap_resets(self):
        two_days_ago = datetime(2026, 4, 8, 12, 0, tzinfo=timezone.utc)
        assert next_streak(two_days_ago, 9, TODAY) == 1


class TestCheckinRewards:
    def test_scales_with_streak(self):
        assert checkin_rewards(1) == (Decimal("10"), 5)
        assert checkin_rewards(3) == (Decimal("30"), 15)

    def test_capped(self):
        assert checkin_rewards(10) == (Decimal("100"), 50)
        assert checkin_rewards(40) == (Decimal("100"), 50)
