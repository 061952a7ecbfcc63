"""Mining final reward formula."""

from decimal import Decimal

from xnrt.mining.service import compute_final_reward


class TestComputeFinalReward:
    def test_base_only(self):
        assert compute_final_reward(Decimal("10"), 0, 0, Decimal("2")) == Decimal("10")

    def test_percentage_boost(self):
        assert compute_final_reward(Decimal("10"), 50, 0, Decimal("2")) == Decimal("15")

    def test_ad_boosts_add_flat_increment(self):
        assert compute_final_reward(Decimal("10"), 0, 3, Decimal("2")) == Decimal("16")

    def test_boost_and_ads_combined(self):
        # 10 * 1.2 + 2 * 2.5
        assert compute_final_reward(Decimal("10"), 20, 2, Decimal("2.5")) == Decimal("17")
