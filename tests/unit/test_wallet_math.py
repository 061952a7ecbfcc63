"""Withdrawal fee and conversion math."""

from decimal import Decimal

from xnrt.wallet.service import TX_HASH_RE, withdrawal_breakdown


class TestWithdrawalBreakdown:
    def test_two_percent_fee(self):
        result = withdrawal_breakdown(Decimal("10000"))
        assert result["fee"] == Decimal("200")
        assert result["net_amount"] == Decimal("9800")
        assert result["usdt_amount"] == Decimal("98")

    def test_small_amount(self):
        result = withdrawal_breakdown(Decimal("50"))
        assert result["fee"] == Decimal("1")
        assert result["usdt_amount"] == Decimal("0.49")


class TestTransactionHash:
    def test_valid_hash(self):
        assert TX_HASH_RE.match("0x" + "ab" * 32)

    def test_rejects_short_hash(self):
        assert not TX_HASH_RE.match("0x" + "ab" * 31)

    def test_rejects_missing_prefix(self):
        assert not TX_HASH_RE.match("ab" * 33)
