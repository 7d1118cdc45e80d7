"""Tests for discount evaluation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from storefront.services.discount import effective_price, is_discount_active

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def item(price="100", discount=0, start=None, end=None):
    return SimpleNamespace(
        price=Decimal(price),
        discount=Decimal(str(discount)),
        discount_start=start,
        discount_end=end,
    )


class TestIsDiscountActive:
    def test_zero_discount_is_never_active(self):
        assert is_discount_active(item(discount=0), NOW) is False

    def test_positive_discount_without_window_is_always_active(self):
        assert is_discount_active(item(discount=10), NOW) is True
        assert is_discount_active(item(discount=10), NOW + timedelta(days=3650)) is True

    def test_half_open_window_counts_as_no_window(self):
        assert is_discount_active(item(discount=10, start=NOW + timedelta(days=1)), NOW) is True
        assert is_discount_active(item(discount=10, end=NOW - timedelta(days=1)), NOW) is True

    def test_window_bounds_are_inclusive(self):
        start = NOW - timedelta(hours=1)
        end = NOW + timedelta(hours=1)
        discounted = item(discount=20, start=start, end=end)

        assert is_discount_active(discounted, start) is True
        assert is_discount_active(discounted, end) is True
        assert is_discount_active(discounted, NOW) is True

    def test_outside_window(self):
        discounted = item(discount=20, start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
        assert is_discount_active(discounted, NOW) is False
        assert is_discount_active(discounted, NOW - timedelta(days=3)) is False

    def test_naive_window_is_treated_as_utc(self):
        start = datetime(2026, 10, 19, 11, 0)
        end = datetime(2026, 10, 19, 13, 0)
        assert is_discount_active(item(discount=5, start=start, end=end), NOW) is True


class TestEffectivePrice:
    def test_active_discount_applies_percentage(self):
        assert effective_price(item("100", discount=50), NOW) == Decimal("50")

    def test_inactive_discount_keeps_price(self):
        expired = item("100", discount=50, start=NOW - timedelta(days=2), end=NOW - timedelta(days=1))
        assert effective_price(expired, NOW) == Decimal("100")

    def test_no_rounding(self):
        assert effective_price(item("10", discount=33), NOW) == Decimal("6.7")
        assert effective_price(item("0.99", discount=15), NOW) == Decimal("0.8415")

    def test_never_above_original_price(self):
        for discount in (0, 1, 25, 99, 100):
            assert effective_price(item("249.99", discount=discount), NOW) <= Decimal("249.99")

    def test_full_discount_is_free(self):
        assert effective_price(item("80", discount=100), NOW) == Decimal("0")
