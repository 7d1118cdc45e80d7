"""Tests for the pricing aggregator."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.errors import InsufficientStock, ItemNotFound
from storefront.services.pricing import CheckoutLine, PricingAggregator

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def item(price, stock=10, discount=0, start=None, end=None, title="Item"):
    return SimpleNamespace(
        title=title,
        price=Decimal(price),
        stock=stock,
        discount=Decimal(str(discount)),
        discount_start=start,
        discount_end=end,
    )


def line(item_id, item_obj, quantity):
    return CheckoutLine(item_id=item_id, item=item_obj, quantity=quantity)


@pytest.fixture
def pricing():
    return PricingAggregator()


def test_undiscounted_order_above_threshold_ships_free(pricing):
    summary = pricing.price([line(1, item("300", stock=5), 2)], NOW)

    assert summary.subtotal == Decimal("600.00")
    assert summary.total_discount == Decimal("0.00")
    assert summary.shipping_charges == Decimal("0.00")
    assert summary.total_amount == Decimal("600.00")


def test_discounted_order_below_threshold_pays_shipping(pricing):
    window = (NOW - timedelta(days=1), NOW + timedelta(days=1))
    summary = pricing.price([line(1, item("100", discount=50, start=window[0], end=window[1]), 1)], NOW)

    assert summary.lines[0].discounted_price == Decimal("50")
    assert summary.subtotal == Decimal("50.00")
    assert summary.total_discount == Decimal("50.00")
    assert summary.shipping_charges == Decimal("50.00")
    assert summary.total_amount == Decimal("100.00")


def test_exact_threshold_ships_free(pricing):
    summary = pricing.price([line(1, item("250"), 2)], NOW)
    assert summary.subtotal == Decimal("500.00")
    assert summary.shipping_charges == Decimal("0.00")


def test_line_results_keep_cart_order(pricing):
    summary = pricing.price(
        [line(7, item("20", title="Card"), 3), line(3, item("200", discount=10, title="Mug"), 1)],
        NOW,
    )

    assert [p.line.item_id for p in summary.lines] == [7, 3]
    assert summary.lines[0].line_price == Decimal("60")
    assert summary.lines[1].line_price == Decimal("180")
    assert summary.lines[1].line_discount == Decimal("20")
    assert summary.subtotal == Decimal("240.00")
    assert summary.total_discount == Decimal("20.00")


def test_total_is_subtotal_plus_shipping_after_rounding(pricing):
    summary = pricing.price([line(1, item("0.99", discount=15), 3), line(2, item("10", discount=33), 7)], NOW)
    assert summary.total_amount == summary.subtotal + summary.shipping_charges
    assert summary.subtotal == Decimal("49.42")


def test_line_totals_add_up_when_each_line_rounds_half_up(pricing):
    summary = pricing.price([line(1, item("0.99", discount=50), 1), line(2, item("0.99", discount=50), 1)], NOW)

    assert [p.discounted_price for p in summary.lines] == [Decimal("0.50"), Decimal("0.50")]
    assert summary.subtotal == sum(p.line_price for p in summary.lines) == Decimal("1.00")
    assert summary.total_discount == sum(p.line_discount for p in summary.lines) == Decimal("0.98")
    assert summary.subtotal + summary.total_discount == Decimal("1.98")


def test_configurable_shipping_rule():
    pricing = PricingAggregator(free_shipping_threshold=Decimal("1000"), shipping_charge=Decimal("99"))
    summary = pricing.price([line(1, item("600"), 1)], NOW)
    assert summary.shipping_charges == Decimal("99.00")
    assert summary.total_amount == Decimal("699.00")


def test_missing_item_fails(pricing):
    with pytest.raises(ItemNotFound):
        pricing.price([line(1, item("10"), 1), line(2, None, 1)], NOW)


def test_insufficient_stock_reports_available(pricing):
    with pytest.raises(InsufficientStock) as exc_info:
        pricing.price([line(1, item("10", stock=2, title="Candle"), 3)], NOW)

    assert exc_info.value.details == {
        "item_id": 1,
        "title": "Candle",
        "available": 2,
        "requested": 3,
    }


def test_stock_check_sums_lines_for_same_item(pricing):
    shared = item("10", stock=3)
    with pytest.raises(InsufficientStock) as exc_info:
        pricing.price([line(1, shared, 2), line(1, shared, 2)], NOW)
    assert exc_info.value.details["requested"] == 4
