"""Tests for payment status coordination and order status management."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import DownStorage
from storefront.errors import (
    InvalidState,
    InvalidStatus,
    OrderNotFound,
    PaymentNotFound,
    RefundExceedsPayment,
    Unavailable,
    ValidationError,
)
from storefront.models import Order, OrderStatus, PaymentStatus
from storefront.services.checkout import CheckoutService, UserLockRegistry
from storefront.services.order_service import OrderService, can_transition
from storefront.services.payment_service import PaymentStatusCoordinator


@pytest.fixture
def place(db, healthy, make_item, make_cart, address):
    """Place an order of a single 600.00 line."""
    checkout = CheckoutService(db, healthy, locks=UserLockRegistry())

    def _place(user_id="user-1", method="cod"):
        item = make_item(price="300", stock=10)
        make_cart(user_id, [(item, 2)])
        return checkout.place_order(user_id, address, method)

    return _place


@pytest.fixture
def coordinator(db, healthy):
    return PaymentStatusCoordinator(db, healthy)


@pytest.fixture
def orders(db, healthy):
    return OrderService(db, healthy)


def order_payment_status(db, order_id):
    db.expire_all()
    return db.get(Order, order_id).payment_status


class TestUpdateStatus:
    def test_cod_payment_collected(self, db, place, coordinator):
        result = place(method="cod")

        payment = coordinator.update_status(
            result.payment.id,
            "paid",
            transaction_id="TXN-1001",
            gateway="razorpay",
            details={"captured": True},
        )

        assert payment.payment_status == PaymentStatus.PAID
        assert payment.payment_date is not None
        assert payment.transaction_id == "TXN-1001"
        assert payment.payment_gateway == "razorpay"
        assert payment.payment_details == {"captured": True}
        assert order_payment_status(db, result.order.id) == PaymentStatus.PAID

    def test_explicit_payment_date_is_kept(self, place, coordinator):
        result = place(method="cod")
        paid_at = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)

        payment = coordinator.update_status(result.payment.id, "paid", payment_date=paid_at)

        assert payment.payment_date.replace(tzinfo=timezone.utc) == paid_at

    def test_failed_payment_records_reason(self, db, place, coordinator):
        result = place(method="cod")

        payment = coordinator.update_status(result.payment.id, "failed", failure_reason="Card declined")

        assert payment.payment_status == PaymentStatus.FAILED
        assert payment.failure_reason == "Card declined"
        assert order_payment_status(db, result.order.id) == PaymentStatus.FAILED

    def test_reasserting_status_attaches_details(self, place, coordinator):
        result = place(method="upi")

        payment = coordinator.update_status(result.payment.id, "paid", transaction_id="UPI-77")

        assert payment.payment_status == PaymentStatus.PAID
        assert payment.transaction_id == "UPI-77"

    def test_unknown_status(self, place, coordinator):
        result = place()
        with pytest.raises(InvalidStatus):
            coordinator.update_status(result.payment.id, "settled")

    def test_unknown_payment(self, engine, coordinator):
        with pytest.raises(PaymentNotFound):
            coordinator.update_status(404, "paid")

    def test_illegal_transition_is_rejected(self, db, place, coordinator):
        result = place(method="cod")
        coordinator.update_status(result.payment.id, "cancelled")

        with pytest.raises(InvalidState):
            coordinator.update_status(result.payment.id, "paid")
        assert order_payment_status(db, result.order.id) == PaymentStatus.CANCELLED

    def test_storage_unavailable(self, db, place):
        result = place()
        with pytest.raises(Unavailable):
            PaymentStatusCoordinator(db, DownStorage()).update_status(result.payment.id, "paid")


class TestRefund:
    def test_full_refund(self, db, place, coordinator):
        result = place(method="card")

        payment = coordinator.refund(result.payment.id, reason="Damaged in transit")

        assert payment.payment_status == PaymentStatus.REFUNDED
        assert payment.refund_amount == Decimal("600.00")
        assert payment.refund_reason == "Damaged in transit"
        assert payment.refund_date is not None
        assert order_payment_status(db, result.order.id) == PaymentStatus.REFUNDED

    def test_partial_refund_stays_paid(self, db, place, coordinator):
        result = place(method="card")

        payment = coordinator.refund(result.payment.id, amount=Decimal("150"))

        assert payment.payment_status == PaymentStatus.PAID
        assert payment.refund_amount == Decimal("150.00")
        assert order_payment_status(db, result.order.id) == PaymentStatus.PAID

    def test_partial_refunds_accumulate_to_full(self, place, coordinator):
        result = place(method="card")

        coordinator.refund(result.payment.id, amount=Decimal("200"))
        payment = coordinator.refund(result.payment.id, amount=Decimal("400"))

        assert payment.refund_amount == Decimal("600.00")
        assert payment.payment_status == PaymentStatus.REFUNDED

    def test_default_amount_is_remaining_balance(self, place, coordinator):
        result = place(method="card")

        coordinator.refund(result.payment.id, amount=Decimal("100"))
        payment = coordinator.refund(result.payment.id)

        assert payment.refund_amount == Decimal("600.00")
        assert payment.payment_status == PaymentStatus.REFUNDED

    def test_refund_exceeding_amount(self, place, coordinator):
        result = place(method="card")

        with pytest.raises(RefundExceedsPayment) as exc_info:
            coordinator.refund(result.payment.id, amount=Decimal("600.01"))

        assert exc_info.value.details["amount"] == "600.00"
        payment = coordinator.get_payment(result.payment.id)
        assert payment.refund_amount == Decimal("0")
        assert payment.payment_status == PaymentStatus.PAID

    def test_refund_requires_paid_status(self, place, coordinator):
        result = place(method="cod")

        with pytest.raises(InvalidState) as exc_info:
            coordinator.refund(result.payment.id)
        assert exc_info.value.details["current"] == "pending"

    def test_non_positive_amount(self, place, coordinator):
        result = place(method="card")
        with pytest.raises(ValidationError):
            coordinator.refund(result.payment.id, amount=Decimal("0"))

    def test_unknown_payment(self, engine, coordinator):
        with pytest.raises(PaymentNotFound):
            coordinator.refund(12345)


class TestOrderStatus:
    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED, True),
            (OrderStatus.PENDING, OrderStatus.SHIPPED, True),
            (OrderStatus.SHIPPED, OrderStatus.PROCESSING, False),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED, True),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
            (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
            (OrderStatus.CONFIRMED, OrderStatus.CONFIRMED, True),
        ],
    )
    def test_transitions(self, current, new, allowed):
        assert can_transition(current, new) is allowed

    def test_delivery_sets_delivered_at(self, place, orders):
        result = place()

        orders.update_status(result.order.id, order_status="confirmed")
        order = orders.update_status(result.order.id, order_status="delivered")

        assert order.order_status == OrderStatus.DELIVERED
        assert order.delivered_at is not None

    def test_terminal_order_cannot_move(self, place, orders):
        result = place()
        orders.update_status(result.order.id, order_status="cancelled")

        with pytest.raises(InvalidState):
            orders.update_status(result.order.id, order_status="processing")

    def test_payment_status_goes_through_payment(self, db, place, orders, coordinator):
        result = place(method="cod")

        order = orders.update_status(result.order.id, order_status="delivered", payment_status="paid")

        assert order.payment_status == PaymentStatus.PAID
        payment = coordinator.get_payment_for_order(result.order.id)
        assert payment.payment_status == PaymentStatus.PAID
        assert payment.payment_date is not None

    def test_invalid_payment_transition_rolls_back_order_change(self, db, place, orders):
        result = place(method="card")

        with pytest.raises(InvalidState):
            orders.update_status(result.order.id, order_status="confirmed", payment_status="pending")

        db.expire_all()
        assert db.get(Order, result.order.id).order_status == OrderStatus.PENDING

    def test_unknown_order(self, engine, orders):
        with pytest.raises(OrderNotFound):
            orders.update_status(999, order_status="confirmed")

    def test_order_snapshot_is_immutable(self, db, place):
        result = place()
        order = db.get(Order, result.order.id)
        order.total_amount = Decimal("1.00")

        with pytest.raises(ValueError):
            db.flush()
        db.rollback()
