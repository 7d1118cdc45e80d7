"""
Payment status coordination

Payment owns payment status; the parent order's ``payment_status`` is a
mirror written in the same transaction as the payment.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.orm import Session
from opentelemetry import trace

from storefront.db.database import StorageHealth, transaction
from storefront.errors import (
    InvalidState,
    InvalidStatus,
    PaymentNotFound,
    RefundExceedsPayment,
    ValidationError,
)
from storefront.models.order import Order, PaymentMethod, PaymentStatus
from storefront.models.payment import Payment
from storefront.services.discount import as_decimal
from storefront.services.repositories import PaymentRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ALLOWED_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.CANCELLED: set(),
}


def parse_payment_status(value) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidStatus(value, [s.value for s in PaymentStatus]) from None


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(
            f"Invalid payment method '{value}'",
            {"value": value, "allowed": [m.value for m in PaymentMethod]}
        ) from None


class PaymentStatusCoordinator:
    """Payment status transitions and refunds"""

    def __init__(self, db: Session, health: StorageHealth):
        self.db = db
        self.health = health
        self.payments = PaymentRepository(db)

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.payments.get(payment_id)
        if payment is None:
            raise PaymentNotFound(payment_id)
        return payment

    def get_payment_for_order(self, order_id: int) -> Payment:
        payment = self.payments.get_by_order(order_id)
        if payment is None:
            raise PaymentNotFound(order_id=order_id)
        return payment

    def list_user_payments(self, user_id: str, limit: int = 100) -> List[Payment]:
        return self.payments.list_by_user(user_id, limit=limit)

    def list_payments(
        self,
        status: Optional[str] = None,
        method: Optional[str] = None,
        limit: int = 100
    ) -> List[Payment]:
        return self.payments.list_all(
            status=parse_payment_status(status) if status else None,
            method=parse_payment_method(method) if method else None,
            limit=limit
        )

    def transition(
        self,
        payment: Payment,
        new_status: PaymentStatus,
        payment_date: Optional[datetime] = None
    ) -> PaymentStatus:
        """
        Move a payment to ``new_status`` and mirror it onto the order.
        Does not commit; callers own the transaction.
        """
        current = payment.payment_status
        if new_status != current and new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidState(
                f"Cannot change payment status from {current.value} to {new_status.value}",
                current.value,
                new_status.value
            )

        if payment_date is not None:
            payment.payment_date = payment_date
        elif new_status == PaymentStatus.PAID and current != PaymentStatus.PAID:
            payment.payment_date = datetime.now(timezone.utc)

        payment.payment_status = new_status
        self._mirror(payment)
        return current

    def _mirror(self, payment: Payment):
        order = self.db.get(Order, payment.order_id)
        if order is None:
            logger.warning(f"Payment {payment.id} references missing order {payment.order_id}")
            return
        order.payment_status = payment.payment_status

    def update_status(
        self,
        payment_id: int,
        new_status,
        transaction_id: Optional[str] = None,
        gateway: Optional[str] = None,
        payment_date: Optional[datetime] = None,
        failure_reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Payment:
        """Update payment status and gateway fields"""
        with tracer.start_as_current_span("payment_service.update_status") as span:
            span.set_attribute("payment.id", payment_id)
            self.health.ensure_available()

            status = parse_payment_status(new_status)
            span.set_attribute("status.new", status.value)

            with transaction(self.db):
                payment = self.get_payment(payment_id)
                old_status = self.transition(payment, status, payment_date)

                if transaction_id:
                    payment.transaction_id = transaction_id
                if gateway:
                    payment.payment_gateway = gateway
                if failure_reason:
                    payment.failure_reason = failure_reason
                if details:
                    payment.payment_details = details

            span.set_attribute("status.old", old_status.value)
            logger.info(f"Payment {payment_id} status updated: {old_status.value} -> {status.value}")
            return payment

    def refund(
        self,
        payment_id: int,
        amount: Optional[Decimal] = None,
        reason: Optional[str] = None
    ) -> Payment:
        """
        Refund a paid payment, fully or in part.

        ``amount`` defaults to whatever has not been refunded yet. The status
        becomes ``refunded`` once the refunded total reaches the payment
        amount; partial refunds leave it ``paid``.
        """
        with tracer.start_as_current_span("payment_service.refund") as span:
            span.set_attribute("payment.id", payment_id)
            self.health.ensure_available()

            with transaction(self.db):
                payment = self.get_payment(payment_id)
                if payment.payment_status != PaymentStatus.PAID:
                    raise InvalidState(
                        "Only paid payments can be refunded",
                        payment.payment_status.value
                    )

                total = as_decimal(payment.amount)
                already = as_decimal(payment.refund_amount or 0)
                requested = as_decimal(amount) if amount is not None else total - already
                if requested <= 0:
                    raise ValidationError(
                        "Refund amount must be positive",
                        {"requested": str(requested)}
                    )
                if already + requested > total:
                    raise RefundExceedsPayment(total, total - already, requested)

                refunded = already + requested
                payment.refund_amount = refunded
                payment.refund_date = datetime.now(timezone.utc)
                payment.refund_reason = reason or ""
                if refunded == total:
                    self.transition(payment, PaymentStatus.REFUNDED)
                else:
                    self._mirror(payment)

            span.set_attribute("refund.amount", float(requested))
            logger.info(
                f"Refund of {requested} processed for payment {payment_id} "
                f"({refunded}/{total}, status={payment.payment_status.value})"
            )
            return payment

