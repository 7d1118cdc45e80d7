"""
Order queries and order status management
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

from sqlalchemy.orm import Session
from opentelemetry import trace

from storefront.db.database import StorageHealth, transaction
from storefront.errors import InvalidState, InvalidStatus, OrderNotFound
from storefront.models.order import Order, OrderStatus
from storefront.services.payment_service import PaymentStatusCoordinator, parse_payment_status
from storefront.services.repositories import OrderRepository, PaymentRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ORDER_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


def parse_order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatus(value, [s.value for s in OrderStatus]) from None


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Forward along the fulfilment flow; cancel from any non-terminal state"""
    if current == new:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if new == OrderStatus.CANCELLED:
        return True
    return ORDER_FLOW.index(new) > ORDER_FLOW.index(current)


class OrderService:
    """Order service for queries and status changes"""

    def __init__(self, db: Session, health: StorageHealth):
        self.db = db
        self.health = health
        self.orders = OrderRepository(db)
        self.payments = PaymentRepository(db)

    def get_order(self, order_id: int) -> Order:
        with tracer.start_as_current_span("order_service.get_order") as span:
            span.set_attribute("order.id", order_id)
            order = self.orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return order

    def list_user_orders(self, user_id: str, limit: int = 50) -> List[Order]:
        with tracer.start_as_current_span("order_service.list_user_orders") as span:
            span.set_attribute("user.id", user_id)
            orders = self.orders.list_by_user(user_id, limit=limit)
            span.set_attribute("orders.returned", len(orders))
            return orders

    def list_orders(self, status: Optional[str] = None, limit: int = 100) -> List[Order]:
        with tracer.start_as_current_span("order_service.list_orders") as span:
            order_status = parse_order_status(status) if status else None
            if order_status:
                span.set_attribute("filter.status", order_status.value)
            orders = self.orders.list_all(status=order_status, limit=limit)
            span.set_attribute("orders.returned", len(orders))
            return orders

    def update_status(
        self,
        order_id: int,
        order_status: Optional[str] = None,
        payment_status: Optional[str] = None
    ) -> Order:
        """
        Update order status and/or payment status.

        A payment status goes through the payment coordinator so the
        payment record stays authoritative and the order mirrors it.
        """
        with tracer.start_as_current_span("order_service.update_status") as span:
            span.set_attribute("order.id", order_id)
            self.health.ensure_available()

            new_order_status = parse_order_status(order_status) if order_status else None
            new_payment_status = parse_payment_status(payment_status) if payment_status else None

            with transaction(self.db):
                order = self.get_order(order_id)
                old_status = order.order_status

                if new_order_status is not None:
                    if not can_transition(old_status, new_order_status):
                        raise InvalidState(
                            f"Cannot change order status from {old_status.value} to {new_order_status.value}",
                            old_status.value,
                            new_order_status.value
                        )
                    order.order_status = new_order_status
                    if new_order_status == OrderStatus.DELIVERED and order.delivered_at is None:
                        order.delivered_at = datetime.now(timezone.utc)
                    span.set_attribute("status.new", new_order_status.value)

                if new_payment_status is not None:
                    payment = self.payments.get_by_order(order.id)
                    if payment is not None:
                        coordinator = PaymentStatusCoordinator(self.db, self.health)
                        coordinator.transition(payment, new_payment_status)
                    else:
                        logger.warning(f"Order {order_id} has no payment record; updating mirror only")
                        order.payment_status = new_payment_status

            span.set_attribute("status.old", old_status.value)
            logger.info(
                f"Order {order_id} updated: order_status={order.order_status.value} "
                f"payment_status={order.payment_status.value}"
            )
            return order
