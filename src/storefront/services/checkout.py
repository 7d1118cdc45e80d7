"""
Checkout: turns a user's cart into an order, a payment record and stock
decrements
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
import logging
import threading

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session
from opentelemetry import trace

from storefront.config import settings as default_settings
from storefront.db.database import StorageHealth
from storefront.errors import (
    CheckoutConflict,
    EmptyCart,
    InsufficientStock,
    ItemNotFound,
    ItemUnavailable,
    StorefrontError,
    Unavailable,
)
from storefront.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.payment import Payment
from storefront.services.order_assembler import OrderAssembler
from storefront.services.pricing import CheckoutLine, PricingAggregator
from storefront.services.repositories import (
    CartRepository,
    ItemRepository,
    OrderRepository,
    PaymentRepository,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class UserLockRegistry:
    """In-process mutual exclusion keyed by user id"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, list] = {}

    @contextmanager
    def hold(self, user_id: str):
        with self._guard:
            entry = self._locks.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[user_id]

    def __len__(self):
        return len(self._locks)


checkout_locks = UserLockRegistry()


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    payment: Payment
    replayed: bool = False


class CheckoutService:
    """
    Places orders from carts.

    Process:
    1. Load the user's cart
    2. Resolve every referenced item
    3. Price the lines (stock checked inline)
    4. Assemble order-line snapshots, validate address and payment method
    5. Persist the order
    6. Persist the payment
    7. Decrement stock for every line
    8. Delete the cart

    Steps 5-8 share one transaction: a rejected stock decrement or a cart
    consumed by a concurrent checkout rolls all of them back.
    """

    def __init__(
        self,
        db: Session,
        health: StorageHealth,
        settings=None,
        locks: Optional[UserLockRegistry] = None,
        pricing: Optional[PricingAggregator] = None,
        assembler: Optional[OrderAssembler] = None
    ):
        self.db = db
        self.health = health
        self.settings = settings or default_settings
        self.locks = locks or checkout_locks
        self.pricing = pricing or PricingAggregator(
            free_shipping_threshold=self.settings.free_shipping_threshold,
            shipping_charge=self.settings.shipping_charge
        )
        self.assembler = assembler or OrderAssembler()
        self.carts = CartRepository(db)
        self.items = ItemRepository(db)
        self.orders = OrderRepository(db)
        self.payments = PaymentRepository(db)

    def initial_payment_status(self, method: PaymentMethod) -> PaymentStatus:
        if method == PaymentMethod.COD or not self.settings.prepaid_marks_paid:
            return PaymentStatus.PENDING
        return PaymentStatus.PAID

    def place_order(
        self,
        user_id: str,
        shipping_address: Optional[Mapping[str, Any]],
        payment_method,
        notes: Optional[str] = None,
        checkout_key: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CheckoutResult:
        with tracer.start_as_current_span("checkout.place_order") as span:
            span.set_attribute("user.id", user_id)
            self.health.ensure_available()

            with self.locks.hold(user_id):
                try:
                    result = self._place_order(
                        user_id, shipping_address, payment_method, notes, checkout_key, now
                    )
                except StorefrontError as e:
                    self.db.rollback()
                    logger.warning(f"Checkout rejected for user {user_id}: {e.kind}: {e.message}")
                    span.set_attribute("checkout.rejected", e.kind)
                    raise
                except IntegrityError:
                    self.db.rollback()
                    if checkout_key:
                        replay = self._replay(user_id, checkout_key)
                        if replay:
                            return replay
                    logger.warning(f"Checkout for user {user_id} collided with a concurrent write")
                    raise CheckoutConflict(user_id)
                except (OperationalError, InterfaceError) as e:
                    self.db.rollback()
                    logger.error(f"Storage failure during checkout for user {user_id}: {e}")
                    raise Unavailable("Database not connected. Please try again later.") from e
                except Exception:
                    self.db.rollback()
                    raise

            span.set_attribute("order.number", result.order.order_number)
            span.set_attribute("order.total_amount", float(result.order.total_amount))
            return result

    def _replay(self, user_id: str, checkout_key: str) -> Optional[CheckoutResult]:
        order = self.orders.find_by_checkout_key(user_id, checkout_key)
        if order is None:
            return None
        logger.info(f"Checkout key {checkout_key} already used by order {order.order_number}")
        return CheckoutResult(order=order, payment=self.payments.get_by_order(order.id), replayed=True)

    def _place_order(self, user_id, shipping_address, payment_method, notes, checkout_key, now):
        now = now or datetime.now(timezone.utc)

        if checkout_key:
            replay = self._replay(user_id, checkout_key)
            if replay:
                return replay

        # Step 1: cart
        cart = self.carts.find_by_user(user_id)
        if cart is None or not cart.lines:
            raise EmptyCart(user_id)
        cart_id, cart_version = cart.id, cart.version
        cart_line_ids = [line.id for line in cart.lines]

        logger.info(f"Placing order for user {user_id} with {len(cart.lines)} cart lines")

        # Step 2: items
        items = self.items.find_by_ids(line.item_id for line in cart.lines)
        lines = []
        for cart_line in cart.lines:
            item = items.get(cart_line.item_id)
            if item is None:
                raise ItemNotFound(cart_line.item_id)
            if not item.is_active:
                raise ItemUnavailable(item.id, item.title)
            lines.append(CheckoutLine(
                item_id=cart_line.item_id,
                item=item,
                quantity=cart_line.quantity,
                custom_message=cart_line.custom_message or ""
            ))

        # Step 3: pricing and stock check
        pricing = self.pricing.price(lines, now)

        # Step 4: snapshot, address and payment method
        assembled = self.assembler.assemble(pricing, shipping_address, payment_method, now)
        payment_status = self.initial_payment_status(assembled.payment_method)

        # Step 5: order
        order = self.orders.add(Order(
            order_number=assembled.order_number,
            user_id=user_id,
            lines=assembled.lines,
            shipping_address=assembled.shipping_address,
            payment_method=assembled.payment_method,
            order_status=OrderStatus.PENDING,
            payment_status=payment_status,
            subtotal=pricing.subtotal,
            total_discount=pricing.total_discount,
            shipping_charges=pricing.shipping_charges,
            total_amount=pricing.total_amount,
            notes=notes or "",
            checkout_key=checkout_key,
            placed_at=now
        ))

        # Step 6: payment
        payment = self.payments.add(Payment(
            order_id=order.id,
            order_number=order.order_number,
            user_id=user_id,
            amount=pricing.total_amount,
            currency=self.settings.currency,
            payment_method=assembled.payment_method,
            payment_status=payment_status,
            payment_date=now if payment_status == PaymentStatus.PAID else None,
            refund_amount=0,
            notes=notes or ""
        ))

        # Step 7: stock
        for line in assembled.lines:
            if not self.items.decrement_stock(line.item_id, line.quantity):
                available = self.items.current_stock(line.item_id) or 0
                raise InsufficientStock(line.item_id, line.title, available, line.quantity)

        # Step 8: cart
        if not self.carts.delete_if_current(cart_id, cart_version, cart_line_ids):
            raise CheckoutConflict(user_id)

        self.db.commit()
        logger.info(
            f"Order {order.order_number} placed for user {user_id}: "
            f"total={pricing.total_amount} payment={payment_status.value}"
        )
        return CheckoutResult(order=order, payment=payment)
