"""
Storage access for carts, items, orders and payments
"""
from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session, selectinload
from typing import Dict, Iterable, List, Optional, Sequence

from storefront.models.catalog import Cart, CartLine, Item
from storefront.models.order import Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.payment import Payment


class CartRepository:
    """Cart lookup and removal"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_user(self, user_id: str) -> Optional[Cart]:
        stmt = (
            select(Cart)
            .options(selectinload(Cart.lines))
            .where(Cart.user_id == user_id)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def delete_if_current(self, cart_id: int, version: int, line_ids: Sequence[int]) -> bool:
        """
        Delete the cart only if it is still the version that was read and
        holds exactly the lines that were read. Returns False when another
        request changed or removed it; the caller rolls back.
        """
        line_ids = list(line_ids)
        removed = self.db.execute(
            delete(CartLine)
            .where(CartLine.cart_id == cart_id, CartLine.id.in_(line_ids))
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount != len(line_ids):
            return False

        remaining = self.db.execute(
            select(func.count()).select_from(CartLine).where(CartLine.cart_id == cart_id)
        ).scalar_one()
        if remaining:
            return False

        result = self.db.execute(
            delete(Cart)
            .where(Cart.id == cart_id, Cart.version == version)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class ItemRepository:
    """Item lookup and atomic stock decrement"""

    def __init__(self, db: Session):
        self.db = db

    def find_by_ids(self, ids: Iterable[int]) -> Dict[int, Item]:
        ids = set(ids)
        if not ids:
            return {}
        items = self.db.execute(select(Item).where(Item.id.in_(ids))).scalars().all()
        return {item.id: item for item in items}

    def decrement_stock(self, item_id: int, quantity: int) -> bool:
        """Decrement stock only if enough remains; False otherwise"""
        result = self.db.execute(
            update(Item)
            .where(Item.id == item_id, Item.stock >= quantity)
            .values(stock=Item.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def current_stock(self, item_id: int) -> Optional[int]:
        return self.db.execute(select(Item.stock).where(Item.id == item_id)).scalar_one_or_none()


class OrderRepository:
    """Order persistence"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()
        return order

    def get(self, order_id: int) -> Optional[Order]:
        stmt = select(Order).options(selectinload(Order.lines)).where(Order.id == order_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_checkout_key(self, user_id: str, checkout_key: str) -> Optional[Order]:
        stmt = select(Order).where(Order.user_id == user_id, Order.checkout_key == checkout_key)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_user(self, user_id: str, limit: int = 50) -> List[Order]:
        stmt = (
            select(Order)
            .options(selectinload(Order.lines))
            .where(Order.user_id == user_id)
            .order_by(Order.placed_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def list_all(self, status: Optional[OrderStatus] = None, limit: int = 100) -> List[Order]:
        stmt = select(Order).options(selectinload(Order.lines))
        if status:
            stmt = stmt.where(Order.order_status == status)
        stmt = stmt.order_by(Order.placed_at.desc(), Order.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars())


class PaymentRepository:
    """Payment persistence"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get(self, payment_id: int) -> Optional[Payment]:
        return self.db.get(Payment, payment_id)

    def get_by_order(self, order_id: int) -> Optional[Payment]:
        return self.db.execute(
            select(Payment).where(Payment.order_id == order_id)
        ).scalar_one_or_none()

    def list_by_user(self, user_id: str, limit: int = 100) -> List[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def list_all(
        self,
        status: Optional[PaymentStatus] = None,
        method: Optional[PaymentMethod] = None,
        limit: int = 100
    ) -> List[Payment]:
        stmt = select(Payment)
        if status:
            stmt = stmt.where(Payment.payment_status == status)
        if method:
            stmt = stmt.where(Payment.payment_method == method)
        stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars())
