"""
Order database models
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON, ForeignKey,
    UniqueConstraint, Enum as SQLEnum, event, inspect
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from storefront.db.database import Base
import enum


class OrderStatus(str, enum.Enum):
    """Order status enum"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Payment status enum, shared by payments and their order mirror"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods"""
    COD = "cod"
    ONLINE = "online"
    UPI = "upi"
    CARD = "card"


def _enum_column(enum_cls, name):
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True
    )


# Columns that may change once an order has been placed
MUTABLE_ORDER_FIELDS = frozenset({"order_status", "payment_status", "delivered_at", "updated_at"})


class Order(Base):
    """Order model"""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("user_id", "checkout_key", name="uq_orders_user_checkout_key"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(_enum_column(PaymentMethod, "payment_method"), nullable=False)
    order_status = Column(
        _enum_column(OrderStatus, "order_status"),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_status = Column(
        _enum_column(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False
    )
    
    subtotal = Column(Numeric(12, 2), nullable=False)
    total_discount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_charges = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False)
    
    notes = Column(String(500), nullable=True)
    checkout_key = Column(String(128), nullable=True)
    
    placed_at = Column(DateTime(timezone=True), nullable=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position"
    )
    payment = relationship("Payment", back_populates="order", uselist=False)
    
    def __repr__(self):
        return f"<Order(id={self.id}, number={self.order_number}, status={self.order_status})>"


class OrderLine(Base):
    """Order line snapshot, captured at placement time"""
    __tablename__ = "order_lines"
    
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    item_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    discounted_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    line_discount = Column(Numeric(12, 2), nullable=False, default=0)
    custom_message = Column(String(500), nullable=True)
    image = Column(Text, nullable=True)
    image_type = Column(String(50), nullable=True)
    
    order = relationship("Order", back_populates="lines")
    
    def __repr__(self):
        return f"<OrderLine(id={self.id}, item_id={self.item_id}, qty={self.quantity})>"


@event.listens_for(Order, "before_update")
def _reject_snapshot_changes(mapper, connection, target):
    """Placed orders only change status and delivery fields"""
    state = inspect(target)
    changed = [
        attr.key for attr in state.attrs
        if attr.key in mapper.columns.keys()
        and attr.key not in MUTABLE_ORDER_FIELDS
        and attr.history.has_changes()
    ]
    if changed:
        raise ValueError(f"Order {target.order_number} is immutable; cannot change {', '.join(changed)}")


@event.listens_for(OrderLine, "before_update")
def _reject_line_changes(mapper, connection, target):
    raise ValueError(f"Order line {target.id} is immutable")
