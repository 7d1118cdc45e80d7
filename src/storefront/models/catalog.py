"""
Catalog and cart tables

Items and carts are owned by the catalog and cart services; checkout only
reads them, decrements item stock and deletes a consumed cart.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, Text, ForeignKey, CheckConstraint, event
)
from sqlalchemy.sql import func
from sqlalchemy.orm import Session, relationship
from storefront.db.database import Base


class Item(Base):
    """Catalog item"""
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_items_stock_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_items_discount_range"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    
    # Percentage off; window bounds are optional
    discount = Column(Numeric(5, 2), nullable=False, default=0)
    discount_start = Column(DateTime(timezone=True), nullable=True)
    discount_end = Column(DateTime(timezone=True), nullable=True)
    
    image = Column(Text, nullable=True)
    image_type = Column(String(50), default="image/jpeg")
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    def __repr__(self):
        return f"<Item(id={self.id}, title={self.title}, stock={self.stock})>"


class Cart(Base):
    """Shopping cart, one per user"""
    __tablename__ = "carts"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)
    version = Column(Integer, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    lines = relationship(
        "CartLine",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartLine.id"
    )
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<Cart(id={self.id}, user_id={self.user_id}, lines={len(self.lines)})>"


class CartLine(Base):
    """Cart line entry"""
    __tablename__ = "cart_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_lines_quantity_positive"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    custom_message = Column(String(500), nullable=True)
    added_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    cart = relationship("Cart", back_populates="lines")
    
    def __repr__(self):
        return f"<CartLine(id={self.id}, item_id={self.item_id}, qty={self.quantity})>"


def _parent_cart(session, line):
    if line.cart is not None:
        return line.cart
    if line.cart_id is None:
        return None
    return session.get(Cart, line.cart_id)


@event.listens_for(Session, "before_flush")
def _bump_cart_version_on_line_change(session, flush_context, instances):
    """Adding, changing or removing a cart line is a new version of its cart"""
    carts = []
    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        if isinstance(obj, CartLine):
            if obj in session.dirty and not session.is_modified(obj):
                continue
            cart = _parent_cart(session, obj)
        elif isinstance(obj, Cart) and obj in session.dirty and session.is_modified(obj):
            cart = obj
        else:
            continue
        if cart is None or cart in session.new or cart in session.deleted:
            continue
        if not any(cart is seen for seen in carts):
            carts.append(cart)

    now = datetime.now(timezone.utc)
    for cart in carts:
        cart.updated_at = now
