"""
Payment database model
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from storefront.db.database import Base
from storefront.models.order import PaymentMethod, PaymentStatus, _enum_column


class Payment(Base):
    """Payment record, one per order"""
    __tablename__ = "payments"
    
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True, index=True)
    order_number = Column(String(32), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(_enum_column(PaymentMethod, "payment_method"), nullable=False, index=True)
    payment_status = Column(
        _enum_column(PaymentStatus, "payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )
    
    transaction_id = Column(String(255), nullable=True, index=True)
    payment_gateway = Column(String(100), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    failure_reason = Column(String(500), nullable=True)
    
    refund_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refund_date = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(String(500), nullable=True)
    
    # Raw gateway response payload
    payment_details = Column(JSON, nullable=True)
    notes = Column(String(500), nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    order = relationship("Order", back_populates="payment")
    
    def __repr__(self):
        return f"<Payment(id={self.id}, order={self.order_number}, status={self.payment_status})>"
