"""
Pydantic schemas for the checkout service
"""
from pydantic import BaseModel, Field, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Dict, List, Optional
from datetime import datetime
from decimal import Decimal

from storefront.models.order import OrderStatus, PaymentMethod, PaymentStatus

# Money is exact internally and a JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class ShippingAddress(CamelModel):
    """
    Shipping address. Fields are optional here so that missing ones are
    reported together by the order assembler.
    """
    full_name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=255)
    address_line1: Optional[str] = Field(None, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=20)


class PlaceOrderRequest(CamelModel):
    """Schema for placing an order from the caller's cart"""
    shipping_address: Optional[ShippingAddress] = None
    payment_method: Optional[str] = Field(None, description="cod, online, upi or card")
    notes: Optional[str] = Field(None, max_length=500)


class OrderSummary(CamelModel):
    id: int
    order_number: str
    total_amount: Money
    order_status: OrderStatus
    payment_status: PaymentStatus
    placed_at: datetime


class PaymentSummary(CamelModel):
    id: int
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    amount: Money


class PlaceOrderResponse(CamelModel):
    """Schema for the place-order response"""
    order: OrderSummary
    payment: PaymentSummary


class OrderLineResponse(CamelModel):
    item_id: int
    title: str
    price: Money
    discounted_price: Money
    quantity: int
    line_total: Money
    line_discount: Money
    custom_message: Optional[str] = None
    image: Optional[str] = None
    image_type: Optional[str] = None


class OrderResponse(CamelModel):
    """Schema for order response"""
    id: int
    order_number: str
    user_id: str
    lines: List[OrderLineResponse] = Field(alias="items")
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    subtotal: Money
    total_discount: Money
    shipping_charges: Money
    total_amount: Money
    notes: Optional[str] = None
    placed_at: datetime
    delivered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderListResponse(CamelModel):
    orders: List[OrderResponse]
    count: int


class OrderStatusUpdate(CamelModel):
    """Schema for updating order and/or payment status"""
    order_status: Optional[str] = None
    payment_status: Optional[str] = None


class OrderStatusResponse(CamelModel):
    id: int
    order_number: str
    order_status: OrderStatus
    payment_status: PaymentStatus
    delivered_at: Optional[datetime] = None


class PaymentResponse(CamelModel):
    """Schema for payment response"""
    id: int
    order_id: int
    order_number: str
    user_id: str
    amount: Money
    currency: str
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    transaction_id: Optional[str] = None
    payment_gateway: Optional[str] = None
    payment_date: Optional[datetime] = None
    failure_reason: Optional[str] = None
    refund_amount: Money = Decimal("0")
    refund_date: Optional[datetime] = None
    refund_reason: Optional[str] = None
    payment_details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentListResponse(CamelModel):
    payments: List[PaymentResponse]
    count: int


class PaymentStatusUpdate(CamelModel):
    """Schema for a payment status update (admin or gateway callback)"""
    payment_status: str
    transaction_id: Optional[str] = Field(None, max_length=255)
    payment_gateway: Optional[str] = Field(None, max_length=100)
    payment_date: Optional[datetime] = None
    failure_reason: Optional[str] = Field(None, max_length=500)
    payment_details: Optional[Dict[str, Any]] = None


class RefundRequest(CamelModel):
    refund_amount: Optional[Decimal] = Field(None, description="Defaults to the unrefunded balance")
    refund_reason: Optional[str] = Field(None, max_length=500)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    timestamp: datetime
