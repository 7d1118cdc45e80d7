"""
Order assembly: order numbers, shipping address and payment method checks,
and the immutable line snapshot stored with each order
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import secrets

from storefront.errors import InvalidPaymentMethod, InvalidShippingAddress
from storefront.models.order import OrderLine, PaymentMethod
from storefront.services.pricing import PricingSummary, to_money

REQUIRED_ADDRESS_FIELDS = (
    "full_name",
    "phone",
    "email",
    "address_line1",
    "city",
    "state",
    "pincode",
)
OPTIONAL_ADDRESS_FIELDS = ("address_line2",)


def generate_order_number(now: Optional[datetime] = None) -> str:
    """
    Human-readable order number: ``ORD`` + last 8 digits of epoch millis +
    6 random hex characters. The orders table enforces uniqueness.
    """
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))[-8:]
    return f"ORD{millis}{secrets.token_hex(3).upper()}"


def validate_shipping_address(address: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Return a normalised copy of the address or raise InvalidShippingAddress"""
    address = address or {}
    missing = []
    normalised = {}
    for name in REQUIRED_ADDRESS_FIELDS:
        value = address.get(name)
        if value is None or not str(value).strip():
            missing.append(name)
        else:
            normalised[name] = str(value).strip()
    if missing:
        raise InvalidShippingAddress(missing)

    for name in OPTIONAL_ADDRESS_FIELDS:
        value = address.get(name)
        if value is not None and str(value).strip():
            normalised[name] = str(value).strip()
    return normalised


def validate_payment_method(value) -> PaymentMethod:
    allowed = [m.value for m in PaymentMethod]
    try:
        return PaymentMethod(value)
    except ValueError:
        raise InvalidPaymentMethod(value, allowed) from None


@dataclass(frozen=True)
class AssembledOrder:
    order_number: str
    shipping_address: Dict[str, str]
    payment_method: PaymentMethod
    lines: List[OrderLine]


class OrderAssembler:
    """Builds order-line snapshots and validates placement inputs"""

    def assemble(
        self,
        pricing: PricingSummary,
        shipping_address: Optional[Mapping[str, Any]],
        payment_method,
        now: Optional[datetime] = None
    ) -> AssembledOrder:
        address = validate_shipping_address(shipping_address)
        method = validate_payment_method(payment_method)

        lines = []
        for position, priced in enumerate(pricing.lines):
            item = priced.line.item
            lines.append(OrderLine(
                position=position,
                item_id=priced.line.item_id,
                title=item.title,
                price=to_money(priced.unit_price),
                discounted_price=to_money(priced.discounted_price),
                quantity=priced.line.quantity,
                line_total=to_money(priced.line_price),
                line_discount=to_money(priced.line_discount),
                custom_message=priced.line.custom_message or "",
                image=item.image,
                image_type=item.image_type or "image/jpeg"
            ))

        return AssembledOrder(
            order_number=generate_order_number(now),
            shipping_address=address,
            payment_method=method,
            lines=lines
        )
