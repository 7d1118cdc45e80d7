"""
Order pricing: per-line discounted prices and order totals
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence

from storefront.errors import InsufficientStock, ItemNotFound
from storefront.services.discount import as_decimal, effective_price

CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round to cents"""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CheckoutLine:
    """A cart line resolved against its catalog item"""
    item_id: int
    item: object
    quantity: int
    custom_message: str = ""


@dataclass(frozen=True)
class PricedLine:
    line: CheckoutLine
    unit_price: Decimal
    discounted_price: Decimal
    line_price: Decimal
    line_discount: Decimal


@dataclass(frozen=True)
class PricingSummary:
    lines: List[PricedLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    total_discount: Decimal = Decimal("0.00")
    shipping_charges: Decimal = Decimal("0.00")
    total_amount: Decimal = Decimal("0.00")


class PricingAggregator:
    """Computes line prices, subtotal, discount, shipping and total"""

    def __init__(self, free_shipping_threshold: Decimal = Decimal("500"), shipping_charge: Decimal = Decimal("50")):
        self.free_shipping_threshold = Decimal(free_shipping_threshold)
        self.shipping_charge = Decimal(shipping_charge)

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if subtotal >= self.free_shipping_threshold:
            return to_money(Decimal(0))
        return to_money(self.shipping_charge)

    def price(self, lines: Sequence[CheckoutLine], now: Optional[datetime] = None) -> PricingSummary:
        """
        Price every line and aggregate the order totals.
        
        Raises ItemNotFound for an unresolved item and InsufficientStock
        when an item cannot cover the requested quantity. Both checks run
        over every line before any totals are returned. Discounted unit
        prices are rounded to cents first, so line totals add up to the
        subtotal exactly.
        """
        now = now or datetime.now(timezone.utc)
        
        # Lines for the same item draw on one stock figure
        requested = Counter()
        for line in lines:
            if line.item is None:
                raise ItemNotFound(line.item_id)
            requested[line.item_id] += line.quantity
            if line.item.stock < requested[line.item_id]:
                raise InsufficientStock(
                    line.item_id, line.item.title, line.item.stock, requested[line.item_id]
                )
        
        priced = []
        subtotal = Decimal(0)
        total_discount = Decimal(0)
        for line in lines:
            unit_price = as_decimal(line.item.price)
            discounted = to_money(effective_price(line.item, now))
            line_price = discounted * line.quantity
            line_discount = (unit_price - discounted) * line.quantity
            
            subtotal += line_price
            total_discount += line_discount
            priced.append(PricedLine(
                line=line,
                unit_price=unit_price,
                discounted_price=discounted,
                line_price=line_price,
                line_discount=line_discount
            ))
        
        subtotal = to_money(subtotal)
        total_discount = to_money(total_discount)
        shipping = self.shipping_for(subtotal)
        
        return PricingSummary(
            lines=priced,
            subtotal=subtotal,
            total_discount=total_discount,
            shipping_charges=shipping,
            total_amount=subtotal + shipping
        )
