"""Discount evaluation for catalog items"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

HUNDRED = Decimal(100)


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the database are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_discount_active(item, now: Optional[datetime] = None) -> bool:
    """
    Decide whether an item's discount applies at ``now``.
    
    A positive discount without both window bounds is always active;
    otherwise ``now`` must fall within [start, end], inclusive.
    """
    discount = as_decimal(item.discount or 0)
    if discount <= 0:
        return False
    if item.discount_start is None or item.discount_end is None:
        return True
    
    now = _as_utc(now or datetime.now(timezone.utc))
    return _as_utc(item.discount_start) <= now <= _as_utc(item.discount_end)


def effective_price(item, now: Optional[datetime] = None) -> Decimal:
    """Unit price after any active discount. Not rounded."""
    price = as_decimal(item.price)
    if not is_discount_active(item, now):
        return price
    return price * (HUNDRED - as_decimal(item.discount)) / HUNDRED
