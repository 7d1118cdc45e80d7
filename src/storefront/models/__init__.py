from storefront.models.catalog import Item, Cart, CartLine
from storefront.models.order import Order, OrderLine, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.payment import Payment

__all__ = [
    "Item",
    "Cart",
    "CartLine",
    "Order",
    "OrderLine",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Payment",
]
