"""
Checkout error taxonomy

Every error carries a stable machine-readable ``kind``, a human-readable
message and optional ``details`` the caller can use to self-correct.
"""
from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """Base class for all domain errors"""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "kind": self.kind,
            "context": self.details
        }


class ValidationError(StorefrontError):
    """Malformed or missing input"""
    kind = "validation_error"
    status_code = 400


class NotFound(StorefrontError):
    kind = "not_found"
    status_code = 404


class StateConflict(StorefrontError):
    """Request is well-formed but conflicts with current state"""
    kind = "state_conflict"
    status_code = 409


class Unavailable(StorefrontError):
    """Storage backend unreachable; safe to retry"""
    kind = "unavailable"
    status_code = 503


class Internal(StorefrontError):
    kind = "internal"
    status_code = 500


# Validation

class EmptyCart(ValidationError):
    kind = "empty_cart"

    def __init__(self, user_id: str):
        super().__init__(
            "Cart is empty. Please add items to cart before checkout.",
            {"user_id": user_id}
        )


class InvalidShippingAddress(ValidationError):
    kind = "invalid_shipping_address"

    def __init__(self, missing):
        super().__init__(
            "All shipping address fields are required",
            {"missing": list(missing)}
        )


class InvalidPaymentMethod(ValidationError):
    kind = "invalid_payment_method"

    def __init__(self, value, allowed):
        super().__init__(
            "Valid payment method is required",
            {"value": value, "allowed": list(allowed)}
        )


class InvalidStatus(ValidationError):
    kind = "invalid_status"

    def __init__(self, value, allowed):
        super().__init__(
            f"Invalid status '{value}'",
            {"value": value, "allowed": list(allowed)}
        )


# Not found

class ItemNotFound(NotFound):
    kind = "item_not_found"

    def __init__(self, item_id):
        super().__init__(f"Item with ID {item_id} not found", {"item_id": item_id})


class OrderNotFound(NotFound):
    kind = "order_not_found"

    def __init__(self, order_id):
        super().__init__(f"Order with id {order_id} not found", {"order_id": order_id})


class PaymentNotFound(NotFound):
    kind = "payment_not_found"

    def __init__(self, payment_id=None, order_id=None):
        if order_id is not None:
            super().__init__(
                f"Payment not found for order {order_id}",
                {"order_id": order_id}
            )
        else:
            super().__init__(
                f"Payment with id {payment_id} not found",
                {"payment_id": payment_id}
            )


# State conflicts

class InsufficientStock(StateConflict):
    kind = "insufficient_stock"

    def __init__(self, item_id, title: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {title}. Only {available} available.",
            {
                "item_id": item_id,
                "title": title,
                "available": available,
                "requested": requested
            }
        )


class ItemUnavailable(StateConflict):
    kind = "item_unavailable"

    def __init__(self, item_id, title: str):
        super().__init__(
            f"Item {title} is not available",
            {"item_id": item_id, "title": title}
        )


class RefundExceedsPayment(StateConflict):
    kind = "refund_exceeds_payment"

    def __init__(self, amount, refundable, requested):
        super().__init__(
            "Refund amount cannot exceed payment amount",
            {
                "amount": str(amount),
                "refundable": str(refundable),
                "requested": str(requested)
            }
        )


class InvalidState(StateConflict):
    kind = "invalid_state"

    def __init__(self, message: str, current: str, requested: Optional[str] = None):
        details = {"current": current}
        if requested is not None:
            details["requested"] = requested
        super().__init__(message, details)


class CheckoutConflict(StateConflict):
    kind = "checkout_conflict"

    def __init__(self, user_id: str):
        super().__init__(
            "Cart changed or was already checked out. Please review your cart and try again.",
            {"user_id": user_id}
        )
