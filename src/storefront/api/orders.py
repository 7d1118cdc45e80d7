"""
FastAPI routes for order placement and order management
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
import logging

from storefront.config import settings
from storefront.db.database import StorageHealth, get_db, get_storage_health
from storefront.models.schemas import (
    OrderListResponse,
    OrderResponse,
    OrderStatusResponse,
    OrderStatusUpdate,
    PlaceOrderRequest,
    PlaceOrderResponse,
)
from storefront.services.checkout import CheckoutService
from storefront.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["orders"])


def get_current_user(user_id: Optional[str] = Header(None)) -> str:
    """Caller identity, supplied by the auth gateway as the ``user-id`` header"""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required"
        )
    return user_id


def get_checkout_service(
    db: Session = Depends(get_db),
    health: StorageHealth = Depends(get_storage_health)
) -> CheckoutService:
    """Dependency for Checkout Service"""
    return CheckoutService(db, health)


def get_order_service(
    db: Session = Depends(get_db),
    health: StorageHealth = Depends(get_storage_health)
) -> OrderService:
    """Dependency for Order Service"""
    return OrderService(db, health)


@router.post(
    "/orders/place",
    response_model=PlaceOrderResponse,
    status_code=status.HTTP_201_CREATED
)
def place_order(
    request: PlaceOrderRequest,
    user_id: str = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, max_length=128),
    checkout: CheckoutService = Depends(get_checkout_service)
):
    """
    Place an order from the caller's cart

    This endpoint:
    1. Loads the cart and resolves its items
    2. Checks stock and prices every line
    3. Validates shipping address and payment method
    4. Persists order and payment, decrements stock, removes the cart

    Repeating a request with the same **Idempotency-Key** header returns
    the order created by the first attempt.
    """
    logger.info(f"Placing order for user {user_id}")

    address = request.shipping_address.model_dump() if request.shipping_address else None
    result = checkout.place_order(
        user_id=user_id,
        shipping_address=address,
        payment_method=request.payment_method,
        notes=request.notes,
        checkout_key=idempotency_key
    )

    return PlaceOrderResponse.model_validate({
        "order": result.order,
        "payment": result.payment
    })


@router.get("/orders/user/{user_id}", response_model=OrderListResponse)
def get_user_orders(
    user_id: str,
    limit: int = Query(settings.user_history_limit, ge=1, le=1000),
    order_service: OrderService = Depends(get_order_service)
):
    """
    Get the order history of a user, newest first

    - **user_id**: User ID
    """
    logger.info(f"Getting orders for user {user_id}")

    orders = order_service.list_user_orders(user_id, limit=limit)
    return OrderListResponse.model_validate({"orders": orders, "count": len(orders)})


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    order_service: OrderService = Depends(get_order_service)
):
    """
    Get a specific order by ID

    - **order_id**: Order ID
    """
    logger.info(f"Getting order {order_id}")
    return OrderResponse.model_validate(order_service.get_order(order_id))


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    order_status: Optional[str] = Query(None, alias="status", description="Filter by order status"),
    limit: int = Query(settings.order_list_limit, ge=1, le=1000, description="Max orders to return"),
    order_service: OrderService = Depends(get_order_service)
):
    """
    List all orders, newest first (admin)

    - **status**: Filter by order status (optional)
    - **limit**: Maximum number of orders to return
    """
    logger.info(f"Listing orders: status={order_status}, limit={limit}")

    orders = order_service.list_orders(status=order_status, limit=limit)
    return OrderListResponse.model_validate({"orders": orders, "count": len(orders)})


@router.put("/orders/{order_id}/status", response_model=OrderStatusResponse)
def update_order_status(
    order_id: int,
    status_update: OrderStatusUpdate,
    order_service: OrderService = Depends(get_order_service)
):
    """
    Update order status and/or payment status (admin)

    Order statuses move forward through
    pending → confirmed → processing → shipped → delivered;
    cancelled is reachable from any state before delivery.
    """
    if not status_update.order_status and not status_update.payment_status:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="orderStatus or paymentStatus is required"
        )

    logger.info(
        f"Updating order {order_id}: order_status={status_update.order_status}, "
        f"payment_status={status_update.payment_status}"
    )

    order = order_service.update_status(
        order_id,
        order_status=status_update.order_status,
        payment_status=status_update.payment_status
    )
    return OrderStatusResponse.model_validate(order)
