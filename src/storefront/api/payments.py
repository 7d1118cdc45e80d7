"""
FastAPI routes for payments
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from storefront.config import settings
from storefront.db.database import StorageHealth, get_db, get_storage_health
from storefront.models.schemas import (
    PaymentListResponse,
    PaymentResponse,
    PaymentStatusUpdate,
    RefundRequest,
)
from storefront.services.payment_service import PaymentStatusCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["payments"])


def get_payment_coordinator(
    db: Session = Depends(get_db),
    health: StorageHealth = Depends(get_storage_health)
) -> PaymentStatusCoordinator:
    """Dependency for Payment Status Coordinator"""
    return PaymentStatusCoordinator(db, health)


@router.get("/payments/order/{order_id}", response_model=PaymentResponse)
def get_order_payment(
    order_id: int,
    coordinator: PaymentStatusCoordinator = Depends(get_payment_coordinator)
):
    """Get the payment of an order"""
    return PaymentResponse.model_validate(coordinator.get_payment_for_order(order_id))


@router.get("/payments/user/{user_id}", response_model=PaymentListResponse)
def get_user_payments(
    user_id: str,
    limit: int = Query(settings.order_list_limit, ge=1, le=1000),
    coordinator: PaymentStatusCoordinator = Depends(get_payment_coordinator)
):
    """Get all payments of a user, newest first"""
    payments = coordinator.list_user_payments(user_id, limit=limit)
    return PaymentListResponse.model_validate({"payments": payments, "count": len(payments)})


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    payment_status: Optional[str] = Query(None, alias="status"),
    payment_method: Optional[str] = Query(None, alias="paymentMethod"),
    limit: int = Query(settings.order_list_limit, ge=1, le=1000),
    coordinator: PaymentStatusCoordinator = Depends(get_payment_coordinator)
):
    """
    List all payments (admin)

    - **status**: Filter by payment status (optional)
    - **paymentMethod**: Filter by payment method (optional)
    """
    logger.info(f"Listing payments: status={payment_status}, method={payment_method}, limit={limit}")

    payments = coordinator.list_payments(status=payment_status, method=payment_method, limit=limit)
    return PaymentListResponse.model_validate({"payments": payments, "count": len(payments)})


@router.put("/payments/{payment_id}/status", response_model=PaymentResponse)
def update_payment_status(
    payment_id: int,
    update: PaymentStatusUpdate,
    coordinator: PaymentStatusCoordinator = Depends(get_payment_coordinator)
):
    """
    Update payment status

    Allowed transitions: pending → paid | failed | cancelled, paid → refunded.
    The order's payment status is updated with the payment.
    """
    logger.info(f"Updating payment {payment_id} status to {update.payment_status}")

    payment = coordinator.update_status(
        payment_id,
        update.payment_status,
        transaction_id=update.transaction_id,
        gateway=update.payment_gateway,
        payment_date=update.payment_date,
        failure_reason=update.failure_reason,
        details=update.payment_details
    )
    return PaymentResponse.model_validate(payment)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
def refund_payment(
    payment_id: int,
    refund: Optional[RefundRequest] = None,
    coordinator: PaymentStatusCoordinator = Depends(get_payment_coordinator)
):
    """
    Refund a paid payment

    - **refundAmount**: Amount to refund (defaults to the full unrefunded amount)
    - **refundReason**: Reason for the refund (optional)
    """
    refund = refund or RefundRequest()
    logger.info(f"Refunding payment {payment_id}: amount={refund.refund_amount}")

    payment = coordinator.refund(
        payment_id,
        amount=refund.refund_amount,
        reason=refund.refund_reason
    )
    return PaymentResponse.model_validate(payment)
