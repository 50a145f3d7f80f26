# =============================================================================
# app/routers/payments.py - Split Payment Endpoints
# =============================================================================
# Creates split payments and exposes their lifecycle operations.
# Confirmation normally arrives through the Stripe webhook; the manual
# confirm endpoint exists for admins to replay a missed event.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path

from app.dependencies import AdminUser, CurrentUser
from app.exceptions import AuthorizationError
from core.models.settlement import CreatePaymentRequest, RefundRequest
from core.policy import can_view_payment
from core.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

router = APIRouter()

PaymentId = Annotated[str, Path(description="Stripe PaymentIntent id")]


@router.post("", status_code=201)
async def create_payment(request: CreatePaymentRequest, user: CurrentUser):
    """
    Open a split payment for a sale.

    Returns the client secret the frontend uses to collect the payment,
    plus the commission split that will be transferred once it succeeds.
    """
    payment = SettlementService.create_split_payment(
        sale_id=request.sale_id,
        product_id=request.product_id,
        store_id=request.store_id,
        consultant_id=request.consultant_id,
        amount=request.amount,
    )
    logger.info(f"User {user.id} opened payment {payment.payment_id} for sale {request.sale_id}")
    return {"success": True, **payment.model_dump(mode="json")}


@router.get("/{payment_id}")
async def get_payment(payment_id: PaymentId, user: CurrentUser):
    """Settlement record and live Stripe status of a payment."""
    record = SettlementService.get_settlement(payment_id)
    if not can_view_payment(user.role, user.id, record.store_id, record.consultant_id):
        raise AuthorizationError("You are not allowed to view this payment")

    details = SettlementService.get_payment_details(record)
    return {"success": True, **details}


@router.post("/{payment_id}/confirm")
async def confirm_payment(payment_id: PaymentId, user: AdminUser):
    """
    Run settlement for a payment Stripe reports as succeeded.

    Idempotent: a payment that was already settled is reported as such.
    """
    result = SettlementService.on_payment_confirmed(payment_id)
    return {"success": True, **result}


@router.post("/{payment_id}/cancel")
async def cancel_payment(payment_id: PaymentId, user: CurrentUser):
    """Cancel a payment that is still awaiting payment."""
    record = SettlementService.get_settlement(payment_id)
    if not can_view_payment(user.role, user.id, record.store_id, record.consultant_id):
        raise AuthorizationError("You are not allowed to cancel this payment")

    result = SettlementService.cancel(payment_id)
    return {"success": True, **result}


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: PaymentId,
    user: AdminUser,
    request: RefundRequest | None = None,
):
    """
    Refund a paid payment, fully or by `amount`.

    Payee transfers are not reversed; the settlement is flagged for review.
    """
    amount = request.amount if request else None
    result = SettlementService.refund(payment_id, amount)
    logger.info(f"Admin {user.id} refunded payment {payment_id}")
    return {"success": True, **result}
