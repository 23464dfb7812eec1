"""Payment endpoints."""

import secrets

from fastapi import APIRouter, Header, status

from mediconnect.config import settings
from mediconnect.core.exceptions import UnauthorizedException
from mediconnect.dependencies import CurrentUser, DatabaseSession, EmailDispatcherDep
from mediconnect.schemas.payments import (
    PaymentCreate,
    PaymentOutcome,
    PaymentResponse,
    PaymentResult,
    PaymentWebhook,
)
from mediconnect.services.payment_service import PaymentService

router = APIRouter(prefix="/payments")


@router.post(
    "",
    response_model=PaymentResult,
    status_code=status.HTTP_200_OK,
    summary="Confirm a completed payment",
)
async def create_payment(
    data: PaymentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    email: EmailDispatcherDep,
) -> PaymentResult:
    """
    Record the patient's successful checkout for their appointment.

    Submitting the same ``gateway_payment_id`` again is a no-op.
    """
    return await PaymentService(db, email).apply_payment(
        appointment_id=data.appointment_id,
        amount=data.amount,
        status=PaymentOutcome.COMPLETED,
        gateway_payment_id=data.gateway_payment_id,
        gateway_order_id=data.gateway_order_id,
        user=current_user,
    )


@router.post(
    "/webhook",
    response_model=PaymentResult,
    status_code=status.HTTP_200_OK,
    summary="Payment gateway callback",
)
async def payment_webhook(
    data: PaymentWebhook,
    db: DatabaseSession,
    email: EmailDispatcherDep,
    x_webhook_secret: str | None = Header(None),
) -> PaymentResult:
    """Apply a gateway-reported payment outcome. Redeliveries are idempotent."""
    if not x_webhook_secret or not secrets.compare_digest(
        x_webhook_secret, settings.payment_webhook_secret
    ):
        raise UnauthorizedException("Invalid webhook secret")

    return await PaymentService(db, email).apply_payment(
        appointment_id=data.appointment_id,
        amount=data.amount,
        status=data.status,
        gateway_payment_id=data.gateway_payment_id,
        gateway_order_id=data.gateway_order_id,
    )


@router.get(
    "",
    response_model=list[PaymentResponse],
    status_code=status.HTTP_200_OK,
    summary="List my payments",
)
async def list_payments(current_user: CurrentUser, db: DatabaseSession) -> list[PaymentResponse]:
    """Payment history of the caller."""
    return await PaymentService(db).list_payments(current_user)
