"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from mediconnect.schemas.appointments import AppointmentResponse


class PaymentOutcome(str, Enum):
    """Gateway-reported payment outcome."""

    COMPLETED = "completed"
    FAILED = "failed"


class PaymentCreate(BaseModel):
    """Patient-submitted payment confirmation."""

    appointment_id: UUID
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    gateway_order_id: str | None = Field(None, max_length=200)
    gateway_payment_id: str | None = Field(None, max_length=200)


class PaymentWebhook(PaymentCreate):
    """Gateway callback payload."""

    status: PaymentOutcome = PaymentOutcome.COMPLETED


class PaymentResponse(BaseModel):
    """Stored payment record."""

    id: UUID
    appointment_id: UUID
    patient_id: UUID
    amount: Decimal
    status: PaymentOutcome
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer("amount", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class PaymentResult(BaseModel):
    """Outcome of applying a payment event."""

    payment: PaymentResponse | None
    appointment: AppointmentResponse
    already_applied: bool = False
