"""Payment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    """Payment status; PENDING moves once to SUCCESS or FAILED."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PaymentInitializeRequest(BaseModel):
    """Request to start a gateway transaction."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str | None = Field(None, min_length=3, max_length=3)
    appointment_id: UUID | None = None
    description: str = Field(..., min_length=1, max_length=500)
    user_id: UUID | None = None


class PaymentInitializeResponse(BaseModel):
    """Gateway checkout details."""

    authorization_url: str
    reference: str
    access_code: str | None = None
    payment_id: UUID


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: UUID
    user_id: UUID
    appointment_id: UUID | None = None
    amount: Decimal
    currency: str
    method: str
    status: PaymentStatus
    description: str | None = None
    gateway_reference: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentVerifyResponse(BaseModel):
    """Result of verifying a payment."""

    status: PaymentStatus
    payment: PaymentResponse


class WebhookAck(BaseModel):
    """Acknowledgement returned to the gateway."""

    received: bool = True
