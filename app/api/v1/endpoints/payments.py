"""Payment endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentPrincipal, DatabaseSession, PaymentGateway, SettingsDep
from app.schemas.payments import (
    PaymentInitializeRequest,
    PaymentInitializeResponse,
    PaymentResponse,
    PaymentVerifyResponse,
)
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/payments/initialize",
    response_model=PaymentInitializeResponse,
    status_code=status.HTTP_200_OK,
    summary="Start a payment",
)
async def initialize_payment(
    data: PaymentInitializeRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    gateway: PaymentGateway,
    settings: SettingsDep,
) -> PaymentInitializeResponse:
    """
    Record a PENDING payment and open a gateway transaction for it.

    Args:
        data: Amount, currency, description and optional appointment
        principal: Paying patient
        db: Database session
        gateway: Payment gateway client
        settings: Application settings

    Returns:
        Checkout URL, gateway reference and payment id

    Raises:
        ExternalServiceException: If the gateway rejects the transaction
    """
    return await PaymentService(db, gateway, settings).initialize(principal, data)


@router.get(
    "/payments/verify/{reference}",
    response_model=PaymentVerifyResponse,
    status_code=status.HTTP_200_OK,
    summary="Verify a payment",
)
async def verify_payment(
    reference: str,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    gateway: PaymentGateway,
    settings: SettingsDep,
) -> PaymentVerifyResponse:
    """
    Settle a PENDING payment from the gateway's verdict.

    Payments already SUCCESS or FAILED are returned unchanged.
    """
    return await PaymentService(db, gateway, settings).verify(reference, principal)


@router.get(
    "/patients/{patient_id}/payments",
    response_model=list[PaymentResponse],
    status_code=status.HTTP_200_OK,
    summary="List a patient's payments",
)
async def list_patient_payments(
    patient_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    gateway: PaymentGateway,
    settings: SettingsDep,
) -> list[PaymentResponse]:
    """Payments of one patient, visible to that patient and admins."""
    return await PaymentService(db, gateway, settings).list_for_patient(patient_id, principal)
