"""Inbound webhooks from third-party services."""

from typing import Annotated

from fastapi import APIRouter, Header, Request, status

from app.dependencies import DatabaseSession, PaymentGateway, SettingsDep
from app.schemas.payments import WebhookAck
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/payment-gateway",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Payment gateway events",
)
async def payment_gateway_webhook(
    request: Request,
    db: DatabaseSession,
    gateway: PaymentGateway,
    settings: SettingsDep,
    x_paystack_signature: Annotated[str | None, Header()] = None,
) -> WebhookAck:
    """
    Apply a signed gateway event.

    The signature is an HMAC-SHA512 of the raw body, so the body is read
    unparsed and checked before anything else happens.

    Raises:
        BadRequestException: If the signature or payload is invalid
    """
    raw_body = await request.body()
    return await PaymentService(db, gateway, settings).handle_webhook(
        raw_body, x_paystack_signature
    )
