"""Payment service: pending records, gateway calls and reconciliation."""

import json
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.policy import Action, Principal, policy
from app.core.security import verify_webhook_signature
from app.models.appointments import appointments
from app.models.patients import patients
from app.models.payments import payments
from app.models.users import users
from app.schemas.payments import (
    PaymentInitializeRequest,
    PaymentInitializeResponse,
    PaymentResponse,
    PaymentStatus,
    PaymentVerifyResponse,
    WebhookAck,
)
from app.services.payment_gateway import PaystackClient

logger = structlog.get_logger(__name__)

FINAL_STATUSES = {PaymentStatus.SUCCESS.value, PaymentStatus.FAILED.value}


def _parse_uuid(value: str) -> UUID | None:
    try:
        return UUID(value)
    except ValueError:
        return None


class PaymentService:
    """Service coordinating payments with the gateway."""

    def __init__(self, db: AsyncSession, gateway: PaystackClient, settings: Settings):
        """Initialize service with database session, gateway client and settings."""
        self.db = db
        self.gateway = gateway
        self.settings = settings

    async def _get_by_reference(self, reference: str) -> dict[str, Any] | None:
        conditions = [payments.c.gateway_reference == reference]
        payment_id = _parse_uuid(reference)
        if payment_id is not None:
            conditions.append(payments.c.id == payment_id)

        result = await self.db.execute(select(payments).where(or_(*conditions)))
        row = result.first()
        return dict(row._mapping) if row else None

    async def _settle(self, payment_id: UUID, new_status: PaymentStatus, reference: str) -> bool:
        # Only a PENDING payment may move; a concurrent settle loses.
        result = await self.db.execute(
            update(payments)
            .where(
                payments.c.id == payment_id,
                payments.c.status == PaymentStatus.PENDING.value,
            )
            .values(status=new_status.value, gateway_reference=reference)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def initialize(
        self,
        principal: Principal,
        data: PaymentInitializeRequest,
    ) -> PaymentInitializeResponse:
        """
        Create a PENDING payment and start the gateway transaction.

        The payment id is the reference handed to the gateway. When the
        gateway call fails the PENDING row is kept.

        Args:
            principal: Paying user
            data: Amount, currency, description and optional appointment

        Returns:
            Checkout URL and references

        Raises:
            ForbiddenException: If paying on behalf of someone else
            NotFoundException: If the appointment does not exist
            ExternalServiceException: If the gateway call fails
        """
        policy.authorize(principal, Action.INITIALIZE_PAYMENT)

        if data.user_id is not None and data.user_id != principal.user_id:
            raise ForbiddenException("Payments can only be made for your own account")

        if data.appointment_id is not None:
            result = await self.db.execute(
                select(appointments.c.patient_id).where(appointments.c.id == data.appointment_id)
            )
            patient_id = result.scalar_one_or_none()
            if patient_id is None:
                raise NotFoundException("Appointment not found")
            policy.authorize(principal, Action.INITIALIZE_PAYMENT, patient_id=patient_id)

        payment_id = uuid4()
        currency = (data.currency or self.settings.default_currency).upper()
        await self.db.execute(
            payments.insert().values(
                id=payment_id,
                user_id=principal.user_id,
                appointment_id=data.appointment_id,
                amount=data.amount,
                currency=currency,
                method="CARD",
                status=PaymentStatus.PENDING.value,
                description=data.description,
            )
        )
        await self.db.commit()

        logger.info("payment_created", payment_id=str(payment_id), amount=str(data.amount))

        transaction = await self.gateway.initialize_transaction(
            amount=data.amount,
            email=principal.email,
            reference=str(payment_id),
            currency=currency,
            callback_url=self.settings.payment_callback_url,
        )

        await self.db.execute(
            update(payments)
            .where(payments.c.id == payment_id)
            .values(gateway_reference=transaction.reference)
        )
        await self.db.commit()

        return PaymentInitializeResponse(
            authorization_url=transaction.authorization_url,
            reference=transaction.reference,
            access_code=transaction.access_code,
            payment_id=payment_id,
        )

    async def verify(self, reference: str, principal: Principal) -> PaymentVerifyResponse:
        """
        Reconcile a payment with the gateway.

        Already settled payments are returned as they are without calling the
        gateway. Otherwise gateway ``success`` settles to SUCCESS and any other
        gateway status to FAILED. Linked appointments are left alone.

        Raises:
            NotFoundException: If no payment matches the reference
            ForbiddenException: If the payment belongs to another user
            ExternalServiceException: If the gateway call fails
        """
        payment = await self._get_by_reference(reference)
        if payment is None:
            raise NotFoundException("Payment not found")

        if not principal.is_admin and payment["user_id"] != principal.user_id:
            raise ForbiddenException("Access denied to this payment")

        if payment["status"] in FINAL_STATUSES:
            logger.info("payment_already_settled", payment_id=str(payment["id"]))
        else:
            verification = await self.gateway.verify_transaction(
                payment["gateway_reference"] or str(payment["id"])
            )
            new_status = (
                PaymentStatus.SUCCESS if verification.succeeded else PaymentStatus.FAILED
            )
            await self._settle(payment["id"], new_status, verification.reference)
            logger.info(
                "payment_verified",
                payment_id=str(payment["id"]),
                gateway_status=verification.status,
                status=new_status.value,
            )
            payment = await self._get_by_reference(str(payment["id"]))

        response = PaymentResponse.model_validate(payment)
        return PaymentVerifyResponse(status=response.status, payment=response)

    async def handle_webhook(self, raw_body: bytes, signature: str | None) -> WebhookAck:
        """
        Apply a gateway event.

        The signature is checked against the raw body before anything else.
        ``charge.success`` settles a PENDING payment to SUCCESS; every other
        event is acknowledged without change.

        Raises:
            BadRequestException: If the signature or payload is invalid
        """
        if not verify_webhook_signature(raw_body, signature, self.settings.paystack_secret_key):
            logger.warning("webhook_signature_invalid")
            raise BadRequestException("Invalid signature")

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise BadRequestException("Invalid webhook payload")

        if not isinstance(event, dict):
            raise BadRequestException("Invalid webhook payload")
        data = event.get("data") or {}
        if not isinstance(data, dict):
            raise BadRequestException("Invalid webhook payload")

        event_type = event.get("event")
        reference = data.get("reference")
        logger.info("webhook_received", event_type=event_type, reference=reference)

        if event_type == "charge.success" and reference:
            payment = await self._get_by_reference(str(reference))
            if payment is None:
                logger.warning("webhook_payment_not_found", reference=reference)
            elif payment["status"] == PaymentStatus.PENDING.value:
                await self._settle(payment["id"], PaymentStatus.SUCCESS, str(reference))
                logger.info("payment_settled_by_webhook", payment_id=str(payment["id"]))

        return WebhookAck()

    async def list_for_patient(
        self,
        patient_id: UUID,
        principal: Principal,
    ) -> list[PaymentResponse]:
        """
        List the payments made by a patient's user account.

        Raises:
            NotFoundException: If the patient does not exist
            ForbiddenException: If another patient asks
        """
        policy.authorize(principal, Action.VIEW_PAYMENTS, patient_id=patient_id)

        result = await self.db.execute(
            select(users.c.id)
            .select_from(patients.join(users, patients.c.user_id == users.c.id))
            .where(patients.c.id == patient_id)
        )
        user_id = result.scalar_one_or_none()
        if user_id is None:
            raise NotFoundException("Patient not found")

        result = await self.db.execute(
            select(payments)
            .where(payments.c.user_id == user_id)
            .order_by(payments.c.created_at.desc())
        )
        return [PaymentResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]
