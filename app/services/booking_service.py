"""Booking flow: a PENDING appointment followed by its payment."""

import structlog

from app.core.policy import Principal
from app.schemas.appointments import (
    AppointmentCreate,
    BookingInitiateRequest,
    BookingInitiateResponse,
)
from app.schemas.payments import PaymentInitializeRequest
from app.services.appointment_service import AppointmentService
from app.services.payment_service import PaymentService

logger = structlog.get_logger(__name__)


class BookingService:
    """Chain appointment creation and payment initialization."""

    def __init__(self, appointments: AppointmentService, payments: PaymentService):
        """Initialize with the two services the flow spans."""
        self.appointments = appointments
        self.payments = payments

    async def initiate(
        self,
        principal: Principal,
        data: BookingInitiateRequest,
    ) -> BookingInitiateResponse:
        """
        Book an appointment, then start paying for it.

        The appointment is committed before the gateway is called, so a
        gateway failure leaves a PENDING appointment and a PENDING payment.

        Raises:
            NotFoundException: If the doctor or patient profile does not exist
            ExternalServiceException: If the gateway call fails
        """
        appointment = await self.appointments.create(
            principal,
            AppointmentCreate(
                doctor_id=data.doctor_id,
                date=data.date,
                type=data.type,
                notes=data.notes,
            ),
        )
        checkout = await self.payments.initialize(
            principal,
            PaymentInitializeRequest(
                amount=data.amount,
                currency=data.currency,
                appointment_id=appointment.id,
                description=data.description,
            ),
        )
        logger.info(
            "booking_initiated",
            appointment_id=str(appointment.id),
            payment_id=str(checkout.payment_id),
        )
        return BookingInitiateResponse(
            appointment_id=appointment.id,
            payment_id=checkout.payment_id,
            authorization_url=checkout.authorization_url,
            reference=checkout.reference,
        )
