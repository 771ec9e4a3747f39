"""Appointment endpoints."""

import hmac
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Query, status

from app.dependencies import (
    CurrentPrincipal,
    DatabaseSession,
    Dispatcher,
    PaymentGateway,
    SettingsDep,
)
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    BookingInitiateRequest,
    BookingInitiateResponse,
    MeetingResponse,
    ReminderRunResponse,
)
from app.schemas.conversations import ConversationResponse
from app.services.appointment_service import AppointmentService
from app.services.booking_service import BookingService
from app.services.conversation_service import ConversationService
from app.services.payment_service import PaymentService

router = APIRouter()


@router.get(
    "",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
) -> list[AppointmentResponse]:
    """
    List the caller's appointments.

    Args:
        principal: Authenticated caller
        db: Database session
        dispatcher: Notification dispatcher
        status_filter: Only appointments in this status

    Returns:
        Appointments ordered by date
    """
    return await AppointmentService(db, dispatcher).list_for(principal, status_filter)


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> AppointmentResponse:
    """
    Book a PENDING appointment with a doctor.

    Both parties are e-mailed; a failed e-mail does not fail the booking.
    """
    return await AppointmentService(db, dispatcher).create(principal, data)


@router.post(
    "/initiate-booking",
    response_model=BookingInitiateResponse,
    status_code=status.HTTP_200_OK,
    summary="Book an appointment and start its payment",
)
async def initiate_booking(
    data: BookingInitiateRequest,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
    gateway: PaymentGateway,
    settings: SettingsDep,
) -> BookingInitiateResponse:
    """Create the appointment, then return the gateway checkout URL."""
    service = BookingService(
        AppointmentService(db, dispatcher),
        PaymentService(db, gateway, settings),
    )
    return await service.initiate(principal, data)


@router.post(
    "/reminders",
    response_model=ReminderRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Send reminders for tomorrow's appointments",
)
async def send_reminders(
    db: DatabaseSession,
    dispatcher: Dispatcher,
    settings: SettingsDep,
    x_reminder_secret: Annotated[str | None, Header()] = None,
) -> ReminderRunResponse:
    """
    Remind both parties of every APPROVED appointment dated tomorrow.

    Called by an external scheduler holding the reminder job secret.

    Raises:
        HTTPException: If the secret header is missing or wrong
    """
    if not x_reminder_secret or not hmac.compare_digest(
        x_reminder_secret, settings.reminder_job_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid reminder job secret",
        )
    return await AppointmentService(db, dispatcher).send_reminders()


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> AppointmentResponse:
    """
    Get an appointment the caller is a party to.

    Raises:
        NotFoundException: If appointment not found
        ForbiddenException: If the caller is not a party
    """
    return await AppointmentService(db, dispatcher).get(appointment_id, principal)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> AppointmentResponse:
    """
    Change status, date or notes.

    Doctors drive the status lifecycle and may reschedule; patients may
    only edit notes.

    Raises:
        InvalidTransitionException: If the status change is not allowed
        InvalidDateWindowException: If the new date is outside the window
        ConflictException: If the appointment changed concurrently
    """
    return await AppointmentService(db, dispatcher).update(appointment_id, principal, data)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> AppointmentResponse:
    """Cancel a PENDING or APPROVED appointment."""
    return await AppointmentService(db, dispatcher).cancel(appointment_id, principal)


@router.get(
    "/{appointment_id}/meeting",
    response_model=MeetingResponse,
    status_code=status.HTTP_200_OK,
    summary="Get video meeting",
)
async def get_meeting(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> MeetingResponse:
    """Meeting link and participants of a video appointment."""
    return await AppointmentService(db, dispatcher).get_meeting(appointment_id, principal)


@router.post(
    "/{appointment_id}/meeting",
    response_model=MeetingResponse,
    status_code=status.HTTP_200_OK,
    summary="Create video meeting",
)
async def create_meeting(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
    dispatcher: Dispatcher,
) -> MeetingResponse:
    """
    Create the meeting room for an APPROVED video appointment.

    Raises:
        BadRequestException: If the appointment is not an approved video call
    """
    return await AppointmentService(db, dispatcher).create_meeting(appointment_id, principal)


@router.post(
    "/{appointment_id}/conversation",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
    summary="Open conversation for a completed appointment",
)
async def create_conversation(
    appointment_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ConversationResponse:
    """Return the pair's conversation, creating it on first use."""
    conversation, _ = await ConversationService(db).create_for_appointment(
        appointment_id, principal
    )
    return conversation
