"""Appointment service: booking, lifecycle transitions and meetings."""

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import as_utc, utcnow
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidDateWindowException,
    InvalidTransitionException,
    NotFoundException,
)
from app.core.policy import Action, Principal, policy
from app.models.appointments import appointments
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.users import users
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    AppointmentUpdate,
    MeetingParticipant,
    MeetingResponse,
    ReminderResult,
    ReminderRunResponse,
)
from app.schemas.notifications import NotificationType
from app.services.conversation_service import ConversationService
from app.services.notification_service import NotificationDispatcher, NotificationService

logger = structlog.get_logger(__name__)

# Doctor-driven status changes
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.APPROVED, AppointmentStatus.REJECTED}),
    AppointmentStatus.APPROVED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED, AppointmentStatus.PENDING}
    ),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}

CANCELLABLE = frozenset({AppointmentStatus.PENDING, AppointmentStatus.APPROVED})

MAX_DAYS_AHEAD = 30

_STATUS_MESSAGES = {
    AppointmentStatus.APPROVED: "Your appointment with Dr. {doctor} has been approved.",
    AppointmentStatus.REJECTED: "Your appointment with Dr. {doctor} has been rejected.",
    AppointmentStatus.COMPLETED: "Your appointment with Dr. {doctor} is complete.",
    AppointmentStatus.CANCELED: "Your appointment with Dr. {doctor} has been canceled.",
    AppointmentStatus.PENDING: "Your appointment with Dr. {doctor} was rescheduled and awaits approval.",
}


def is_transition_allowed(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Check a doctor-requested status change against the transition table."""
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_date_window(date: datetime, now: datetime | None = None) -> None:
    """
    Reject dates in the past or more than 30 days ahead.

    Raises:
        InvalidDateWindowException: If the date is outside the window
    """
    now = now or utcnow()
    date = as_utc(date)  # type: ignore[assignment]
    if date < now:
        raise InvalidDateWindowException("Appointment date cannot be in the past")
    if date > now + timedelta(days=MAX_DAYS_AHEAD):
        raise InvalidDateWindowException(
            f"Appointment date cannot be more than {MAX_DAYS_AHEAD} days in the future"
        )


def normalize_type(value: str | None) -> AppointmentType:
    """Map a free-form type to a known one, defaulting to in person."""
    try:
        return AppointmentType((value or "").strip().upper())
    except ValueError:
        return AppointmentType.IN_PERSON


def display_time(date: datetime) -> str:
    """Time of day shown alongside the appointment date."""
    return date.strftime("%H:%M")


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, db: AsyncSession, dispatcher: NotificationDispatcher):
        """Initialize service with database session and notification dispatcher."""
        self.db = db
        self.dispatcher = dispatcher

    def _detail_query(self):
        pu = users.alias("pu")
        du = users.alias("du")
        return select(
            appointments,
            pu.c.full_name.label("patient_name"),
            pu.c.email.label("patient_email"),
            pu.c.id.label("patient_user_id"),
            du.c.full_name.label("doctor_name"),
            du.c.email.label("doctor_email"),
            du.c.id.label("doctor_user_id"),
            doctors.c.specialization.label("doctor_specialization"),
        ).select_from(
            appointments.join(patients, appointments.c.patient_id == patients.c.id)
            .join(pu, patients.c.user_id == pu.c.id)
            .join(doctors, appointments.c.doctor_id == doctors.c.id)
            .join(du, doctors.c.user_id == du.c.id)
        )

    async def _get_detail(self, appointment_id: UUID) -> dict[str, Any]:
        result = await self.db.execute(
            self._detail_query().where(appointments.c.id == appointment_id)
        )
        row = result.first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row._mapping)

    @staticmethod
    def _to_response(row: dict[str, Any]) -> AppointmentResponse:
        return AppointmentResponse.model_validate(row)

    async def create(self, principal: Principal, data: AppointmentCreate) -> AppointmentResponse:
        """
        Book an appointment for the calling patient.

        Args:
            principal: Booking patient
            data: Doctor, date, type and notes

        Returns:
            Created appointment in PENDING status

        Raises:
            NotFoundException: If the patient profile or doctor does not exist
        """
        policy.authorize(principal, Action.BOOK_APPOINTMENT)
        if principal.profile_id is None:
            raise NotFoundException("Patient profile not found")

        result = await self.db.execute(select(doctors.c.id).where(doctors.c.id == data.doctor_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundException("Doctor not found")

        result = await self.db.execute(
            insert(appointments)
            .values(
                patient_id=principal.profile_id,
                doctor_id=data.doctor_id,
                date=data.date,
                time=display_time(data.date),
                type=normalize_type(data.type).value,
                notes=data.notes,
                status=AppointmentStatus.PENDING.value,
            )
            .returning(appointments.c.id)
        )
        appointment_id = result.scalar_one()
        await self.db.commit()

        detail = await self._get_detail(appointment_id)
        logger.info("appointment_created", appointment_id=str(appointment_id))

        await self.dispatcher.dispatch(
            detail, detail["patient_name"], detail["doctor_name"], NotificationType.BOOKING
        )
        return self._to_response(detail)

    async def get(self, appointment_id: UUID, principal: Principal) -> AppointmentResponse:
        """
        Get an appointment the caller is a party to.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller has no access
        """
        detail = await self._get_detail(appointment_id)
        policy.authorize(
            principal,
            Action.VIEW_APPOINTMENT,
            patient_id=detail["patient_id"],
            doctor_id=detail["doctor_id"],
        )
        return self._to_response(detail)

    async def list_for(
        self,
        principal: Principal,
        status: AppointmentStatus | None = None,
    ) -> list[AppointmentResponse]:
        """
        List appointments visible to the caller, soonest first.

        Patients see their own, doctors see theirs and admins see all.
        """
        policy.authorize(principal, Action.VIEW_APPOINTMENT)

        query = self._detail_query()
        if principal.is_patient:
            query = query.where(appointments.c.patient_id == principal.profile_id)
        elif principal.is_doctor:
            query = query.where(appointments.c.doctor_id == principal.profile_id)
        if status is not None:
            query = query.where(appointments.c.status == status.value)

        result = await self.db.execute(query.order_by(appointments.c.date))
        return [self._to_response(dict(r._mapping)) for r in result.fetchall()]

    async def update(
        self,
        appointment_id: UUID,
        principal: Principal,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """Route an update to the doctor or patient rules."""
        if principal.is_doctor:
            return await self.update_as_doctor(appointment_id, principal, data)
        if principal.is_patient:
            if data.status is not None or data.date is not None:
                raise ForbiddenException("Patients may only update appointment notes")
            return await self.update_as_patient(appointment_id, principal, data.notes)
        raise ForbiddenException("Only the patient or doctor may update an appointment")

    async def update_as_doctor(
        self,
        appointment_id: UUID,
        principal: Principal,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Apply a doctor's status, notes or date change.

        Every check runs before the write. A new date without a status sends
        an APPROVED appointment back to PENDING. COMPLETED stamps the end
        time and opens the pair's conversation. Reschedules are announced
        after the change is committed.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the appointment belongs to another doctor
            InvalidDateWindowException: If the new date is outside the window
            InvalidTransitionException: If the status change is not allowed
        """
        detail = await self._get_detail(appointment_id)
        policy.authorize(principal, Action.MANAGE_APPOINTMENT, doctor_id=detail["doctor_id"])

        current = AppointmentStatus(detail["status"])
        new_status = data.status

        if data.date is not None:
            validate_date_window(data.date)
            if new_status is None:
                if not ALLOWED_TRANSITIONS[current]:
                    raise BadRequestException(
                        f"Cannot reschedule an appointment with status '{current.value}'."
                    )
                if current == AppointmentStatus.APPROVED:
                    new_status = AppointmentStatus.PENDING

        if data.status is not None and not is_transition_allowed(current, data.status):
            raise InvalidTransitionException(current.value, data.status.value)

        values: dict[str, Any] = {}
        if new_status is not None:
            values["status"] = new_status.value
            if new_status == AppointmentStatus.COMPLETED:
                values["end_time"] = utcnow()
        if data.notes is not None:
            values["notes"] = data.notes
        if data.date is not None:
            values["date"] = data.date
            values["time"] = display_time(data.date)

        if not values:
            return self._to_response(detail)

        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status == current.value,
            )
            .values(**values)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictException("Appointment was modified by another request")

        if new_status is not None and new_status != current:
            await NotificationService(self.db).create_notification(
                user_id=detail["patient_user_id"],
                title="Appointment update",
                message=_STATUS_MESSAGES[new_status].format(doctor=detail["doctor_name"]),
                notification_type=f"APPOINTMENT_{new_status.value}",
            )

        await self.db.commit()
        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            previous_status=current.value,
            status=values.get("status", current.value),
        )

        if new_status == AppointmentStatus.COMPLETED:
            await ConversationService(self.db).ensure(detail["patient_id"], detail["doctor_id"])

        updated = await self._get_detail(appointment_id)
        if data.date is not None:
            await self.dispatcher.dispatch(
                updated,
                updated["patient_name"],
                updated["doctor_name"],
                NotificationType.RESCHEDULE,
                extra={"previous_date": as_utc(detail["date"])},
            )
        return self._to_response(updated)

    async def update_as_patient(
        self,
        appointment_id: UUID,
        principal: Principal,
        notes: str | None,
    ) -> AppointmentResponse:
        """
        Update the notes of one of the caller's appointments.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the appointment belongs to another patient
        """
        detail = await self._get_detail(appointment_id)
        policy.authorize(principal, Action.EDIT_APPOINTMENT_NOTES, patient_id=detail["patient_id"])

        if notes is None:
            return self._to_response(detail)

        await self.db.execute(
            update(appointments).where(appointments.c.id == appointment_id).values(notes=notes)
        )
        await self.db.commit()
        return self._to_response(await self._get_detail(appointment_id))

    async def cancel(self, appointment_id: UUID, principal: Principal) -> AppointmentResponse:
        """
        Cancel one of the caller's appointments.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the appointment belongs to another patient
            BadRequestException: If the appointment is not PENDING or APPROVED
        """
        detail = await self._get_detail(appointment_id)
        policy.authorize(principal, Action.CANCEL_APPOINTMENT, patient_id=detail["patient_id"])

        current = AppointmentStatus(detail["status"])
        if current not in CANCELLABLE:
            raise BadRequestException(
                f"Cannot cancel an appointment with status '{current.value}'."
            )

        result = await self.db.execute(
            update(appointments)
            .where(
                appointments.c.id == appointment_id,
                appointments.c.status == current.value,
            )
            .values(status=AppointmentStatus.CANCELED.value)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise ConflictException("Appointment was modified by another request")

        await NotificationService(self.db).create_notification(
            user_id=detail["doctor_user_id"],
            title="Appointment canceled",
            message=f"{detail['patient_name']} canceled the appointment on {detail['time']}.",
            notification_type="APPOINTMENT_CANCELED",
        )
        await self.db.commit()
        logger.info("appointment_canceled", appointment_id=str(appointment_id))

        return self._to_response(await self._get_detail(appointment_id))

    def _meeting_response(self, detail: dict[str, Any]) -> MeetingResponse:
        return MeetingResponse(
            meeting_id=detail["meeting_id"],
            meeting_url=detail["meeting_url"],
            appointment=self._to_response(detail),
            patient=MeetingParticipant(id=detail["patient_id"], full_name=detail["patient_name"]),
            doctor=MeetingParticipant(
                id=detail["doctor_id"],
                full_name=detail["doctor_name"],
                specialization=detail["doctor_specialization"],
            ),
        )

    async def get_meeting(self, appointment_id: UUID, principal: Principal) -> MeetingResponse:
        """Return the stored meeting details of an appointment."""
        detail = await self._get_detail(appointment_id)
        policy.authorize(
            principal,
            Action.VIEW_MEETING,
            patient_id=detail["patient_id"],
            doctor_id=detail["doctor_id"],
        )
        return self._meeting_response(detail)

    async def create_meeting(self, appointment_id: UUID, principal: Principal) -> MeetingResponse:
        """
        Generate a video meeting link for an approved video appointment.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the caller is not a party
            BadRequestException: If the appointment is not an approved video call
        """
        detail = await self._get_detail(appointment_id)
        policy.authorize(
            principal,
            Action.CREATE_MEETING,
            patient_id=detail["patient_id"],
            doctor_id=detail["doctor_id"],
        )

        if detail["type"] != AppointmentType.VIDEO_CALL.value:
            raise BadRequestException("This appointment is not a video consultation")
        if detail["status"] != AppointmentStatus.APPROVED.value:
            raise BadRequestException("Appointment must be approved to generate meeting URL")

        epoch_ms = int(utcnow().timestamp() * 1000)
        meeting_id = f"medicloud-{appointment_id}-{epoch_ms}"
        meeting_url = f"{settings.meeting_base_url.rstrip('/')}/{meeting_id}"

        await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(meeting_id=meeting_id, meeting_url=meeting_url)
        )
        await self.db.commit()
        logger.info("meeting_created", appointment_id=str(appointment_id), meeting_id=meeting_id)

        updated = await self._get_detail(appointment_id)
        await self.dispatcher.dispatch(
            updated, updated["patient_name"], updated["doctor_name"], NotificationType.VIDEO_MEETING
        )
        return self._meeting_response(updated)

    async def send_reminders(self) -> ReminderRunResponse:
        """
        Remind both parties of every APPROVED appointment dated tomorrow (UTC).

        Returns:
            Per-appointment delivery results
        """
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        start = today + timedelta(days=1)
        end = start + timedelta(days=1)

        result = await self.db.execute(
            self._detail_query()
            .where(
                appointments.c.status == AppointmentStatus.APPROVED.value,
                appointments.c.date >= start,
                appointments.c.date < end,
            )
            .order_by(appointments.c.date)
        )
        rows = [dict(r._mapping) for r in result.fetchall()]
        logger.info("reminders_found", count=len(rows))

        results = []
        for row in rows:
            delivered = await self.dispatcher.dispatch(
                row, row["patient_name"], row["doctor_name"], NotificationType.REMINDER
            )
            results.append(
                ReminderResult(
                    appointment_id=row["id"],
                    patient_email=row["patient_email"],
                    doctor_email=row["doctor_email"],
                    status="sent" if delivered else "failed",
                    type=row["type"],
                    has_meeting_url=bool(row["meeting_url"]),
                    error=None if delivered else "Notification delivery failed",
                )
            )

        return ReminderRunResponse(
            message="Appointment reminders processed",
            total_appointments=len(rows),
            results=results,
        )
