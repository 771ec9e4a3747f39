"""Conversation service: patient/doctor pairing and messaging window."""

import math
from datetime import timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import desc, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, utcnow
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.policy import Action, Principal, policy
from app.models.appointments import appointments
from app.models.conversations import conversations, messages
from app.models.doctors import doctors
from app.models.patients import patients
from app.models.users import users
from app.schemas.appointments import AppointmentStatus
from app.schemas.conversations import (
    ConversationActivity,
    ConversationCreate,
    ConversationResponse,
    MessageResponse,
    Participant,
)

logger = structlog.get_logger(__name__)

CHAT_WINDOW = timedelta(days=7)


class ConversationService:
    """Service for conversations and messages."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def _find(self, patient_id: UUID, doctor_id: UUID) -> dict[str, Any] | None:
        result = await self.db.execute(
            select(conversations).where(
                conversations.c.patient_id == patient_id,
                conversations.c.doctor_id == doctor_id,
            )
        )
        row = result.first()
        return dict(row._mapping) if row else None

    async def ensure(self, patient_id: UUID, doctor_id: UUID) -> tuple[dict[str, Any], bool]:
        """
        Get or create the conversation for a patient/doctor pair.

        A concurrent insert of the same pair hits the unique constraint; the
        existing row is returned in that case.

        Returns:
            The conversation and whether it was created by this call
        """
        existing = await self._find(patient_id, doctor_id)
        if existing is not None:
            return existing, False

        try:
            result = await self.db.execute(
                insert(conversations)
                .values(patient_id=patient_id, doctor_id=doctor_id)
                .returning(conversations)
            )
            row = dict(result.one()._mapping)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "conversation_insert_raced",
                patient_id=str(patient_id),
                doctor_id=str(doctor_id),
            )
            existing = await self._find(patient_id, doctor_id)
            if existing is None:
                raise
            return existing, False

        logger.info("conversation_created", conversation_id=str(row["id"]))
        return row, True

    async def _get_for(self, conversation_id: UUID, principal: Principal) -> dict[str, Any]:
        result = await self.db.execute(
            select(conversations).where(conversations.c.id == conversation_id)
        )
        row = result.first()
        if not row:
            raise NotFoundException("Conversation not found")

        conversation = dict(row._mapping)
        policy.authorize(
            principal,
            Action.MESSAGE,
            patient_id=conversation["patient_id"],
            doctor_id=conversation["doctor_id"],
        )
        return conversation

    def _participant_query(self):
        pu = users.alias("pu")
        du = users.alias("du")
        return (
            select(
                conversations,
                pu.c.full_name.label("patient_name"),
                pu.c.email.label("patient_email"),
                du.c.full_name.label("doctor_name"),
                du.c.email.label("doctor_email"),
            )
            .select_from(
                conversations.join(patients, conversations.c.patient_id == patients.c.id)
                .join(pu, patients.c.user_id == pu.c.id)
                .join(doctors, conversations.c.doctor_id == doctors.c.id)
                .join(du, doctors.c.user_id == du.c.id)
            )
        )

    async def _messages(self, conversation_id: UUID, limit: int | None = None) -> list[MessageResponse]:
        query = (
            select(messages, users.c.full_name.label("sender_name"))
            .select_from(messages.join(users, messages.c.sender_id == users.c.id))
            .where(messages.c.conversation_id == conversation_id)
        )
        if limit is not None:
            query = query.order_by(desc(messages.c.created_at)).limit(limit)
        else:
            query = query.order_by(messages.c.created_at)

        result = await self.db.execute(query)
        return [MessageResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

    async def _to_response(self, row: dict[str, Any], last_only: bool) -> ConversationResponse:
        return ConversationResponse(
            id=row["id"],
            patient_id=row["patient_id"],
            doctor_id=row["doctor_id"],
            created_at=row["created_at"],
            patient=Participant(
                id=row["patient_id"], full_name=row["patient_name"], email=row["patient_email"]
            ),
            doctor=Participant(
                id=row["doctor_id"], full_name=row["doctor_name"], email=row["doctor_email"]
            ),
            messages=await self._messages(row["id"], limit=1 if last_only else None),
        )

    async def _response_for(self, conversation_id: UUID) -> ConversationResponse:
        result = await self.db.execute(
            self._participant_query().where(conversations.c.id == conversation_id)
        )
        return await self._to_response(dict(result.one()._mapping), last_only=False)

    async def list_for(self, principal: Principal) -> list[ConversationResponse]:
        """
        List the caller's conversations with their latest message.

        Raises:
            ForbiddenException: If the caller is not a patient or doctor
        """
        policy.authorize(principal, Action.MESSAGE)

        column = conversations.c.patient_id if principal.is_patient else conversations.c.doctor_id
        result = await self.db.execute(
            self._participant_query()
            .where(column == principal.profile_id)
            .order_by(desc(conversations.c.created_at))
        )
        return [
            await self._to_response(dict(r._mapping), last_only=True) for r in result.fetchall()
        ]

    async def create(self, principal: Principal, data: ConversationCreate) -> ConversationResponse:
        """
        Open (or return) the conversation between a patient and a doctor.

        Raises:
            ForbiddenException: If the caller is not one of the two parties
            NotFoundException: If either party does not exist
        """
        policy.authorize(
            principal, Action.MESSAGE, patient_id=data.patient_id, doctor_id=data.doctor_id
        )

        patient = await self.db.execute(select(patients.c.id).where(patients.c.id == data.patient_id))
        if patient.scalar_one_or_none() is None:
            raise NotFoundException("Patient record not found")
        doctor = await self.db.execute(select(doctors.c.id).where(doctors.c.id == data.doctor_id))
        if doctor.scalar_one_or_none() is None:
            raise NotFoundException("Doctor record not found")

        row, _ = await self.ensure(data.patient_id, data.doctor_id)
        return await self._response_for(row["id"])

    async def create_for_appointment(
        self,
        appointment_id: UUID,
        principal: Principal,
    ) -> tuple[ConversationResponse, bool]:
        """
        Open the conversation for a completed appointment.

        Raises:
            NotFoundException: If the appointment does not exist
            ForbiddenException: If the caller is not a party to it
            BadRequestException: If the appointment is not COMPLETED
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.first()
        if not row:
            raise NotFoundException("Appointment not found")

        policy.authorize(principal, Action.MESSAGE, patient_id=row.patient_id, doctor_id=row.doctor_id)

        if row.status != AppointmentStatus.COMPLETED.value:
            raise BadRequestException("Can only create conversations for completed appointments")

        conversation, created = await self.ensure(row.patient_id, row.doctor_id)
        return await self._response_for(conversation["id"]), created

    async def active(self, conversation_id: UUID, principal: Principal) -> ConversationActivity:
        """
        Report whether messaging is open.

        The window is open for seven days after the end of the pair's most
        recent completed appointment.
        """
        conversation = await self._get_for(conversation_id, principal)

        result = await self.db.execute(
            select(appointments.c.end_time)
            .where(
                appointments.c.patient_id == conversation["patient_id"],
                appointments.c.doctor_id == conversation["doctor_id"],
                appointments.c.status == AppointmentStatus.COMPLETED.value,
                appointments.c.end_time.is_not(None),
            )
            .order_by(desc(appointments.c.end_time))
            .limit(1)
        )
        end_time = as_utc(result.scalar_one_or_none())

        if end_time is None:
            return ConversationActivity(
                active=False,
                reason="No completed appointments found. Please book an appointment first.",
            )

        window_end = end_time + CHAT_WINDOW
        now = utcnow()
        if now > window_end:
            return ConversationActivity(
                active=False,
                reason="Chat window has expired. Please book a new appointment to continue chatting.",
                appointment_end_time=end_time,
                chat_window_end=window_end,
            )

        remaining_days = math.ceil((window_end - now) / timedelta(days=1))
        return ConversationActivity(
            active=True,
            reason=f"Chat is active. You can chat for {remaining_days} more day(s).",
            remaining_days=remaining_days,
            appointment_end_time=end_time,
            chat_window_end=window_end,
        )

    async def get_messages(self, conversation_id: UUID, principal: Principal) -> list[MessageResponse]:
        """List all messages of a conversation, oldest first."""
        await self._get_for(conversation_id, principal)
        return await self._messages(conversation_id)

    async def post_message(
        self,
        conversation_id: UUID,
        principal: Principal,
        content: str,
    ) -> MessageResponse:
        """
        Post a message while the messaging window is open.

        Raises:
            BadRequestException: If the content is blank
            ForbiddenException: If the caller is not a party or the window is closed
        """
        await self._get_for(conversation_id, principal)

        if not content.strip():
            raise BadRequestException("Message content is required")

        activity = await self.active(conversation_id, principal)
        if not activity.active:
            raise ForbiddenException(activity.reason)

        result = await self.db.execute(
            insert(messages)
            .values(
                conversation_id=conversation_id,
                sender_id=principal.user_id,
                content=content.strip(),
            )
            .returning(messages)
        )
        row = dict(result.one()._mapping)
        await self.db.commit()

        return MessageResponse(**row, sender_name=principal.full_name)
