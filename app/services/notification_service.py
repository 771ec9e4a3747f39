"""Appointment e-mail dispatch and the in-app notification inbox."""

from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import desc, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.notifications import notifications
from app.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    NotificationType,
)
from app.services.email_service import EmailService

logger = structlog.get_logger(__name__)

_TYPE_LABELS = {
    "IN_PERSON": "In person",
    "ONLINE": "Online",
    "VIDEO_CALL": "Video call",
}


def _format_date(value: datetime | None) -> str:
    return value.strftime("%A, %d %B %Y") if value else ""


def _format_time(value: datetime | None) -> str:
    return value.strftime("%H:%M") if value else ""


class NotificationDispatcher:
    """
    Sends appointment e-mails to the patient and the doctor.

    ``send_notification`` raises on failure; ``dispatch`` is the boundary used
    by request handlers and jobs and never raises. Outcomes are counted per
    e-mail in ``sent_count`` and ``failed_count``.
    """

    def __init__(self, email_service: EmailService):
        """Initialize dispatcher with an e-mail transport."""
        self.email_service = email_service
        self.sent_count = 0
        self.failed_count = 0

    def build_variables(
        self,
        appointment: dict[str, Any],
        patient_name: str,
        doctor_name: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Assemble template variables for one appointment."""
        date = appointment.get("date")
        appointment_type = str(appointment.get("type") or "IN_PERSON")
        meeting_url = appointment.get("meeting_url")
        is_video = appointment_type == "VIDEO_CALL"

        variables: dict[str, Any] = {
            "patient_name": patient_name,
            "doctor_name": doctor_name,
            "appointment_date": _format_date(date),
            "appointment_time": appointment.get("time") or _format_time(date),
            "appointment_type": _TYPE_LABELS.get(appointment_type, appointment_type),
            "meeting_url": meeting_url or "",
            "video_note": (
                "This is a video consultation. You will receive a meeting link "
                "once the doctor approves the appointment."
                if is_video
                else ""
            ),
            "meeting_note": f"Meeting link: {meeting_url}" if meeting_url else "",
        }

        previous = (extra or {}).get("previous_date")
        if isinstance(previous, datetime):
            variables["previous_date"] = _format_date(previous)
            variables["previous_time"] = _format_time(previous)

        return variables

    async def send_notification(
        self,
        appointment: dict[str, Any],
        patient_name: str,
        doctor_name: str,
        kind: NotificationType,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """
        Send the ``kind`` e-mail to both parties of an appointment.

        Args:
            appointment: Appointment row joined with ``patient_email`` and ``doctor_email``
            patient_name: Patient display name
            doctor_name: Doctor display name
            kind: Which notification to send
            extra: Additional variables (``previous_date`` for reschedules)

        Raises:
            Exception: Whatever the transport raised for the first failed e-mail
        """
        variables = self.build_variables(appointment, patient_name, doctor_name, extra)
        recipients = (
            ("patient", appointment.get("patient_email")),
            ("doctor", appointment.get("doctor_email")),
        )

        errors: list[Exception] = []
        for audience, address in recipients:
            if not address:
                continue
            try:
                await self.email_service.send_template(
                    to_address=address,
                    kind=kind.value,
                    audience=audience,
                    variables=variables,
                )
                self.sent_count += 1
            except Exception as e:
                self.failed_count += 1
                errors.append(e)

        if errors:
            raise errors[0]

    async def dispatch(
        self,
        appointment: dict[str, Any],
        patient_name: str,
        doctor_name: str,
        kind: NotificationType,
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """
        Send a notification, logging instead of raising on failure.

        Returns:
            True if every e-mail went out
        """
        try:
            await self.send_notification(appointment, patient_name, doctor_name, kind, extra)
        except Exception as e:
            logger.warning(
                "appointment_notification_failed",
                appointment_id=str(appointment.get("id")),
                kind=kind.value,
                error=str(e),
            )
            return False

        logger.info(
            "appointment_notification_sent",
            appointment_id=str(appointment.get("id")),
            kind=kind.value,
        )
        return True

    async def dispatch_verification(self, email: str, full_name: str, verification_url: str) -> bool:
        """Send the e-mail verification message, never raising."""
        try:
            await self.email_service.send_template(
                to_address=email,
                kind="VERIFICATION",
                audience="user",
                variables={"full_name": full_name, "verification_url": verification_url},
            )
        except Exception as e:
            self.failed_count += 1
            logger.warning("verification_email_failed", email=email, error=str(e))
            return False

        self.sent_count += 1
        return True


class NotificationService:
    """Service for the in-app notification inbox."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def create_notification(
        self,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: str,
    ) -> dict[str, Any]:
        """
        Add an inbox entry without committing.

        The caller commits together with the change that triggered it.
        """
        result = await self.db.execute(
            insert(notifications)
            .values(
                user_id=user_id,
                title=title,
                message=message,
                type=notification_type,
            )
            .returning(notifications)
        )
        return dict(result.one()._mapping)

    async def list_for_user(self, user_id: UUID) -> NotificationListResponse:
        """
        Get a user's inbox, newest first.

        Args:
            user_id: Owner of the notifications

        Returns:
            Notifications with unread count
        """
        result = await self.db.execute(
            select(notifications)
            .where(notifications.c.user_id == user_id)
            .order_by(desc(notifications.c.created_at))
        )
        items = [NotificationResponse.model_validate(dict(r._mapping)) for r in result.fetchall()]

        unread = await self.db.execute(
            select(func.count())
            .select_from(notifications)
            .where(notifications.c.user_id == user_id, notifications.c.read.is_(False))
        )

        return NotificationListResponse(notifications=items, unread_count=unread.scalar_one())

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> NotificationResponse:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotFoundException: If the notification does not exist for this user
        """
        result = await self.db.execute(
            update(notifications)
            .where(
                notifications.c.id == notification_id,
                notifications.c.user_id == user_id,
            )
            .values(read=True)
            .returning(notifications)
        )
        row = result.fetchone()
        if row is None:
            raise NotFoundException("Notification not found")

        await self.db.commit()
        return NotificationResponse.model_validate(dict(row._mapping))
