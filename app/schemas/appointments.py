"""Appointment schemas for request/response validation."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class AppointmentType(str, Enum):
    """How the consultation takes place."""

    IN_PERSON = "IN_PERSON"
    ONLINE = "ONLINE"
    VIDEO_CALL = "VIDEO_CALL"


def _assume_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentCreate(BaseModel):
    """Schema for a patient booking an appointment."""

    doctor_id: UUID
    date: datetime
    type: str | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Store dates in UTC; naive values are taken to be UTC already."""
        return _assume_utc(v)  # type: ignore[return-value]


class AppointmentUpdate(BaseModel):
    """
    Schema for updating an appointment.

    Doctors may send any field; patients may only send ``notes``.
    """

    status: AppointmentStatus | None = None
    notes: str | None = Field(None, max_length=2000)
    date: datetime | None = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime | None) -> datetime | None:
        """Store dates in UTC; naive values are taken to be UTC already."""
        return _assume_utc(v)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    date: datetime
    time: str | None = None
    type: AppointmentType
    status: AppointmentStatus
    notes: str | None = None
    meeting_id: str | None = None
    meeting_url: str | None = None
    end_time: datetime | None = None
    created_at: datetime
    updated_at: datetime
    patient_name: str | None = None
    doctor_name: str | None = None

    model_config = {"from_attributes": True}


class MeetingParticipant(BaseModel):
    """Participant shown on the meeting page."""

    id: UUID
    full_name: str
    specialization: str | None = None


class MeetingResponse(BaseModel):
    """Video meeting details for an appointment."""

    meeting_id: str | None
    meeting_url: str | None
    appointment: AppointmentResponse
    patient: MeetingParticipant
    doctor: MeetingParticipant


class ReminderResult(BaseModel):
    """Outcome of one reminder."""

    appointment_id: UUID
    patient_email: str
    doctor_email: str
    status: str
    type: AppointmentType
    has_meeting_url: bool
    error: str | None = None


class ReminderRunResponse(BaseModel):
    """Summary of a reminder job run."""

    message: str
    total_appointments: int
    results: list[ReminderResult]


class BookingInitiateRequest(AppointmentCreate):
    """Book an appointment and open its payment in one step."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str | None = Field(None, min_length=3, max_length=3)
    description: str = Field(..., min_length=1, max_length=500)


class BookingInitiateResponse(BaseModel):
    """Created appointment id with the checkout details."""

    appointment_id: UUID
    payment_id: UUID
    authorization_url: str
    reference: str
