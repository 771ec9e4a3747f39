"""User and role profile schemas."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.schemas.appointments import AppointmentResponse
from app.schemas.prescriptions import PrescriptionResponse


class UserRole(str, Enum):
    """Role assigned at registration."""

    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class ReviewStatus(str, Enum):
    """Admin-controlled approval status for doctors, hospitals and documents."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class UserResponse(BaseModel):
    """Public view of a user record."""

    id: UUID
    email: EmailStr
    full_name: str
    role: UserRole
    email_verified: bool
    is_active: bool = True
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PatientProfile(BaseModel):
    """Patient profile fields."""

    id: UUID
    user_id: UUID
    date_of_birth: date | None = None
    gender: str | None = None
    phone: str | None = None
    address: str | None = None
    medical_history: str | None = None
    profile_picture_url: str | None = None

    model_config = {"from_attributes": True}


class PatientUpdate(BaseModel):
    """Fields a patient may change on their own profile."""

    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=20)
    address: str | None = None
    medical_history: str | None = None


class DoctorProfile(BaseModel):
    """Doctor profile fields."""

    id: UUID
    user_id: UUID
    specialization: str | None = None
    phone: str | None = None
    address: str | None = None
    hospital_id: UUID | None = None
    status: ReviewStatus

    model_config = {"from_attributes": True}


class DoctorUpdate(BaseModel):
    """Fields a doctor may change on their own profile."""

    specialization: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=20)
    address: str | None = None


class DoctorSummary(DoctorProfile):
    """Doctor profile joined with the owning user's name and e-mail."""

    full_name: str
    email: EmailStr


class PatientSummary(PatientProfile):
    """Patient profile joined with the owning user's name and e-mail."""

    full_name: str
    email: EmailStr


class RosterPatient(PatientSummary):
    """A patient on a doctor's roster with their latest completed visit."""

    last_visit_date: datetime | None = None


class PatientChart(PatientSummary):
    """
    One patient as seen by a treating doctor.

    Only appointments and prescriptions shared with that doctor are listed.
    """

    appointments: list[AppointmentResponse] = Field(default_factory=list)
    prescriptions: list[PrescriptionResponse] = Field(default_factory=list)
