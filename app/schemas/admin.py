"""Admin dashboard schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.users import ReviewStatus


class StatusUpdateRequest(BaseModel):
    """Admin status change for a doctor, hospital or document."""

    status: ReviewStatus


class HospitalCreate(BaseModel):
    """New hospital; starts in PENDING review."""

    name: str = Field(..., min_length=1, max_length=300)
    address: str | None = None
    phone: str | None = Field(None, max_length=20)
    email: str | None = None


class DashboardStatsResponse(BaseModel):
    """Headline counts for the admin dashboard."""

    doctors: int
    patients: int
    appointments: int
    completed_appointments: int
    pending_documents: int


class HospitalResponse(BaseModel):
    """Schema for hospital response."""

    id: UUID
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    status: ReviewStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminNotificationUser(BaseModel):
    """Recipient details on the admin notification log."""

    name: str
    email: str


class AdminNotificationResponse(BaseModel):
    """Notification log entry."""

    id: UUID
    title: str
    message: str
    type: str
    read: bool
    created_at: datetime
    user: AdminNotificationUser


class AdminMedicalRecordResponse(BaseModel):
    """Medical record with the owning patient's name."""

    id: UUID
    patient_id: UUID
    patient_name: str
    title: str
    file_name: str
    file_type: str
    size: int
    uploaded_at: datetime
