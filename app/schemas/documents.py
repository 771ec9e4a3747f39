"""Schemas for medical records and doctor credential documents."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.users import ReviewStatus


class FileMetadata(BaseModel):
    """Metadata of a file already uploaded to object storage."""

    title: str = Field(..., min_length=1, max_length=300)
    file_url: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=300)
    size: int = Field(..., gt=0)


class MedicalRecordCreate(FileMetadata):
    """Register a medical record upload."""

    description: str | None = Field(None, max_length=2000)


class MedicalRecordResponse(BaseModel):
    """Schema for medical record response."""

    id: UUID
    patient_id: UUID
    title: str
    description: str | None = None
    file_url: str
    file_type: str
    file_name: str
    size: int
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class DoctorDocumentCreate(FileMetadata):
    """Register a credential document upload."""


class DoctorDocumentResponse(BaseModel):
    """Schema for doctor document response."""

    id: UUID
    doctor_id: UUID
    title: str
    file_url: str
    file_type: str
    file_name: str
    size: int
    status: ReviewStatus
    uploaded_at: datetime
    public_url: str | None = None

    model_config = {"from_attributes": True}


class SignedUrlResponse(BaseModel):
    """Short-lived download link."""

    url: str
    expires_in: int
