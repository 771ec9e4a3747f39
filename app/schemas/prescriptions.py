"""Prescription schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class PrescriptionCreate(BaseModel):
    """Schema for a doctor writing a prescription."""

    patient_id: UUID
    medication: str = Field(..., min_length=1, max_length=500)
    dosage: str = Field(..., min_length=1, max_length=200)
    instructions: str = Field(..., min_length=1, max_length=2000)


class PrescriptionUpdate(BaseModel):
    """Editable prescription fields."""

    medication: str | None = Field(None, min_length=1, max_length=500)
    dosage: str | None = Field(None, min_length=1, max_length=200)
    instructions: str | None = Field(None, min_length=1, max_length=2000)


class PrescriptionResponse(BaseModel):
    """Schema for prescription response."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    medication: str
    dosage: str
    instructions: str
    created_at: datetime
    updated_at: datetime
    patient_name: str | None = None
    doctor_name: str | None = None

    model_config = {"from_attributes": True}
