"""Prescriptions table model using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, Index, Table, Text, Uuid

from app.models.base import created_at_column, id_column, metadata, updated_at_column

prescriptions = Table(
    "prescriptions",
    metadata,
    id_column(),
    # Fixed at creation
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    # Editable by the authoring doctor
    Column("medication", Text, nullable=False),
    Column("dosage", Text, nullable=False),
    Column("instructions", Text, nullable=False),
    created_at_column(),
    updated_at_column(),
    Index("idx_prescriptions_patient_id", "patient_id"),
    Index("idx_prescriptions_doctor_id", "doctor_id"),
)
