"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    id_column(),
    # Ownership / references
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    # Appointment details
    Column("date", DateTime(timezone=True), nullable=False),
    Column("time", String(20), nullable=True),
    Column("type", String(20), nullable=False, server_default=text("'IN_PERSON'")),
    Column("notes", Text, nullable=True),
    # Status management
    Column("status", String(20), nullable=False, server_default=text("'PENDING'")),
    # Video consultations
    Column("meeting_id", Text, nullable=True),
    Column("meeting_url", Text, nullable=True),
    # Set when the doctor completes the consultation
    Column("end_time", DateTime(timezone=True), nullable=True),
    # Audit fields
    created_at_column(),
    updated_at_column(),
    # Constraints
    CheckConstraint(
        "status IN ('PENDING', 'APPROVED', 'REJECTED', 'COMPLETED', 'CANCELED')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "type IN ('IN_PERSON', 'ONLINE', 'VIDEO_CALL')",
        name="appointments_type_check",
    ),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_doctor_id", "doctor_id"),
    Index("idx_appointments_status_date", "status", "date"),
)
