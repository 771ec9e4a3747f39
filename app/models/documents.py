"""Metadata tables for files kept in object storage."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from app.models.base import created_at_column, id_column, metadata

medical_records = Table(
    "medical_records",
    metadata,
    id_column(),
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("title", Text, nullable=False),
    Column("description", Text),
    # Object key or absolute storage URL
    Column("file_url", Text, nullable=False),
    Column("file_type", String(100), nullable=False),
    Column("file_name", Text, nullable=False),
    Column("size", Integer, nullable=False),
    created_at_column("uploaded_at"),
)

doctor_documents = Table(
    "doctor_documents",
    metadata,
    id_column(),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("title", Text, nullable=False),
    Column("file_url", Text, nullable=False),
    Column("file_type", String(100), nullable=False),
    Column("file_name", Text, nullable=False),
    Column("size", Integer, nullable=False),
    # Gates admin approval of credentials
    Column("status", String(20), nullable=False, server_default=text("'PENDING'"), index=True),
    created_at_column("uploaded_at"),
    CheckConstraint(
        "status IN ('PENDING', 'APPROVED', 'REJECTED', 'SUSPENDED')",
        name="doctor_documents_status_check",
    ),
)
