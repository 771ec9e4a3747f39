"""Doctor model definition using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, String, Table, Text, Uuid, text

from app.models.base import created_at_column, id_column, metadata, updated_at_column

doctors = Table(
    "doctors",
    metadata,
    id_column(),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column(
        "hospital_id",
        Uuid,
        ForeignKey("hospitals.id", ondelete="SET NULL"),
        nullable=True,
    ),
    # Professional information
    Column("specialization", String(200), index=True),
    Column("phone", String(20)),
    Column("address", Text),
    # Admin-controlled gate to practice
    Column("status", String(20), nullable=False, server_default=text("'PENDING'"), index=True),
    # Metadata
    created_at_column(),
    updated_at_column(),
    CheckConstraint(
        "status IN ('PENDING', 'APPROVED', 'REJECTED', 'SUSPENDED')",
        name="doctors_status_check",
    ),
)
