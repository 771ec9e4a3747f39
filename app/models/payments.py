"""Payments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

payments = Table(
    "payments",
    metadata,
    # Also used as the reference handed to the gateway
    id_column(),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("method", String(20), nullable=False, server_default=text("'CARD'")),
    Column("status", String(20), nullable=False, server_default=text("'PENDING'")),
    Column("description", Text, nullable=True),
    Column("gateway_reference", Text, nullable=True, unique=True),
    created_at_column(),
    updated_at_column(),
    CheckConstraint(
        "status IN ('PENDING', 'SUCCESS', 'FAILED')",
        name="payments_status_check",
    ),
    Index("idx_payments_user_id", "user_id"),
    Index("idx_payments_appointment_id", "appointment_id"),
)
