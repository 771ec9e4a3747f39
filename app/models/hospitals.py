"""Hospital model definition using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, String, Table, Text, text

from app.models.base import created_at_column, id_column, metadata, updated_at_column

hospitals = Table(
    "hospitals",
    metadata,
    id_column(),
    Column("name", Text, nullable=False),
    Column("address", Text),
    Column("phone", String(20)),
    Column("email", Text),
    Column("status", String(20), nullable=False, server_default=text("'PENDING'")),
    created_at_column(),
    updated_at_column(),
    CheckConstraint(
        "status IN ('PENDING', 'APPROVED', 'REJECTED', 'SUSPENDED')",
        name="hospitals_status_check",
    ),
)
