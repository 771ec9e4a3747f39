"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Table,
    Text,
    false,
    true,
)

from app.models.base import created_at_column, id_column, metadata, updated_at_column

users = Table(
    "users",
    metadata,
    id_column(),
    # Identity
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("password_hash", Text, nullable=False),
    Column("full_name", Text, nullable=False),
    # Role is fixed at registration
    Column("role", Text, nullable=False),
    # Account state
    Column("email_verified", Boolean, nullable=False, server_default=false()),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    # Audit
    created_at_column(),
    updated_at_column(),
    Column("last_login_at", DateTime(timezone=True)),
    CheckConstraint("role IN ('PATIENT', 'DOCTOR', 'ADMIN')", name="users_role_check"),
)
