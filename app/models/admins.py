"""Admin model definition using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, Table, Uuid

from app.models.base import created_at_column, id_column, metadata, updated_at_column

admins = Table(
    "admins",
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
    created_at_column(),
    updated_at_column(),
)
