"""In-app notification inbox table."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Table, Text, Uuid, false

from app.models.base import created_at_column, id_column, metadata

notifications = Table(
    "notifications",
    metadata,
    id_column(),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("type", String(50), nullable=False),
    Column("read", Boolean, nullable=False, server_default=false()),
    created_at_column(),
    Index("idx_notifications_user_id", "user_id"),
    Index("idx_notifications_user_read", "user_id", "read"),
)
