"""Conversation and message tables using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, Index, Table, Text, UniqueConstraint, Uuid

from app.models.base import created_at_column, id_column, metadata

conversations = Table(
    "conversations",
    metadata,
    id_column(),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    created_at_column(),
    UniqueConstraint("patient_id", "doctor_id", name="unique_conversation_pair"),
)

messages = Table(
    "messages",
    metadata,
    id_column(),
    Column(
        "conversation_id",
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sender_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("content", Text, nullable=False),
    created_at_column(),
    Index("idx_messages_conversation_created", "conversation_id", "created_at"),
)
