"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Date, ForeignKey, String, Table, Text, Uuid

from app.models.base import created_at_column, id_column, metadata, updated_at_column

patients = Table(
    "patients",
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
    # Personal information
    Column("date_of_birth", Date),
    Column("gender", String(20)),
    Column("phone", String(20)),
    Column("address", Text),
    # Free-text medical history
    Column("medical_history", Text),
    Column("profile_picture_url", Text),
    # Metadata
    created_at_column(),
    updated_at_column(),
)
