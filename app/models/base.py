"""Shared metadata and column helpers for all tables."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, MetaData, Uuid, func

# Metadata for all tables
metadata = MetaData()


def id_column() -> Column:
    """UUID primary key generated client-side."""
    return Column("id", Uuid, primary_key=True, default=uuid4)


def created_at_column(name: str = "created_at") -> Column:
    """Creation timestamp."""
    return Column(name, DateTime(timezone=True), nullable=False, server_default=func.now())


def updated_at_column() -> Column:
    """Last modification timestamp."""
    return Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
