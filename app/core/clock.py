"""Timezone-aware time helpers."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from the database."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
