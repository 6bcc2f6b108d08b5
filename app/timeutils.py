"""UTC datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime read back from the database.

    SQLite has no timezone-aware column type, so DateTime(timezone=True)
    values come back naive even though they were written in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
