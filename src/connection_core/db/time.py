# src/connection_core/db/time.py
"""Time utilities for database models and scheduled sweeps."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone-aware columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def iso_week_key(value: datetime) -> str:
    """Return the ISO week identifier (``YYYY-Www``) for ``value``."""
    year, week, _ = value.isocalendar()
    return f"{year}-W{week:02d}"
