"""Timestamp conversion: filesystem epoch seconds -> timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum


def from_timestamp(value: float) -> datetime:
    """Convert POSIX epoch seconds (as returned by ``os.stat``) to an aware UTC datetime."""
    return pendulum.from_timestamp(value, tz="UTC")


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    return ensure_aware(dt).isoformat()
