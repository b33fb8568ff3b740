"""Shared utilities and helper functions for domain entities.

Pure utility functions with zero external dependencies.
"""

from datetime import UTC, datetime


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure datetime is timezone-aware with UTC."""
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def utc_now() -> datetime:
    """Current time in UTC, truncated to whole seconds."""
    return datetime.now(UTC).replace(microsecond=0)


def to_unix(dt: datetime) -> int:
    """Convert a datetime to unix seconds (naive values are read as UTC)."""
    return int(ensure_utc(dt).timestamp())


def from_unix(seconds: int | float) -> datetime:
    """Convert unix seconds to an aware UTC datetime with whole seconds."""
    return datetime.fromtimestamp(int(seconds), tz=UTC)
