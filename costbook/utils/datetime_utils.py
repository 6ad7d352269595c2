"""Datetime utilities for timezone-aware UTC timestamps.

SQLite drops timezone information on storage, so values read back from the
database are naive. ``as_utc`` and ``to_iso`` treat naive values as UTC so
freshly created and reloaded timestamps compare and serialize the same way.

Usage:
    from costbook.utils.datetime_utils import utc_now

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive datetime; aware values are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as an ISO-8601 UTC string, or None."""
    if value is None:
        return None
    return as_utc(value).isoformat()
