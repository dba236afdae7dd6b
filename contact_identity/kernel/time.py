from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

UTC = timezone.utc

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return a tz-aware UTC timestamp."""
    return datetime.now(UTC)


def is_tz_aware(value: datetime) -> bool:
    """True if a datetime is timezone-aware (has a non-None UTC offset)."""
    return value.tzinfo is not None and value.utcoffset() is not None


def coerce_utc(value: datetime) -> datetime:
    """Coerce any datetime to tz-aware UTC. Naive values are read as UTC.

    Adapters call this when reading datetimes back from drivers that drop
    the offset (e.g. SQLite in local runs).
    """
    if is_tz_aware(value):
        return value.astimezone(UTC)
    return value.replace(tzinfo=UTC)
