from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional, Union

from ..core.exceptions import ValidationError


def parse_iso_date(value: Union[str, date]) -> date:
    """Parse YYYY-MM-DD string into date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip()[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_time_of_day(value: Union[str, time, None]) -> Optional[time]:
    """Parse HH:MM or HH:MM:SS into a time. Empty input gives None."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    v = str(value).strip()
    if not v:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(v, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Invalid time (HH:MM): {value!r}")


def parse_local_datetime(value: Union[str, datetime]) -> datetime:
    """Parse an ISO timestamp into a naive local wall-clock datetime.

    Any offset is dropped rather than converted: the value already is the
    user's local time.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "")).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"Invalid timestamp (ISO 8601): {value!r}")


def wall_clock(value: Optional[datetime]) -> Optional[str]:
    """HH:MM:SS of a stored local timestamp, without any timezone conversion."""
    if value is None:
        return None
    return value.strftime("%H:%M:%S")


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def now_utc() -> datetime:
    """Current UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)
