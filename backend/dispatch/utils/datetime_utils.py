"""
Timezone-aware datetime utilities.

Occurrence timestamps are stored in UTC; calendar dates and wall-clock times
are interpreted in the plan's IANA timezone.
"""

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dispatch.core.exceptions import ValidationError

# UTC timezone constant
UTC = timezone.utc


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ValidationError if unknown."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {tz_name!r}", field="timezone") from exc


def local_today(tz_name: str, now: Optional[datetime] = None) -> date:
    """
    Get today's date in the given timezone.

    Example:
        >>> local_today("Asia/Tokyo", datetime(2024, 1, 19, 23, 0, tzinfo=UTC))
        date(2024, 1, 20)
    """
    current = ensure_utc(now) if now is not None else now_utc()
    return current.astimezone(get_zone(tz_name)).date()


def local_datetime_to_utc(day: date, wall_time: time, tz_name: str) -> datetime:
    """
    Combine a calendar date and wall-clock time in ``tz_name`` and return UTC.

    Nonexistent or ambiguous civil times around DST transitions are resolved
    by zoneinfo (fold=0).
    """
    localized = datetime.combine(day, wall_time, tzinfo=get_zone(tz_name))
    return localized.astimezone(UTC)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert an instant to the wall-clock datetime in ``tz_name``."""
    return ensure_utc(dt).astimezone(get_zone(tz_name))


def local_date_of(dt: datetime, tz_name: str) -> date:
    """Calendar date of an instant as seen in ``tz_name``."""
    return to_local(dt, tz_name).date()


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Naive datetimes (as returned by SQLite) are assumed to be UTC.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def parse_hhmm(value: str) -> time:
    """Parse an ``HH:MM`` string into a time."""
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError as exc:
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}") from exc


def format_hhmm(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%H:%M")
