"""Datetime normalization for stored timestamps.

Timestamps are persisted as fixed-width UTC strings so that SQL range
comparisons are plain string comparisons. Naive datetimes are taken to be
local time.
"""
from datetime import date, datetime, time, timezone

UTC = timezone.utc

DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

END_OF_DAY = time(23, 59, 59, 999000)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_utc(value: datetime | date | str) -> datetime:
    """Normalize a datetime, date or ISO-8601 string to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    # astimezone() on a naive datetime assumes local time
    return value.astimezone(UTC)


def to_db(value: datetime | date | str | None) -> str | None:
    """Serialize a timestamp for storage."""
    if value is None:
        return None
    return to_utc(value).strftime(DB_FORMAT)


def from_db(value: str | None) -> datetime | None:
    """Parse a stored timestamp."""
    if value is None:
        return None
    return datetime.strptime(value, DB_FORMAT).replace(tzinfo=UTC)


def day_bounds(day: datetime | date) -> tuple[datetime, datetime]:
    """Return the local-time 00:00:00.000 to 23:59:59.999 window of a calendar day."""
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone()
        day = day.date()
    start = datetime.combine(day, time.min).astimezone(UTC)
    end = datetime.combine(day, END_OF_DAY).astimezone(UTC)
    return start, end
