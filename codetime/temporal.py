"""
CODETIME — Temporal helpers.

Millisecond epoch conversion and calendar-day arithmetic. All datetimes
handed around the engine are timezone-aware; naive values are assumed
to be UTC.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Return current UTC timestamp in ISO 8601 format."""
    return now_utc().isoformat()


def ensure_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, leave aware ones alone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_millis(dt: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch."""
    return int(round(ensure_aware(dt).timestamp() * 1000))


def from_millis(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def parse_timestamp(value: float | int | str | datetime) -> datetime:
    """Parse a heartbeat timestamp.

    Accepts epoch seconds (WakaTime clients send fractional seconds),
    ISO 8601 strings or datetimes.

    Raises:
        ValueError: If the value cannot be interpreted as a point in time.
    """
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return datetime.fromtimestamp(float(text), tz=timezone.utc)
        except ValueError:
            return ensure_aware(datetime.fromisoformat(text))
    raise ValueError(f"Invalid timestamp: {value!r}")


def get_zone(name: str | None) -> ZoneInfo:
    """Resolve an IANA zone name, falling back to UTC."""
    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def day_of(dt: datetime, tz: ZoneInfo) -> date:
    """Calendar date of ``dt`` as seen in ``tz``."""
    return ensure_aware(dt).astimezone(tz).date()


def day_start(day: date, tz: ZoneInfo) -> datetime:
    """Start of a calendar day in ``tz``, expressed in UTC."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` UTC interval of a calendar day in ``tz``."""
    return day_start(day, tz), day_start(day + timedelta(days=1), tz)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date in ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
