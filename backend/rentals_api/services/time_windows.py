"""Helpers for converting local schedule times into UTC instants."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

from rentals_api.core.config import get_settings


def booking_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().booking_timezone)


def coerce_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


def local_instant(day: date, at: time) -> datetime:
    """Return the UTC instant for a wall-clock time in the booking timezone."""
    return datetime.combine(day, at, tzinfo=booking_zone()).astimezone(UTC)


def local_today(now: datetime) -> date:
    return coerce_utc(now).astimezone(booking_zone()).date()


def sunday_based_weekday(day: date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def format_window(start: time, end: time) -> str:
    return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"
