"""Global booking cutoff applied before any availability lookup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

from rentals_api.core.config import get_settings
from rentals_api.services.errors import LeadTimeError
from rentals_api.services.time_windows import booking_zone, coerce_utc, utcnow


@dataclass(slots=True)
class CutoffCheck:
    allowed: bool
    earliest_available: date
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "earliest_available": self.earliest_available.isoformat(),
            "message": self.message,
        }


def earliest_bookable_date(now: datetime | None = None) -> date:
    """Tomorrow before the cutoff hour, otherwise the day after tomorrow."""
    settings = get_settings()
    local_now = coerce_utc(now or utcnow()).astimezone(booking_zone())
    days_ahead = 1 if local_now.hour < settings.booking_cutoff_hour else 2
    return local_now.date() + timedelta(days=days_ahead)


def check_booking_cutoff(day: date, *, now: datetime | None = None) -> CutoffCheck:
    settings = get_settings()
    local_today = coerce_utc(now or utcnow()).astimezone(booking_zone()).date()
    earliest = earliest_bookable_date(now)
    if day >= earliest:
        return CutoffCheck(allowed=True, earliest_available=earliest)

    if day < local_today:
        message = "This date is in the past."
    elif day == local_today:
        message = (
            "Same-day bookings are not available. Please select a date starting "
            f"{earliest.strftime('%A, %B %d').replace(' 0', ' ')}."
        )
    else:
        hour = settings.booking_cutoff_hour
        label = f"{hour % 12 or 12} {'AM' if hour < 12 else 'PM'}"
        message = (
            f"Bookings for tomorrow must be made by {label} the day before. "
            f"The earliest available date is {earliest.isoformat()}."
        )
    return CutoffCheck(allowed=False, earliest_available=earliest, message=message)


def enforce_booking_cutoff(day: date, *, now: datetime | None = None) -> None:
    check = check_booking_cutoff(day, now=now)
    if not check.allowed:
        raise LeadTimeError(
            check.message or "Date is too soon",
            earliest_available=check.earliest_available,
        )
