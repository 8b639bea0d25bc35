"""Tests for the global booking cutoff."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from rentals_api.services import cutoff_service
from rentals_api.services.errors import LeadTimeError

# 11:00 and 13:00 in New York.
BEFORE_NOON = datetime(2025, 7, 1, 15, 0, tzinfo=UTC)
AFTER_NOON = datetime(2025, 7, 1, 17, 0, tzinfo=UTC)


def test_tomorrow_is_bookable_before_cutoff() -> None:
    check = cutoff_service.check_booking_cutoff(date(2025, 7, 2), now=BEFORE_NOON)
    assert check.allowed is True
    assert check.earliest_available == date(2025, 7, 2)
    assert check.message is None


def test_tomorrow_is_rejected_after_cutoff() -> None:
    check = cutoff_service.check_booking_cutoff(date(2025, 7, 2), now=AFTER_NOON)
    assert check.allowed is False
    assert check.earliest_available == date(2025, 7, 3)
    assert check.message.startswith(
        "Bookings for tomorrow must be made by 12 PM the day before."
    )


def test_same_day_and_past_dates_are_rejected() -> None:
    same_day = cutoff_service.check_booking_cutoff(date(2025, 7, 1), now=BEFORE_NOON)
    past = cutoff_service.check_booking_cutoff(date(2025, 6, 30), now=BEFORE_NOON)
    assert same_day.message.startswith("Same-day bookings are not available.")
    assert past.message == "This date is in the past."


def test_local_date_is_used_near_midnight() -> None:
    # 02:00 UTC on July 2nd is still July 1st in New York.
    now = datetime(2025, 7, 2, 2, 0, tzinfo=UTC)
    assert cutoff_service.earliest_bookable_date(now) == date(2025, 7, 3)


def test_enforce_raises_lead_time_error_with_earliest_date() -> None:
    with pytest.raises(LeadTimeError) as excinfo:
        cutoff_service.enforce_booking_cutoff(date(2025, 7, 1), now=AFTER_NOON)
    assert excinfo.value.earliest_available == date(2025, 7, 3)
    assert excinfo.value.to_detail()["earliest_available"] == "2025-07-03"
