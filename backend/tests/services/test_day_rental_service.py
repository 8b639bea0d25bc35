"""Tests for day-rental availability resolution."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

import pytest
from sqlalchemy import update

from rentals_api.models import (
    BlackoutDate,
    BookingType,
    OpsResourceSchedule,
    Unit,
    UnitStatus,
)
from rentals_api.services import day_rental_service, resource_registry_service
from rentals_api.services.errors import ValidationError
from rentals_api.services.time_windows import booking_zone, local_instant

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=UTC)
TUESDAY = date(2025, 7, 15)
WEDNESDAY = TUESDAY + timedelta(days=1)


async def _resolve(sessionmaker, delivery: date, pickup: date, **kwargs):
    kwargs.setdefault("now", NOW)
    async with sessionmaker() as session:
        product = await resource_registry_service.get_product(
            session, product_ref="bounce-castle"
        )
        return await day_rental_service.resolve_day_rental(
            session, product=product, delivery_date=delivery, pickup_date=pickup, **kwargs
        )


def test_rental_dates_follow_booking_type() -> None:
    saturday, sunday = date(2025, 7, 19), date(2025, 7, 20)
    daily = day_rental_service.derive_rental_dates(BookingType.DAILY, TUESDAY)
    weekend = day_rental_service.derive_rental_dates(BookingType.WEEKEND, saturday)
    sunday_only = day_rental_service.derive_rental_dates(BookingType.SUNDAY, sunday)

    assert (daily.delivery_date, daily.pickup_date) == (TUESDAY, TUESDAY)
    assert (weekend.delivery_date, weekend.pickup_date) == (saturday, date(2025, 7, 21))
    assert (sunday_only.delivery_date, sunday_only.pickup_date) == (
        saturday,
        date(2025, 7, 21),
    )


@pytest.mark.parametrize(
    ("booking_type", "event_date"),
    [
        (BookingType.WEEKEND, TUESDAY),
        (BookingType.SUNDAY, date(2025, 7, 19)),
        (BookingType.SLOT, TUESDAY),
    ],
)
def test_rental_dates_reject_mismatched_days(booking_type, event_date) -> None:
    with pytest.raises(ValidationError):
        day_rental_service.derive_rental_dates(booking_type, event_date)


@pytest.mark.asyncio
async def test_same_day_rental_assigns_unit_crew_and_vehicle(sessionmaker, catalog) -> None:
    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)

    assert resolution.is_available is True
    assert resolution.unit_id == catalog["castle_unit_id"]
    assert resolution.same_day_pickup is True
    assert resolution.demotion_reason is None
    assert resolution.delivery_crew_id == catalog["crew_id"]
    assert resolution.pickup_crew_id == catalog["crew_id"]
    assert resolution.delivery_vehicle_id == catalog["van_id"]
    assert resolution.pickup_vehicle_id == catalog["van_id"]

    timeline = resolution.timeline
    zone = booking_zone()
    assert timeline.service_start.astimezone(zone).time() == time(7, 30)
    assert timeline.service_end.astimezone(zone).time() == time(21, 0)
    assert timeline.delivery_window == "08:00-11:00"
    assert timeline.pickup_window == "18:00-20:00"


@pytest.mark.asyncio
async def test_shared_evening_usage_demotes_pickup_to_next_morning(
    sessionmaker, catalog, booking_factory
) -> None:
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["foam_id"],
            unit_id=catalog["foam_unit_id"],
            day=TUESDAY,
            start=time(17, 0),
            end=time(21, 30),
        )

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)

    assert resolution.is_available is True
    assert resolution.same_day_requested is True
    assert resolution.same_day_pickup is False
    assert resolution.demotion_reason == day_rental_service.REASON_SAME_DAY_CONFLICT
    assert resolution.timeline.pickup_date == WEDNESDAY
    assert resolution.timeline.pickup_window == "08:00-10:00"
    assert resolution.timeline.service_end == local_instant(WEDNESDAY, time(11, 0))


@pytest.mark.asyncio
async def test_required_same_day_pickup_reports_conflict(
    sessionmaker, catalog, booking_factory
) -> None:
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["foam_id"],
            unit_id=catalog["foam_unit_id"],
            day=TUESDAY,
            start=time(17, 0),
            end=time(21, 30),
        )

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY, require_same_day=True)
    assert resolution.is_available is False
    assert resolution.reason_code == day_rental_service.REASON_SAME_DAY_CONFLICT


@pytest.mark.asyncio
async def test_missing_evening_crew_demotes_when_unit_stays_free(
    sessionmaker, catalog
) -> None:
    async with sessionmaker() as session:
        session.add(
            OpsResourceSchedule(
                resource_id=catalog["crew_id"],
                day_of_week=2,
                start_time=time(8, 0),
                end_time=time(12, 0),
            )
        )
        await session.commit()

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)

    assert resolution.is_available is True
    assert resolution.demotion_reason == day_rental_service.REASON_NO_CREW
    assert resolution.timeline.pickup_date == WEDNESDAY
    assert resolution.delivery_crew_id == catalog["crew_id"]
    assert resolution.pickup_crew_id == catalog["crew_id"]


@pytest.mark.asyncio
async def test_missing_evening_crew_keeps_same_day_when_unit_is_busy_next_day(
    sessionmaker, catalog, booking_factory
) -> None:
    async with sessionmaker() as session:
        session.add(
            OpsResourceSchedule(
                resource_id=catalog["crew_id"],
                day_of_week=2,
                start_time=time(8, 0),
                end_time=time(12, 0),
            )
        )
        await session.commit()
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["castle_id"],
            unit_id=catalog["castle_unit_id"],
            day=WEDNESDAY,
            start=time(7, 0),
            end=time(12, 0),
        )

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)

    assert resolution.is_available is True
    assert resolution.same_day_pickup is True
    assert resolution.demotion_reason is None
    assert resolution.pickup_crew_id is None


@pytest.mark.asyncio
async def test_booked_unit_reports_no_unit_with_alternative(
    sessionmaker, catalog, booking_factory
) -> None:
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["castle_id"],
            unit_id=catalog["castle_unit_id"],
            day=TUESDAY,
            start=time(6, 0),
            end=time(22, 0),
        )

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)

    assert resolution.is_available is False
    assert resolution.reason_code == day_rental_service.REASON_NO_UNIT
    assert resolution.unavailable_reason == "No units available for these dates"
    assert resolution.alternative == {
        "event_date": WEDNESDAY.isoformat(),
        "delivery_date": WEDNESDAY.isoformat(),
        "pickup_date": WEDNESDAY.isoformat(),
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("booking_type", "event_date"),
    [
        (BookingType.WEEKEND, date(2025, 7, 26)),
        (BookingType.SUNDAY, date(2025, 7, 27)),
    ],
)
async def test_alternative_keeps_the_booking_type(
    sessionmaker, catalog, booking_factory, booking_type, event_date
) -> None:
    sunday = date(2025, 7, 20)
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["castle_id"],
            unit_id=catalog["castle_unit_id"],
            day=sunday,
            start=time(6, 0),
            end=time(22, 0),
        )

    resolution = await _resolve(
        sessionmaker, date(2025, 7, 19), date(2025, 7, 21), booking_type=booking_type
    )

    assert resolution.reason_code == day_rental_service.REASON_NO_UNIT
    dates = day_rental_service.derive_rental_dates(booking_type, event_date)
    assert resolution.alternative == {
        "event_date": event_date.isoformat(),
        "delivery_date": dates.delivery_date.isoformat(),
        "pickup_date": dates.pickup_date.isoformat(),
    }


@pytest.mark.asyncio
async def test_units_in_maintenance_are_not_offered(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        await session.execute(
            update(Unit)
            .where(Unit.id == catalog["castle_unit_id"])
            .values(status=UnitStatus.MAINTENANCE)
        )
        await session.commit()

    resolution = await _resolve(sessionmaker, TUESDAY, TUESDAY)
    assert resolution.is_available is False
    assert resolution.reason_code == day_rental_service.REASON_NO_UNIT


@pytest.mark.asyncio
async def test_lead_time_rejects_regardless_of_free_units(sessionmaker, catalog) -> None:
    now = datetime(2025, 7, 14, 15, 0, tzinfo=UTC)
    resolution = await _resolve(
        sessionmaker, TUESDAY, TUESDAY, now=now, lead_time_hours=24
    )

    assert resolution.is_available is False
    assert resolution.reason_code == day_rental_service.REASON_TOO_SOON
    assert resolution.unavailable_reason == "Requires 24 hours advance booking"
    assert resolution.earliest_available == now + timedelta(hours=24)


@pytest.mark.asyncio
async def test_pickup_date_blackout_is_unavailable(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        session.add(
            BlackoutDate(
                product_id=catalog["castle_id"],
                start_date=WEDNESDAY,
                end_date=WEDNESDAY,
            )
        )
        await session.commit()

    resolution = await _resolve(sessionmaker, TUESDAY, WEDNESDAY)
    assert resolution.reason_code == day_rental_service.REASON_BLACKOUT
    assert resolution.unavailable_reason == "Date not available"


@pytest.mark.asyncio
async def test_pickup_before_delivery_is_invalid(sessionmaker, catalog) -> None:
    with pytest.raises(ValidationError):
        await _resolve(sessionmaker, WEDNESDAY, TUESDAY)
