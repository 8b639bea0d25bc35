"""Availability resolution for continuous day-rental products."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.core.config import get_settings
from rentals_api.models import Booking, BookingType, OpsResourceType, Product
from rentals_api.services import resource_registry_service
from rentals_api.services.errors import ValidationError
from rentals_api.services.resource_registry_service import ACTIVE_BOOKING_STATUSES
from rentals_api.services.time_windows import (
    coerce_utc,
    format_window,
    local_instant,
    utcnow,
)

logger = logging.getLogger(__name__)

DELIVERY_WINDOW = (time(8, 0), time(11, 0))
SAME_DAY_PICKUP_WINDOW = (time(18, 0), time(20, 0))
NEXT_DAY_PICKUP_WINDOW = (time(8, 0), time(10, 0))
ALTERNATIVE_SEARCH_DAYS = 14

REASON_TOO_SOON = "too_soon"
REASON_BLACKOUT = "blackout"
REASON_NO_UNIT = "no_unit"
REASON_SAME_DAY_CONFLICT = "same_day_conflict"
REASON_NO_CREW = "no_crew"


@dataclass(slots=True)
class RentalDates:
    delivery_date: date
    pickup_date: date


def derive_rental_dates(booking_type: BookingType, event_date: date) -> RentalDates:
    """Map a booking type and event date onto delivery and pickup dates."""
    weekday = event_date.weekday()
    if booking_type == BookingType.DAILY:
        return RentalDates(delivery_date=event_date, pickup_date=event_date)
    if booking_type == BookingType.WEEKEND:
        if weekday not in (5, 6):
            raise ValidationError("Weekend rentals must start on a Saturday or Sunday")
        return RentalDates(
            delivery_date=event_date, pickup_date=event_date + timedelta(days=2)
        )
    if booking_type == BookingType.SUNDAY:
        if weekday != 6:
            raise ValidationError("Sunday rentals are only available for Sunday events")
        return RentalDates(
            delivery_date=event_date - timedelta(days=1),
            pickup_date=event_date + timedelta(days=1),
        )
    raise ValidationError(f"Booking type {booking_type.value} is not a day rental")


@dataclass(slots=True)
class RentalTimeline:
    """Delivery and pickup windows plus the unit's full service window."""

    delivery_date: date
    pickup_date: date
    same_day_pickup: bool
    delivery_start: datetime
    delivery_end: datetime
    pickup_start: datetime
    pickup_end: datetime
    service_start: datetime
    service_end: datetime
    delivery_window: str
    pickup_window: str

    @property
    def event_start(self) -> datetime:
        return self.delivery_end

    @property
    def event_end(self) -> datetime:
        return self.pickup_start


def build_timeline(
    product: Product, *, delivery_date: date, pickup_date: date, same_day: bool
) -> RentalTimeline:
    pickup_day = delivery_date if same_day else pickup_date
    pickup_open, pickup_close = (
        SAME_DAY_PICKUP_WINDOW if same_day else NEXT_DAY_PICKUP_WINDOW
    )
    delivery_start = local_instant(delivery_date, DELIVERY_WINDOW[0])
    pickup_end = local_instant(pickup_day, pickup_close)
    travel = timedelta(minutes=product.travel_buffer_minutes)
    cleaning = timedelta(minutes=product.cleaning_minutes)
    return RentalTimeline(
        delivery_date=delivery_date,
        pickup_date=pickup_day,
        same_day_pickup=same_day,
        delivery_start=delivery_start,
        delivery_end=local_instant(delivery_date, DELIVERY_WINDOW[1]),
        pickup_start=local_instant(pickup_day, pickup_open),
        pickup_end=pickup_end,
        service_start=delivery_start - travel,
        service_end=pickup_end + travel + cleaning,
        delivery_window=format_window(*DELIVERY_WINDOW),
        pickup_window=format_window(pickup_open, pickup_close),
    )


@dataclass(slots=True)
class DayRentalResolution:
    """Outcome of a day-rental availability check."""

    is_available: bool
    same_day_requested: bool
    timeline: RentalTimeline | None = None
    unit_id: uuid.UUID | None = None
    reason_code: str | None = None
    unavailable_reason: str | None = None
    earliest_available: datetime | None = None
    demotion_reason: str | None = None
    delivery_crew_id: uuid.UUID | None = None
    pickup_crew_id: uuid.UUID | None = None
    delivery_vehicle_id: uuid.UUID | None = None
    pickup_vehicle_id: uuid.UUID | None = None
    alternative: dict[str, Any] | None = field(default=None)

    @property
    def same_day_pickup(self) -> bool:
        return bool(self.timeline and self.timeline.same_day_pickup)

    def to_dict(self) -> dict[str, Any]:
        timeline = self.timeline
        return {
            "is_available": self.is_available,
            "reason_code": self.reason_code,
            "unavailable_reason": self.unavailable_reason,
            "earliest_available": (
                self.earliest_available.isoformat() if self.earliest_available else None
            ),
            "unit_id": str(self.unit_id) if self.unit_id else None,
            "delivery_date": timeline.delivery_date.isoformat() if timeline else None,
            "pickup_date": timeline.pickup_date.isoformat() if timeline else None,
            "delivery_window": timeline.delivery_window if timeline else None,
            "pickup_window": timeline.pickup_window if timeline else None,
            "service_start": timeline.service_start.isoformat() if timeline else None,
            "service_end": timeline.service_end.isoformat() if timeline else None,
            "same_day_pickup_requested": self.same_day_requested,
            "same_day_pickup": self.same_day_pickup,
            "demotion_reason": self.demotion_reason,
            "delivery_crew_id": _str_or_none(self.delivery_crew_id),
            "pickup_crew_id": _str_or_none(self.pickup_crew_id),
            "alternative": self.alternative,
        }


def _str_or_none(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


async def shared_resource_usage(
    session: AsyncSession,
    *,
    product: Product,
    start: datetime,
    end: datetime,
) -> list[uuid.UUID]:
    """Return bookings of sibling products that occupy the shared resource window."""
    if not product.shared_resource_group:
        return []
    stmt = (
        select(Booking.id)
        .join(Product, Product.id == Booking.product_id)
        .where(
            Product.shared_resource_group == product.shared_resource_group,
            Product.id != product.id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.service_start < coerce_utc(end),
            Booking.service_end > coerce_utc(start),
        )
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _find_pickup_crew(
    session: AsyncSession, timeline: RentalTimeline
) -> resource_registry_service.AvailableResource | None:
    return await resource_registry_service.find_free_resource(
        session,
        resource_type=OpsResourceType.DELIVERY_CREW,
        window_start=timeline.pickup_start,
        window_end=timeline.pickup_end,
        leg_start=timeline.pickup_start,
        leg_end=timeline.service_end,
    )


async def _same_day_demotion(
    session: AsyncSession, *, product: Product, same_day: RentalTimeline
) -> str | None:
    usage = await shared_resource_usage(
        session,
        product=product,
        start=same_day.pickup_start,
        end=same_day.service_end,
    )
    if usage:
        logger.info(
            "Same-day pickup for product %s on %s blocked by shared usage %s",
            product.id,
            same_day.delivery_date,
            usage,
        )
        return REASON_SAME_DAY_CONFLICT
    if await _find_pickup_crew(session, same_day) is None:
        next_morning = build_timeline(
            product,
            delivery_date=same_day.delivery_date,
            pickup_date=same_day.delivery_date + timedelta(days=1),
            same_day=False,
        )
        if await _find_pickup_crew(session, next_morning) is not None:
            return REASON_NO_CREW
    return None


async def assign_leg_resources(
    session: AsyncSession,
    *,
    delivery_window: tuple[datetime, datetime],
    delivery_leg: tuple[datetime, datetime],
    pickup_window: tuple[datetime, datetime],
    pickup_leg: tuple[datetime, datetime],
) -> dict[str, uuid.UUID | None]:
    """Best-effort crew and vehicle assignment for both legs."""
    assigned: dict[str, uuid.UUID | None] = {}
    for prefix, window, leg in (
        ("delivery", delivery_window, delivery_leg),
        ("pickup", pickup_window, pickup_leg),
    ):
        for suffix, resource_type in (
            ("crew", OpsResourceType.DELIVERY_CREW),
            ("vehicle", OpsResourceType.VEHICLE),
        ):
            resource = await resource_registry_service.find_free_resource(
                session,
                resource_type=resource_type,
                window_start=window[0],
                window_end=window[1],
                leg_start=leg[0],
                leg_end=leg[1],
            )
            assigned[f"{prefix}_{suffix}_id"] = resource.id if resource else None
    return assigned


def _candidate_dates(
    booking_type: BookingType | None,
    delivery_date: date,
    pickup_date: date,
    offset: int,
) -> tuple[date, RentalDates] | None:
    """Shift a request forward by ``offset`` days; None when the type rejects that day."""
    if booking_type is None:
        span = pickup_date - delivery_date
        shifted = delivery_date + timedelta(days=offset)
        return shifted, RentalDates(delivery_date=shifted, pickup_date=shifted + span)
    # Sunday rentals are delivered the day before the event.
    anchor = delivery_date
    if booking_type == BookingType.SUNDAY:
        anchor += timedelta(days=1)
    event_date = anchor + timedelta(days=offset)
    try:
        return event_date, derive_rental_dates(booking_type, event_date)
    except ValidationError:
        return None


async def find_next_available_dates(
    session: AsyncSession,
    *,
    product: Product,
    delivery_date: date,
    pickup_date: date,
    booking_type: BookingType | None = None,
    max_days: int = ALTERNATIVE_SEARCH_DAYS,
) -> dict[str, str] | None:
    """Scan forward for the first bookable date pair with a free unit.

    With a ``booking_type`` only event dates that type accepts are offered,
    so a weekend request is answered with another weekend. Without one the
    delivery-to-pickup span is shifted as is.
    """
    for offset in range(1, max_days + 1):
        candidate = _candidate_dates(booking_type, delivery_date, pickup_date, offset)
        if candidate is None:
            continue
        event_date, dates = candidate
        if await resource_registry_service.is_blacked_out(
            session,
            product_id=product.id,
            days=[dates.delivery_date, dates.pickup_date],
        ):
            continue
        timeline = build_timeline(
            product,
            delivery_date=dates.delivery_date,
            pickup_date=dates.pickup_date,
            same_day=dates.pickup_date == dates.delivery_date,
        )
        unit = await resource_registry_service.find_free_unit(
            session,
            product_id=product.id,
            start=timeline.service_start,
            end=timeline.service_end,
        )
        if unit is not None:
            return {
                "event_date": event_date.isoformat(),
                "delivery_date": dates.delivery_date.isoformat(),
                "pickup_date": dates.pickup_date.isoformat(),
            }
    return None


async def resolve_day_rental(
    session: AsyncSession,
    *,
    product: Product,
    delivery_date: date,
    pickup_date: date,
    lead_time_hours: int | None = None,
    now: datetime | None = None,
    require_same_day: bool = False,
    booking_type: BookingType | None = None,
) -> DayRentalResolution:
    """Find a unit, and best-effort crews and vehicles, for a delivery-to-pickup span.

    ``booking_type`` only shapes the alternative offered when no unit is free.
    """
    if pickup_date < delivery_date:
        raise ValidationError("Pickup date must be on or after the delivery date")
    if lead_time_hours is None:
        lead_time_hours = get_settings().lead_time_hours
    now = coerce_utc(now) if now is not None else utcnow()

    same_day_requested = pickup_date == delivery_date
    resolution = DayRentalResolution(
        is_available=False, same_day_requested=same_day_requested
    )
    timeline = build_timeline(
        product,
        delivery_date=delivery_date,
        pickup_date=pickup_date,
        same_day=same_day_requested,
    )

    earliest = now + timedelta(hours=lead_time_hours)
    if timeline.service_start < earliest:
        resolution.reason_code = REASON_TOO_SOON
        resolution.unavailable_reason = (
            f"Requires {lead_time_hours} hours advance booking"
        )
        resolution.earliest_available = earliest
        return resolution

    if await resource_registry_service.is_blacked_out(
        session, product_id=product.id, days=[delivery_date, pickup_date]
    ):
        resolution.reason_code = REASON_BLACKOUT
        resolution.unavailable_reason = "Date not available"
        return resolution

    unit = None
    if same_day_requested:
        demotion = await _same_day_demotion(session, product=product, same_day=timeline)
        if demotion is not None and require_same_day:
            resolution.reason_code = REASON_SAME_DAY_CONFLICT
            resolution.unavailable_reason = "Same-day pickup is not available"
            return resolution
        if demotion is not None:
            demoted = build_timeline(
                product,
                delivery_date=delivery_date,
                pickup_date=delivery_date + timedelta(days=1),
                same_day=False,
            )
            unit = await resource_registry_service.find_free_unit(
                session,
                product_id=product.id,
                start=demoted.service_start,
                end=demoted.service_end,
            )
            # A missing evening crew never costs the booking its unit.
            if unit is not None or demotion == REASON_SAME_DAY_CONFLICT:
                timeline = demoted
                resolution.demotion_reason = demotion
    if unit is None and resolution.demotion_reason is None:
        unit = await resource_registry_service.find_free_unit(
            session,
            product_id=product.id,
            start=timeline.service_start,
            end=timeline.service_end,
        )

    resolution.timeline = timeline
    if unit is None:
        resolution.reason_code = REASON_NO_UNIT
        resolution.unavailable_reason = "No units available for these dates"
        resolution.alternative = await find_next_available_dates(
            session,
            product=product,
            delivery_date=delivery_date,
            pickup_date=pickup_date,
            booking_type=booking_type,
        )
        return resolution

    assigned = await assign_leg_resources(
        session,
        delivery_window=(timeline.delivery_start, timeline.delivery_end),
        delivery_leg=(timeline.service_start, timeline.event_start),
        pickup_window=(timeline.pickup_start, timeline.pickup_end),
        pickup_leg=(timeline.event_end, timeline.service_end),
    )
    resolution.is_available = True
    resolution.unit_id = unit.id
    resolution.delivery_crew_id = assigned["delivery_crew_id"]
    resolution.pickup_crew_id = assigned["pickup_crew_id"]
    resolution.delivery_vehicle_id = assigned["delivery_vehicle_id"]
    resolution.pickup_vehicle_id = assigned["pickup_vehicle_id"]
    if resolution.delivery_crew_id is None or resolution.pickup_crew_id is None:
        logger.info(
            "Day rental for product %s on %s resolved without full crew assignment",
            product.id,
            delivery_date,
        )
    return resolution
