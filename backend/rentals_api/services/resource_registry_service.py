"""Read access to products, units and operational resources."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentals_api.models import (
    BlackoutDate,
    BlockResourceKind,
    Booking,
    BookingBlock,
    BookingStatus,
    OpsResource,
    OpsResourceType,
    Product,
    Unit,
    UnitStatus,
)
from rentals_api.services.time_windows import (
    booking_zone,
    coerce_utc,
    sunday_based_weekday,
)

ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

DEFAULT_SHIFT_START = time(8, 0)
DEFAULT_SHIFT_END = time(20, 0)


@dataclass(slots=True)
class AvailableResource:
    """An ops resource that works on a given day, with that day's hours."""

    id: uuid.UUID
    name: str
    resource_type: OpsResourceType
    start_time: time
    end_time: time

    def covers(self, start: datetime, end: datetime) -> bool:
        zone = booking_zone()
        local_start = coerce_utc(start).astimezone(zone)
        local_end = coerce_utc(end).astimezone(zone)
        if local_start.date() != local_end.date():
            return False
        return (
            local_start.time() >= self.start_time
            and local_end.time() <= self.end_time
        )


async def get_product(
    session: AsyncSession, *, product_ref: uuid.UUID | str
) -> Product | None:
    """Look up an active product by id or slug."""
    stmt = select(Product).options(selectinload(Product.slots))
    product_id: uuid.UUID | None = None
    if isinstance(product_ref, uuid.UUID):
        product_id = product_ref
    else:
        try:
            product_id = uuid.UUID(str(product_ref))
        except ValueError:
            product_id = None
    if product_id is not None:
        stmt = stmt.where(Product.id == product_id)
    else:
        stmt = stmt.where(Product.slug == str(product_ref))
    result = await session.execute(stmt.where(Product.is_active.is_(True)))
    return result.scalars().unique().one_or_none()


async def list_units(
    session: AsyncSession, *, product_id: uuid.UUID, only_available: bool = True
) -> Sequence[Unit]:
    stmt = select(Unit).where(Unit.product_id == product_id)
    if only_available:
        stmt = stmt.where(Unit.status == UnitStatus.AVAILABLE)
    result = await session.execute(stmt.order_by(Unit.unit_number))
    return result.scalars().all()


async def list_available_resources(
    session: AsyncSession, *, resource_type: OpsResourceType, day: date
) -> list[AvailableResource]:
    """Return active resources of a type working on ``day``, ordered by name.

    A resource without a schedule row for the weekday is assumed to work the
    default 08:00-20:00 shift.
    """
    weekday = sunday_based_weekday(day)
    stmt = (
        select(OpsResource)
        .options(selectinload(OpsResource.schedules))
        .where(
            OpsResource.resource_type == resource_type,
            OpsResource.is_active.is_(True),
        )
        .order_by(OpsResource.name)
    )
    result = await session.execute(stmt)
    resources: list[AvailableResource] = []
    for resource in result.scalars().unique().all():
        entry = next(
            (row for row in resource.schedules if row.day_of_week == weekday), None
        )
        if entry is None:
            start_time, end_time = DEFAULT_SHIFT_START, DEFAULT_SHIFT_END
        elif not entry.is_available:
            continue
        else:
            start_time, end_time = entry.start_time, entry.end_time
        resources.append(
            AvailableResource(
                id=resource.id,
                name=resource.name,
                resource_type=resource.resource_type,
                start_time=start_time,
                end_time=end_time,
            )
        )
    return resources


def _active_booking_overlaps(start: datetime, end: datetime):
    return and_(
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.service_start < end,
        Booking.service_end > start,
    )


def _block_overlaps(kind: BlockResourceKind, start: datetime, end: datetime):
    return and_(
        BookingBlock.resource_kind == kind,
        BookingBlock.start_at < end,
        BookingBlock.end_at > start,
        BookingBlock.booking_id == Booking.id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    )


async def find_free_unit(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    start: datetime,
    end: datetime,
) -> Unit | None:
    """Return the lowest-numbered available unit free across ``[start, end)``."""
    start, end = coerce_utc(start), coerce_utc(end)
    booked = exists().where(
        Booking.unit_id == Unit.id, _active_booking_overlaps(start, end)
    )
    blocked = exists().where(
        BookingBlock.resource_id == Unit.id,
        _block_overlaps(BlockResourceKind.ASSET, start, end),
    )
    stmt = (
        select(Unit)
        .where(
            Unit.product_id == product_id,
            Unit.status == UnitStatus.AVAILABLE,
            ~booked,
            ~blocked,
        )
        .order_by(Unit.unit_number)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def find_free_resource(
    session: AsyncSession,
    *,
    resource_type: OpsResourceType,
    window_start: datetime,
    window_end: datetime,
    leg_start: datetime,
    leg_end: datetime,
) -> AvailableResource | None:
    """Return the first resource on shift for the customer window whose leg is free.

    Working hours are matched against ``[window_start, window_end]``; conflicts
    are checked against the wider ``[leg_start, leg_end)`` that includes travel.
    """
    window_start, window_end = coerce_utc(window_start), coerce_utc(window_end)
    start, end = coerce_utc(leg_start), coerce_utc(leg_end)
    local_day = window_start.astimezone(booking_zone()).date()
    candidates = [
        resource
        for resource in await list_available_resources(
            session, resource_type=resource_type, day=local_day
        )
        if resource.covers(window_start, window_end)
    ]
    if not candidates:
        return None
    busy_stmt = select(BookingBlock.resource_id).where(
        BookingBlock.resource_id.in_([resource.id for resource in candidates]),
        _block_overlaps(BlockResourceKind.OPS, start, end),
    )
    busy = set((await session.execute(busy_stmt)).scalars().all())
    return next((resource for resource in candidates if resource.id not in busy), None)


async def is_blacked_out(
    session: AsyncSession, *, product_id: uuid.UUID, days: Sequence[date]
) -> bool:
    """Return True when any of ``days`` falls in a global or product blackout."""
    if not days:
        return False
    first, last = min(days), max(days)
    stmt = select(BlackoutDate).where(
        (BlackoutDate.product_id.is_(None)) | (BlackoutDate.product_id == product_id),
        BlackoutDate.start_date <= last,
        BlackoutDate.end_date >= first,
    )
    blackouts = (await session.execute(stmt)).scalars().all()
    return any(
        blackout.start_date <= day <= blackout.end_date
        for blackout in blackouts
        for day in days
    )
