"""Materialized occupancy blocks for units, crews and vehicles.

Blocks are a projection of the bookings table used for fast conflict lookups
and operations views. The bookings exclusion constraint remains the
authoritative double-booking guard, so a block failure never invalidates a
booking.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.models import (
    BlockResourceKind,
    BlockType,
    Booking,
    BookingBlock,
)
from rentals_api.services.errors import BookingError, BookingIntegrityError
from rentals_api.services.time_windows import coerce_utc

logger = logging.getLogger(__name__)


async def delete_booking_blocks(session: AsyncSession, *, booking_id: uuid.UUID) -> int:
    result = await session.execute(
        delete(BookingBlock)
        .where(BookingBlock.booking_id == booking_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def list_booking_blocks(
    session: AsyncSession, *, booking_id: uuid.UUID
) -> Sequence[BookingBlock]:
    stmt = (
        select(BookingBlock)
        .where(BookingBlock.booking_id == booking_id)
        .order_by(BookingBlock.start_at, BookingBlock.block_type)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def create_booking_blocks(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    unit_id: uuid.UUID,
    product_id: uuid.UUID,
    event_start: datetime,
    event_end: datetime,
    service_start: datetime,
    service_end: datetime,
    delivery_crew_id: uuid.UUID | None = None,
    pickup_crew_id: uuid.UUID | None = None,
    delivery_vehicle_id: uuid.UUID | None = None,
    pickup_vehicle_id: uuid.UUID | None = None,
) -> list[BookingBlock]:
    """Replace a booking's blocks with one asset block and its leg blocks."""
    booking = await session.get(Booking, booking_id)
    if booking is None:
        logger.error(
            "Refusing to create blocks for missing booking %s (unit %s, product %s)",
            booking_id,
            unit_id,
            product_id,
        )
        raise BookingIntegrityError(f"Booking {booking_id} does not exist")
    if booking.unit_id != unit_id or booking.product_id != product_id:
        logger.error(
            "Block request for booking %s names unit %s/product %s, booking has %s/%s",
            booking_id,
            unit_id,
            product_id,
            booking.unit_id,
            booking.product_id,
        )
        raise BookingIntegrityError(f"Block resources do not match booking {booking_id}")

    event_start, event_end = coerce_utc(event_start), coerce_utc(event_end)
    service_start, service_end = coerce_utc(service_start), coerce_utc(service_end)

    await delete_booking_blocks(session, booking_id=booking_id)

    blocks = [
        BookingBlock(
            booking_id=booking_id,
            resource_kind=BlockResourceKind.ASSET,
            resource_id=unit_id,
            block_type=BlockType.FULL_RENTAL,
            start_at=service_start,
            end_at=service_end,
        )
    ]
    legs = (
        (BlockType.DELIVERY_LEG, service_start, event_start, delivery_crew_id),
        (BlockType.DELIVERY_LEG, service_start, event_start, delivery_vehicle_id),
        (BlockType.PICKUP_LEG, event_end, service_end, pickup_crew_id),
        (BlockType.PICKUP_LEG, event_end, service_end, pickup_vehicle_id),
    )
    for block_type, start_at, end_at, resource_id in legs:
        if resource_id is None:
            continue
        blocks.append(
            BookingBlock(
                booking_id=booking_id,
                resource_kind=BlockResourceKind.OPS,
                resource_id=resource_id,
                block_type=block_type,
                start_at=start_at,
                end_at=end_at,
            )
        )
    session.add_all(blocks)
    await session.flush()
    return blocks


async def materialize_blocks(session: AsyncSession, booking: Booking) -> bool:
    """Create blocks for ``booking`` inside a savepoint; log and continue on failure."""
    try:
        async with session.begin_nested():
            await create_booking_blocks(
                session,
                booking_id=booking.id,
                unit_id=booking.unit_id,
                product_id=booking.product_id,
                event_start=booking.event_start,
                event_end=booking.event_end,
                service_start=booking.service_start,
                service_end=booking.service_end,
                delivery_crew_id=booking.delivery_crew_id,
                pickup_crew_id=booking.pickup_crew_id,
                delivery_vehicle_id=booking.delivery_vehicle_id,
                pickup_vehicle_id=booking.pickup_vehicle_id,
            )
    except (SQLAlchemyError, BookingError):
        logger.exception(
            "Failed to materialize blocks for booking %s (unit %s, product %s)",
            booking.id,
            booking.unit_id,
            booking.product_id,
        )
        return False
    return True


async def rebuild_blocks(session: AsyncSession, *, booking_id: uuid.UUID) -> list[BookingBlock]:
    """Re-materialize blocks for an existing booking and commit."""
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise BookingIntegrityError(f"Booking {booking_id} does not exist")
    blocks = await create_booking_blocks(
        session,
        booking_id=booking.id,
        unit_id=booking.unit_id,
        product_id=booking.product_id,
        event_start=booking.event_start,
        event_end=booking.event_end,
        service_start=booking.service_start,
        service_end=booking.service_end,
        delivery_crew_id=booking.delivery_crew_id,
        pickup_crew_id=booking.pickup_crew_id,
        delivery_vehicle_id=booking.delivery_vehicle_id,
        pickup_vehicle_id=booking.pickup_vehicle_id,
    )
    await session.commit()
    return blocks
