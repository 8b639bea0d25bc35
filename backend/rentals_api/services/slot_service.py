"""Slot enumeration for slot-based products."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.core.config import get_settings
from rentals_api.models import Product, ProductSlot
from rentals_api.services import resource_registry_service
from rentals_api.services.time_windows import coerce_utc, local_instant, utcnow

REASON_TOO_SOON = "too_soon"
REASON_BLACKOUT = "blackout"
REASON_FULLY_BOOKED = "fully_booked"


@dataclass(slots=True)
class SlotWindow:
    """Event and service instants for one slot on one day."""

    event_start: datetime
    event_end: datetime
    service_start: datetime
    service_end: datetime


@dataclass(slots=True)
class SlotAvailability:
    """A slot descriptor flagged available or unavailable with a reason."""

    slot_id: uuid.UUID
    label: str
    start_time_local: time
    end_time_local: time
    display_order: int
    window: SlotWindow
    is_available: bool
    reason_code: str | None = None
    unavailable_reason: str | None = None
    unit_id: uuid.UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_id": str(self.slot_id),
            "label": self.label,
            "start_time_local": self.start_time_local.strftime("%H:%M"),
            "end_time_local": self.end_time_local.strftime("%H:%M"),
            "event_start": self.window.event_start.isoformat(),
            "event_end": self.window.event_end.isoformat(),
            "service_start": self.window.service_start.isoformat(),
            "service_end": self.window.service_end.isoformat(),
            "is_available": self.is_available,
            "reason_code": self.reason_code,
            "unavailable_reason": self.unavailable_reason,
        }


def compute_slot_window(product: Product, slot: ProductSlot, day: date) -> SlotWindow:
    """Expand a slot's event window by the product's buffers."""
    event_start = local_instant(day, slot.start_time_local)
    event_end = local_instant(day, slot.end_time_local)
    lead_in = timedelta(minutes=product.travel_buffer_minutes + product.setup_minutes)
    lead_out = timedelta(
        minutes=product.teardown_minutes
        + product.travel_buffer_minutes
        + product.cleaning_minutes
    )
    return SlotWindow(
        event_start=event_start,
        event_end=event_end,
        service_start=event_start - lead_in,
        service_end=event_end + lead_out,
    )


async def list_product_slots(
    session: AsyncSession, *, product_id: uuid.UUID
) -> list[ProductSlot]:
    stmt = (
        select(ProductSlot)
        .where(ProductSlot.product_id == product_id, ProductSlot.is_active.is_(True))
        .order_by(ProductSlot.display_order, ProductSlot.start_time_local)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def evaluate_slot(
    session: AsyncSession,
    *,
    product: Product,
    slot: ProductSlot,
    day: date,
    lead_time_hours: int | None = None,
    now: datetime | None = None,
    blacked_out: bool | None = None,
) -> SlotAvailability:
    """Decide whether one slot can be booked on ``day``."""
    if lead_time_hours is None:
        lead_time_hours = get_settings().lead_time_hours
    now = coerce_utc(now) if now is not None else utcnow()
    window = compute_slot_window(product, slot, day)
    availability = SlotAvailability(
        slot_id=slot.id,
        label=slot.label,
        start_time_local=slot.start_time_local,
        end_time_local=slot.end_time_local,
        display_order=slot.display_order,
        window=window,
        is_available=False,
    )

    if window.service_start < now + timedelta(hours=lead_time_hours):
        availability.reason_code = REASON_TOO_SOON
        availability.unavailable_reason = (
            f"Requires {lead_time_hours} hours advance booking"
        )
        return availability

    if blacked_out is None:
        blacked_out = await resource_registry_service.is_blacked_out(
            session, product_id=product.id, days=[day]
        )
    if blacked_out:
        availability.reason_code = REASON_BLACKOUT
        availability.unavailable_reason = "Date not available"
        return availability

    unit = await resource_registry_service.find_free_unit(
        session,
        product_id=product.id,
        start=window.service_start,
        end=window.service_end,
    )
    if unit is None:
        availability.reason_code = REASON_FULLY_BOOKED
        availability.unavailable_reason = "Fully booked"
        return availability

    availability.is_available = True
    availability.unit_id = unit.id
    return availability


async def get_slots_for_date(
    session: AsyncSession,
    *,
    product: Product,
    day: date,
    lead_time_hours: int | None = None,
    now: datetime | None = None,
) -> list[SlotAvailability]:
    """Enumerate a product's slots for ``day`` in display order."""
    slots = await list_product_slots(session, product_id=product.id)
    blacked_out = await resource_registry_service.is_blacked_out(
        session, product_id=product.id, days=[day]
    )
    return [
        await evaluate_slot(
            session,
            product=product,
            slot=slot,
            day=day,
            lead_time_hours=lead_time_hours,
            now=now,
            blacked_out=blacked_out,
        )
        for slot in slots
    ]
