"""Availability lookups for slot-based and day-rental products."""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.api import deps
from rentals_api.api.errors import to_http_exception
from rentals_api.models import Product, SchedulingMode
from rentals_api.schemas.availability import (
    AvailabilityOutcomeRead,
    AvailabilityResolveRequest,
    CutoffRead,
    DayRentalAvailabilityRead,
    SlotAvailabilityRead,
)
from rentals_api.services import (
    cutoff_service,
    day_rental_service,
    reservation_service,
    resource_registry_service,
    slot_service,
)
from rentals_api.services.errors import BookingError

router = APIRouter()


async def _load_product(session: AsyncSession, product_ref: str) -> Product:
    product = await resource_registry_service.get_product(
        session, product_ref=product_ref
    )
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Product not found"
        )
    return product


@router.get(
    "/slots",
    response_model=list[SlotAvailabilityRead],
    summary="List a product's slots for a date",
)
async def list_slots(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    product: Annotated[str, Query(min_length=1)],
    day: Annotated[date, Query(alias="date")],
) -> list[SlotAvailabilityRead]:
    record = await _load_product(session, product)
    if record.scheduling_mode != SchedulingMode.SLOT_BASED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is not booked by time slot",
        )
    slots = await slot_service.get_slots_for_date(session, product=record, day=day)
    return [SlotAvailabilityRead.model_validate(slot.to_dict()) for slot in slots]


@router.get(
    "/day-rental",
    response_model=DayRentalAvailabilityRead,
    summary="Check a day rental between delivery and pickup dates",
)
async def check_day_rental(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    product: Annotated[str, Query(min_length=1)],
    delivery_date: date,
    pickup_date: date | None = None,
) -> DayRentalAvailabilityRead:
    record = await _load_product(session, product)
    if record.scheduling_mode != SchedulingMode.DAY_RENTAL:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is booked by time slot",
        )
    try:
        resolution = await day_rental_service.resolve_day_rental(
            session,
            product=record,
            delivery_date=delivery_date,
            pickup_date=pickup_date or delivery_date,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return DayRentalAvailabilityRead.model_validate(resolution.to_dict())


@router.get("/cutoff", response_model=CutoffRead, summary="Check the booking cutoff")
async def check_cutoff(
    day: Annotated[date, Query(alias="date")],
) -> CutoffRead:
    return CutoffRead.model_validate(cutoff_service.check_booking_cutoff(day).to_dict())


@router.post(
    "/resolve",
    response_model=AvailabilityOutcomeRead,
    summary="Resolve availability for a booking request",
)
async def resolve_availability(
    payload: AvailabilityResolveRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> AvailabilityOutcomeRead:
    try:
        outcome = await reservation_service.resolve_availability(
            session,
            product_ref=payload.product,
            event_date=payload.event_date,
            booking_type=payload.booking_type,
            slot_id=payload.slot_id,
            pickup_date=payload.pickup_date,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return AvailabilityOutcomeRead.model_validate(outcome.to_dict())
