"""Availability request and response schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, model_validator

from rentals_api.models import BookingType


class SlotAvailabilityRead(BaseModel):
    """One slot on one day, flagged available or not."""

    slot_id: uuid.UUID
    label: str
    start_time_local: str
    end_time_local: str
    event_start: datetime
    event_end: datetime
    service_start: datetime
    service_end: datetime
    is_available: bool
    reason_code: str | None = None
    unavailable_reason: str | None = None


class DayRentalAvailabilityRead(BaseModel):
    is_available: bool
    reason_code: str | None = None
    unavailable_reason: str | None = None
    earliest_available: datetime | None = None
    unit_id: uuid.UUID | None = None
    delivery_date: date | None = None
    pickup_date: date | None = None
    delivery_window: str | None = None
    pickup_window: str | None = None
    service_start: datetime | None = None
    service_end: datetime | None = None
    same_day_pickup_requested: bool = False
    same_day_pickup: bool = False
    demotion_reason: str | None = None
    delivery_crew_id: uuid.UUID | None = None
    pickup_crew_id: uuid.UUID | None = None
    alternative: dict[str, str] | None = None


class CutoffRead(BaseModel):
    allowed: bool
    earliest_available: date
    message: str | None = None


class AvailabilityResolveRequest(BaseModel):
    """Payload for resolving availability of one product on one date."""

    product: str
    event_date: date
    booking_type: BookingType | None = None
    slot_id: uuid.UUID | None = None
    pickup_date: date | None = None

    @model_validator(mode="after")
    def _check_slot(self) -> "AvailabilityResolveRequest":
        if self.booking_type == BookingType.SLOT and self.slot_id is None:
            raise ValueError("slot_id is required for slot bookings")
        if self.pickup_date is not None and self.pickup_date < self.event_date:
            raise ValueError("pickup_date must be on or after event_date")
        return self


class AvailabilityOutcomeRead(BaseModel):
    """Tagged availability outcome; fields beyond ``is_available`` depend on the tag."""

    is_available: bool
    reason_code: str | None = None
    message: str | None = None
    earliest_available: str | None = None
    alternative: dict[str, str] | None = None
    product_id: uuid.UUID | None = None
    unit_id: uuid.UUID | None = None
    booking_type: BookingType | None = None
    slot_id: uuid.UUID | None = None
    event_date: date | None = None
    delivery_date: date | None = None
    pickup_date: date | None = None
    delivery_window: str | None = None
    pickup_window: str | None = None
    event_start: datetime | None = None
    event_end: datetime | None = None
    service_start: datetime | None = None
    service_end: datetime | None = None
    same_day_pickup: bool | None = None
    demotion_reason: str | None = None
    delivery_crew_id: uuid.UUID | None = None
    pickup_crew_id: uuid.UUID | None = None
