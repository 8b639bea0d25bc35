"""Pydantic schemas for reservations."""
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from rentals_api.models import (
    BlockResourceKind,
    BlockType,
    BookingStatus,
    BookingType,
)


class ReservationCreate(BaseModel):
    """Payload for creating a reservation."""

    product: str = Field(min_length=1)
    event_date: date
    booking_type: BookingType | None = None
    slot_id: uuid.UUID | None = None
    customer_email: EmailStr
    customer_first_name: str | None = Field(default=None, max_length=120)
    customer_last_name: str | None = Field(default=None, max_length=120)
    customer_phone: str | None = Field(default=None, max_length=32)
    promo_code: str | None = Field(default=None, max_length=64)
    payment_type: Literal["deposit", "full"] = "deposit"

    @field_validator("promo_code")
    @classmethod
    def _blank_promo(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class PricingLineRead(BaseModel):
    description: str
    amount: Decimal


class PricingRead(BaseModel):
    """Price breakdown returned with a new reservation."""

    items: list[PricingLineRead]
    subtotal: Decimal
    discount_total: Decimal
    total: Decimal
    deposit_amount: Decimal
    balance_due: Decimal
    amount_due_now: Decimal
    payment_type: str
    promo_code: str | None = None


class ReservationCreateResponse(BaseModel):
    booking_id: uuid.UUID
    booking_number: str
    status: BookingStatus
    same_day_pickup: bool
    demotion_reason: str | None = None
    checkout_session_id: str | None = None
    checkout_url: str | None = None
    pricing: PricingRead


class BookingBlockRead(BaseModel):
    id: uuid.UUID
    resource_kind: BlockResourceKind
    resource_id: uuid.UUID
    block_type: BlockType
    start_at: datetime
    end_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReservationRead(BaseModel):
    """Serialized booking representation."""

    id: uuid.UUID
    booking_number: str
    product_id: uuid.UUID
    unit_id: uuid.UUID
    slot_id: uuid.UUID | None = None
    booking_type: BookingType
    status: BookingStatus
    event_date: date
    delivery_date: date
    pickup_date: date
    delivery_window: str
    pickup_window: str
    same_day_pickup: bool
    event_start: datetime
    event_end: datetime
    service_start: datetime
    service_end: datetime
    subtotal: Decimal
    discount_amount: Decimal
    promo_code: str | None = None
    total: Decimal
    deposit_amount: Decimal
    balance_due: Decimal
    payment_type: str
    delivery_crew_id: uuid.UUID | None = None
    pickup_crew_id: uuid.UUID | None = None
    delivery_vehicle_id: uuid.UUID | None = None
    pickup_vehicle_id: uuid.UUID | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    blocks: list[BookingBlockRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ReservationCancelRequest(BaseModel):
    customer_email: EmailStr | None = None
    reason: str | None = Field(default=None, max_length=255)


class ReservationCancelResponse(BaseModel):
    booking_id: uuid.UUID
    outcome: Literal["deleted", "cancelled", "already_cancelled"]


class ReservationExpireResponse(BaseModel):
    expired: list[uuid.UUID]
