"""Booking and booking block models."""
from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    DDL,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    event,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, ExcludeConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from rentals_api.db.base import Base
from rentals_api.models.mixins import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing helpers
    from rentals_api.models.customer import Customer
    from rentals_api.models.product import Product, ProductSlot, Unit

JSONB_TYPE = JSONB().with_variant(JSON(), "sqlite")

BOOKING_OVERLAP_CONSTRAINT = "bookings_no_overlap"


class BookingStatus(str, enum.Enum):
    """Lifecycle states for bookings."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class BookingType(str, enum.Enum):
    """Rental shapes a customer can book."""

    DAILY = "daily"
    WEEKEND = "weekend"
    SUNDAY = "sunday"
    SLOT = "slot"


class BlockResourceKind(str, enum.Enum):
    """What a booking block occupies."""

    ASSET = "asset"
    OPS = "ops"


class BlockType(str, enum.Enum):
    """Which portion of a booking a block covers."""

    FULL_RENTAL = "full_rental"
    DELIVERY_LEG = "delivery_leg"
    PICKUP_LEG = "pickup_leg"


class Booking(TimestampMixin, Base):
    """A reservation of one unit over a service window."""

    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_unit_window", "unit_id", "service_start", "service_end"),
        Index("ix_bookings_status_created", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    booking_number: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    unit_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("units.id"), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id"), nullable=False
    )
    slot_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("product_slots.id", ondelete="SET NULL"), nullable=True
    )
    booking_type: Mapped[BookingType] = mapped_column(
        Enum(BookingType), nullable=False
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), nullable=False, default=BookingStatus.PENDING
    )
    product_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, nullable=False, default=dict
    )

    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    pickup_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_window: Mapped[str] = mapped_column(String(64), nullable=False)
    pickup_window: Mapped[str] = mapped_column(String(64), nullable=False)
    same_day_pickup: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    event_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    event_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    service_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    service_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0.00")
    )
    promo_code: Mapped[str | None] = mapped_column(String(64))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    balance_due: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default="deposit"
    )

    delivery_crew_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("ops_resources.id", ondelete="SET NULL"), nullable=True
    )
    pickup_crew_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("ops_resources.id", ondelete="SET NULL"), nullable=True
    )
    delivery_vehicle_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("ops_resources.id", ondelete="SET NULL"), nullable=True
    )
    pickup_vehicle_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("ops_resources.id", ondelete="SET NULL"), nullable=True
    )

    stripe_checkout_session_id: Mapped[str | None] = mapped_column(String(255))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[str | None] = mapped_column(String(255))

    product: Mapped["Product"] = relationship("Product")
    unit: Mapped["Unit"] = relationship("Unit")
    customer: Mapped["Customer"] = relationship("Customer")
    slot: Mapped["ProductSlot | None"] = relationship("ProductSlot")
    blocks: Mapped[list["BookingBlock"]] = relationship(
        "BookingBlock",
        back_populates="booking",
        cascade="all, delete-orphan",
    )


class BookingBlock(TimestampMixin, Base):
    """Occupied interval on one unit, crew or vehicle for one booking."""

    __tablename__ = "booking_blocks"
    __table_args__ = (
        Index("ix_booking_blocks_resource_window", "resource_id", "start_at", "end_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    resource_kind: Mapped[BlockResourceKind] = mapped_column(
        Enum(BlockResourceKind), nullable=False
    )
    resource_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    block_type: Mapped[BlockType] = mapped_column(Enum(BlockType), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="blocks")


# Enum columns persist member names.
_CANCELLED = BookingStatus.CANCELLED.name

_bookings = Booking.__table__
_bookings.append_constraint(
    ExcludeConstraint(
        (_bookings.c.unit_id, "="),
        (func.tstzrange(_bookings.c.service_start, _bookings.c.service_end), "&&"),
        name=BOOKING_OVERLAP_CONSTRAINT,
        using="gist",
        where=text(f"status <> '{_CANCELLED}'"),
    ).ddl_if(dialect="postgresql")
)

_SQLITE_OVERLAP_CHECK = f"""
    SELECT RAISE(ABORT, '{BOOKING_OVERLAP_CONSTRAINT}')
    WHERE EXISTS (
        SELECT 1 FROM bookings
        WHERE unit_id = NEW.unit_id
          AND id <> NEW.id
          AND status <> '{_CANCELLED}'
          AND service_start < NEW.service_end
          AND service_end > NEW.service_start
    );
"""

event.listen(
    _bookings,
    "after_create",
    DDL(
        f"CREATE TRIGGER {BOOKING_OVERLAP_CONSTRAINT}_insert "
        f"BEFORE INSERT ON bookings WHEN NEW.status <> '{_CANCELLED}' "
        f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    _bookings,
    "after_create",
    DDL(
        f"CREATE TRIGGER {BOOKING_OVERLAP_CONSTRAINT}_update "
        "BEFORE UPDATE OF unit_id, service_start, service_end, status ON bookings "
        f"WHEN NEW.status <> '{_CANCELLED}' "
        f"BEGIN {_SQLITE_OVERLAP_CHECK} END"
    ).execute_if(dialect="sqlite"),
)
