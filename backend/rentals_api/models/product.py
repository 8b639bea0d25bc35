"""Rentable products, their units, slots and blackout dates."""
from __future__ import annotations

import enum
import uuid
from datetime import date, time
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals_api.db.base import Base
from rentals_api.models.mixins import TimestampMixin


class SchedulingMode(str, enum.Enum):
    """How a product is booked."""

    DAY_RENTAL = "day_rental"
    SLOT_BASED = "slot_based"


class UnitStatus(str, enum.Enum):
    """Inventory state of a physical unit."""

    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class Product(TimestampMixin, Base):
    """A rentable product with its pricing and timing parameters."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    slug: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    scheduling_mode: Mapped[SchedulingMode] = mapped_column(
        Enum(SchedulingMode), nullable=False, default=SchedulingMode.DAY_RENTAL
    )
    price_daily: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_weekend: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    price_sunday: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    setup_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    teardown_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    travel_buffer_minutes: Mapped[int] = mapped_column(
        Integer, nullable=False, default=30
    )
    cleaning_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shared_resource_group: Mapped[str | None] = mapped_column(String(64))

    units: Mapped[list["Unit"]] = relationship(
        "Unit", back_populates="product", cascade="all, delete-orphan"
    )
    slots: Mapped[list["ProductSlot"]] = relationship(
        "ProductSlot",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductSlot.display_order",
    )


class ProductSlot(TimestampMixin, Base):
    """Fixed time-of-day window for slot-based products."""

    __tablename__ = "product_slots"
    __table_args__ = (
        UniqueConstraint(
            "product_id", "start_time_local", name="uq_product_slot_start"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(120), nullable=False)
    start_time_local: Mapped[time] = mapped_column(Time(), nullable=False)
    end_time_local: Mapped[time] = mapped_column(Time(), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped[Product] = relationship("Product", back_populates="slots")


class Unit(TimestampMixin, Base):
    """A physical instance of a product."""

    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("product_id", "unit_number", name="uq_unit_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    unit_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[UnitStatus] = mapped_column(
        Enum(UnitStatus), nullable=False, default=UnitStatus.AVAILABLE
    )

    product: Mapped[Product] = relationship("Product", back_populates="units")


class BlackoutDate(TimestampMixin, Base):
    """Date range during which bookings are not taken."""

    __tablename__ = "blackout_dates"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255))
