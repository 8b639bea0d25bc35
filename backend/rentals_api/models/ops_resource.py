"""Delivery crews, vehicles and their weekly schedules."""
from __future__ import annotations

import enum
import uuid
from datetime import time

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals_api.db.base import Base
from rentals_api.models.mixins import TimestampMixin


class OpsResourceType(str, enum.Enum):
    """Kinds of operational resources."""

    DELIVERY_CREW = "delivery_crew"
    VEHICLE = "vehicle"


class OpsResource(TimestampMixin, Base):
    """A capacity-1 crew or vehicle that can serve one leg at a time."""

    __tablename__ = "ops_resources"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    resource_type: Mapped[OpsResourceType] = mapped_column(
        Enum(OpsResourceType), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    color: Mapped[str | None] = mapped_column(String(16))
    notes: Mapped[str | None] = mapped_column(Text())

    schedules: Mapped[list["OpsResourceSchedule"]] = relationship(
        "OpsResourceSchedule",
        back_populates="resource",
        cascade="all, delete-orphan",
    )


class OpsResourceSchedule(TimestampMixin, Base):
    """Weekly working hours for an ops resource (0=Sunday .. 6=Saturday)."""

    __tablename__ = "ops_resource_schedules"
    __table_args__ = (
        UniqueConstraint("resource_id", "day_of_week", name="uq_ops_schedule_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    resource_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("ops_resources.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(
        Time(), nullable=False, default=time(8, 0)
    )
    end_time: Mapped[time] = mapped_column(Time(), nullable=False, default=time(20, 0))
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    resource: Mapped[OpsResource] = relationship(
        "OpsResource", back_populates="schedules"
    )
