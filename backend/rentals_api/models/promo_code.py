"""Promotional code definitions and redemptions."""
from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from rentals_api.db.base import Base
from rentals_api.models.mixins import TimestampMixin


class DiscountType(str, enum.Enum):
    """How a promo code discount is computed."""

    PERCENT = "percent"
    FIXED = "fixed"


class PromoCode(TimestampMixin, Base):
    """A redeemable promotional code."""

    __tablename__ = "promo_codes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(DiscountType), nullable=False
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_discount_cap: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    min_order_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=True
    )
    usage_limit: Mapped[int | None] = mapped_column(Integer)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    single_use_per_customer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    starts_on: Mapped[date | None] = mapped_column(Date)
    expires_on: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class PromoCodeRedemption(TimestampMixin, Base):
    """Records that a customer used a promo code on a booking."""

    __tablename__ = "promo_code_redemptions"
    __table_args__ = (
        UniqueConstraint("promo_code_id", "booking_id", name="uq_promo_redemption"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    promo_code_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("promo_codes.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    discount_applied: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
