"""Booking price quotes and promotional code evaluation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.core.config import get_settings
from rentals_api.models import (
    BookingType,
    DiscountType,
    Product,
    PromoCode,
    PromoCodeRedemption,
)
from rentals_api.services.errors import ValidationError

MONEY_PLACES = Decimal("0.01")
PAYMENT_TYPES = ("deposit", "full")


@dataclass(slots=True)
class PricingLine:
    """Individual component contributing to a booking quote."""

    description: str
    amount: Decimal


@dataclass(slots=True)
class PromoEvaluation:
    """Result of checking a promo code against an order."""

    valid: bool
    code: str
    discount_type: DiscountType | None = None
    discount_amount: Decimal | None = None
    max_discount_cap: Decimal | None = None
    calculated_discount: Decimal = Decimal("0.00")
    error_message: str | None = None
    promo_code_id: uuid.UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "code": self.code,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "discount_amount": _to_str(self.discount_amount),
            "max_discount_cap": _to_str(self.max_discount_cap),
            "calculated_discount": _to_str(self.calculated_discount),
            "error_message": self.error_message,
        }


@dataclass(slots=True)
class BookingQuote:
    """Aggregate pricing output for a booking."""

    items: list[PricingLine]
    subtotal: Decimal
    discount_total: Decimal
    total: Decimal
    deposit_amount: Decimal
    balance_due: Decimal
    payment_type: str
    promo_code: str | None = None
    promo_code_id: uuid.UUID | None = field(default=None)

    @property
    def amount_due_now(self) -> Decimal:
        return self.total if self.payment_type == "full" else self.deposit_amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [
                {"description": line.description, "amount": _to_str(line.amount)}
                for line in self.items
            ],
            "subtotal": _to_str(self.subtotal),
            "discount_total": _to_str(self.discount_total),
            "total": _to_str(self.total),
            "deposit_amount": _to_str(self.deposit_amount),
            "balance_due": _to_str(self.balance_due),
            "amount_due_now": _to_str(self.amount_due_now),
            "payment_type": self.payment_type,
            "promo_code": self.promo_code,
        }


def _to_money(value: Decimal | float | str) -> Decimal:
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return f"{value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP):.2f}"


def base_price(product: Product, booking_type: BookingType) -> Decimal:
    """Look up the product's price for a booking type."""
    if booking_type == BookingType.WEEKEND:
        price = product.price_weekend
    elif booking_type == BookingType.SUNDAY:
        price = product.price_sunday
    else:
        price = product.price_daily
    if price is None:
        raise ValidationError(
            f"{product.name} is not offered as a {booking_type.value} rental"
        )
    return _to_money(price)


async def evaluate_promo_code(
    session: AsyncSession,
    *,
    code: str,
    customer_id: uuid.UUID | None,
    product_id: uuid.UUID | None,
    order_amount: Decimal,
    today: date | None = None,
) -> PromoEvaluation:
    """Validate a promo code and compute its discount for an order."""
    normalized = code.strip().upper()
    evaluation = PromoEvaluation(valid=False, code=normalized)
    if not normalized:
        evaluation.error_message = "Promo code is required"
        return evaluation

    promo = (
        await session.execute(select(PromoCode).where(PromoCode.code == normalized))
    ).scalar_one_or_none()
    if promo is None or not promo.is_active:
        evaluation.error_message = "Invalid promo code"
        return evaluation

    today = today or date.today()
    if promo.starts_on and today < promo.starts_on:
        evaluation.error_message = "This promo code is not active yet"
        return evaluation
    if promo.expires_on and today > promo.expires_on:
        evaluation.error_message = "This promo code has expired"
        return evaluation
    if promo.product_id and product_id and promo.product_id != product_id:
        evaluation.error_message = "This promo code does not apply to this rental"
        return evaluation
    if promo.min_order_amount and order_amount < promo.min_order_amount:
        evaluation.error_message = (
            f"Minimum order of ${_to_str(promo.min_order_amount)} required"
        )
        return evaluation
    if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
        evaluation.error_message = "This promo code has reached its usage limit"
        return evaluation
    if promo.single_use_per_customer and customer_id is not None:
        used = await session.scalar(
            select(func.count(PromoCodeRedemption.id)).where(
                PromoCodeRedemption.promo_code_id == promo.id,
                PromoCodeRedemption.customer_id == customer_id,
            )
        )
        if used:
            evaluation.error_message = "You have already used this promo code"
            return evaluation

    if promo.discount_type == DiscountType.PERCENT:
        discount = _to_money(order_amount * promo.discount_amount / Decimal("100"))
        if promo.max_discount_cap is not None:
            discount = min(discount, _to_money(promo.max_discount_cap))
    else:
        discount = _to_money(promo.discount_amount)
    discount = min(discount, _to_money(order_amount))

    evaluation.valid = True
    evaluation.discount_type = promo.discount_type
    evaluation.discount_amount = _to_money(promo.discount_amount)
    evaluation.max_discount_cap = (
        _to_money(promo.max_discount_cap) if promo.max_discount_cap is not None else None
    )
    evaluation.calculated_discount = discount
    evaluation.promo_code_id = promo.id
    return evaluation


async def quote_booking(
    session: AsyncSession,
    *,
    product: Product,
    booking_type: BookingType,
    payment_type: str = "deposit",
    promo_code: str | None = None,
    customer_id: uuid.UUID | None = None,
    today: date | None = None,
) -> BookingQuote:
    """Price a booking: base price, optional promo discount, deposit and balance."""
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError("payment_type must be 'deposit' or 'full'")

    subtotal = base_price(product, booking_type)
    items = [PricingLine(description=f"{product.name} ({booking_type.value})", amount=subtotal)]
    discount = Decimal("0.00")
    applied_code: str | None = None
    promo_code_id: uuid.UUID | None = None

    if promo_code:
        evaluation = await evaluate_promo_code(
            session,
            code=promo_code,
            customer_id=customer_id,
            product_id=product.id,
            order_amount=subtotal,
            today=today,
        )
        if not evaluation.valid:
            raise ValidationError(evaluation.error_message or "Invalid promo code")
        discount = evaluation.calculated_discount
        applied_code = evaluation.code
        promo_code_id = evaluation.promo_code_id
        if discount:
            items.append(
                PricingLine(description=f"Promo {evaluation.code}", amount=-discount)
            )

    total = _to_money(subtotal - discount)
    deposit = min(_to_money(get_settings().deposit_amount), total)
    return BookingQuote(
        items=items,
        subtotal=subtotal,
        discount_total=discount,
        total=total,
        deposit_amount=deposit,
        balance_due=_to_money(total - deposit),
        payment_type=payment_type,
        promo_code=applied_code,
        promo_code_id=promo_code_id,
    )
