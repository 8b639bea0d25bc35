"""Promo code validation schemas."""

from __future__ import annotations

import uuid
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field


class PromoCodeValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    order_amount: Decimal = Field(ge=Decimal("0"))
    product: str | None = None
    customer_email: EmailStr | None = None


class PromoCodeValidateResponse(BaseModel):
    valid: bool
    code: str
    discount_type: str | None = None
    discount_amount: Decimal | None = None
    max_discount_cap: Decimal | None = None
    calculated_discount: Decimal = Decimal("0.00")
    error_message: str | None = None
    product_id: uuid.UUID | None = None
