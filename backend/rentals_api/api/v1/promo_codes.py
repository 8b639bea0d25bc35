"""Promo code validation endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.api import deps
from rentals_api.schemas.promo_code import (
    PromoCodeValidateRequest,
    PromoCodeValidateResponse,
)
from rentals_api.services import (
    customer_service,
    pricing_service,
    resource_registry_service,
)
from rentals_api.services.time_windows import local_today, utcnow

router = APIRouter()


@router.post(
    "/validate",
    response_model=PromoCodeValidateResponse,
    summary="Check a promo code against an order amount",
)
async def validate_promo_code(
    payload: PromoCodeValidateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> PromoCodeValidateResponse:
    product_id = None
    if payload.product:
        product = await resource_registry_service.get_product(
            session, product_ref=payload.product
        )
        if product is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Product not found"
            )
        product_id = product.id

    customer_id = None
    if payload.customer_email:
        customer = await customer_service.get_customer_by_email(
            session, email=payload.customer_email
        )
        customer_id = customer.id if customer else None

    evaluation = await pricing_service.evaluate_promo_code(
        session,
        code=payload.code,
        customer_id=customer_id,
        product_id=product_id,
        order_amount=payload.order_amount,
        today=local_today(utcnow()),
    )
    return PromoCodeValidateResponse(
        **evaluation.to_dict(), product_id=product_id
    )
