"""Reservation API."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.api import deps
from rentals_api.api.errors import to_http_exception
from rentals_api.api.rate_limit import parse_rate, rate_dependency
from rentals_api.core.config import get_settings
from rentals_api.integrations import StripeClient
from rentals_api.models import BookingStatus
from rentals_api.schemas.reservation import (
    ReservationCancelRequest,
    ReservationCancelResponse,
    ReservationCreate,
    ReservationCreateResponse,
    ReservationExpireResponse,
    ReservationRead,
)
from rentals_api.services import notification_service, reservation_service
from rentals_api.services.errors import BookingError

router = APIRouter()

settings = get_settings()

_BOOKING_RATE_DEP = rate_dependency(
    parse_rate(settings.rate_limit_booking, fallback=(10, 60))
)


@router.post(
    "",
    response_model=ReservationCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create reservation",
    dependencies=[_BOOKING_RATE_DEP],
)
async def create_reservation(
    payload: ReservationCreate,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    background_tasks: BackgroundTasks,
) -> ReservationCreateResponse:
    try:
        result = await reservation_service.create_reservation(
            session,
            payment_client=stripe_client,
            product_ref=payload.product,
            event_date=payload.event_date,
            booking_type=payload.booking_type,
            slot_id=payload.slot_id,
            customer_email=str(payload.customer_email),
            customer_first_name=payload.customer_first_name,
            customer_last_name=payload.customer_last_name,
            customer_phone=payload.customer_phone,
            promo_code=payload.promo_code,
            payment_type=payload.payment_type,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    product_name = result.booking.product_snapshot.get("name", "your rental")
    if result.booking.status == BookingStatus.CONFIRMED:
        notification_service.notify_booking_confirmed(
            result.booking, result.customer, background_tasks, product_name=product_name
        )
    else:
        notification_service.notify_booking_received(
            result.booking,
            result.customer,
            background_tasks,
            product_name=product_name,
            checkout_url=result.checkout_url,
        )
    return ReservationCreateResponse.model_validate(result.to_dict())


@router.post(
    "/expire-pending",
    response_model=ReservationExpireResponse,
    summary="Remove pending reservations whose payment window lapsed",
    dependencies=[Depends(deps.require_internal_token)],
)
async def expire_pending_reservations(
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    older_than_minutes: int | None = None,
) -> ReservationExpireResponse:
    expired = await reservation_service.expire_pending_reservations(
        session,
        older_than_minutes=older_than_minutes,
        payment_client=stripe_client,
    )
    return ReservationExpireResponse(expired=expired)


@router.get(
    "/{booking_id}", response_model=ReservationRead, summary="Get reservation"
)
async def get_reservation(
    booking_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> ReservationRead:
    booking = await reservation_service.get_reservation(session, booking_id=booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found"
        )
    return ReservationRead.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=ReservationCancelResponse,
    summary="Cancel reservation",
)
async def cancel_reservation(
    booking_id: uuid.UUID,
    payload: ReservationCancelRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    stripe_client: Annotated[StripeClient, Depends(deps.get_stripe_client)],
    x_internal_token: Annotated[str | None, Header()] = None,
) -> ReservationCancelResponse:
    booking = await reservation_service.get_reservation(session, booking_id=booking_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found"
        )
    is_owner = (
        payload.customer_email is not None
        and str(payload.customer_email).lower() == booking.customer.email
    )
    if not (is_owner or deps.has_internal_token(x_internal_token)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to cancel this reservation",
        )
    try:
        result = await reservation_service.cancel_reservation(
            session,
            booking_id=booking_id,
            reason=payload.reason or ("customer request" if is_owner else "staff request"),
            payment_client=stripe_client,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return ReservationCancelResponse(booking_id=result.booking_id, outcome=result.outcome)
