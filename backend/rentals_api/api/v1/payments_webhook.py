"""Stripe webhook receiver for checkout events."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, cast

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.api import deps
from rentals_api.core.settings import get_payment_settings
from rentals_api.integrations import StripeClient, StripeClientError
from rentals_api.models import Booking, BookingStatus
from rentals_api.services import notification_service, reservation_service
from rentals_api.services.errors import BookingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments-webhook"])


async def _booking_for_checkout(
    session: AsyncSession, data_object: dict[str, Any]
) -> Booking | None:
    metadata = data_object.get("metadata") or {}
    raw_id = metadata.get("booking_id")
    if raw_id:
        try:
            booking = await reservation_service.get_reservation(
                session, booking_id=uuid.UUID(str(raw_id))
            )
        except ValueError:
            booking = None
        if booking is not None:
            return booking
    session_id = data_object.get("id")
    if not session_id:
        return None
    return await reservation_service.get_reservation_by_checkout_session(
        session, checkout_session_id=str(session_id)
    )


async def _process_event(
    session: AsyncSession,
    payload: dict[str, Any],
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    event_type = payload.get("type", "")
    data_object = payload.get("data", {}).get("object", {}) or {}

    status_payload = "ignored"

    if event_type == "checkout.session.completed":
        booking = await _booking_for_checkout(session, data_object)
        if booking is None:
            logger.warning(
                "Checkout %s completed for unknown booking", data_object.get("id")
            )
            return {"status": "unmatched"}
        already_confirmed = booking.status == BookingStatus.CONFIRMED
        try:
            confirmed = await reservation_service.confirm_reservation(
                session,
                booking_id=booking.id,
                checkout_session_id=data_object.get("id"),
            )
        except BookingError:
            logger.exception("Could not confirm booking %s", booking.id)
            return {"status": "rejected"}
        if not already_confirmed:
            notification_service.notify_booking_confirmed(
                confirmed,
                booking.customer,
                background_tasks,
                product_name=confirmed.product_snapshot.get("name", "your rental"),
            )
        status_payload = "processed"

    elif event_type == "checkout.session.expired":
        booking = await _booking_for_checkout(session, data_object)
        if booking is not None and booking.status == BookingStatus.PENDING:
            await reservation_service.cancel_reservation(
                session, booking_id=booking.id, reason="checkout expired"
            )
        status_payload = "processed"

    return {"status": status_payload}


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def handle_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(deps.get_db_session),
    stripe_client: StripeClient = Depends(deps.get_stripe_client),
) -> dict[str, Any]:
    settings = get_payment_settings()
    payload_bytes = await request.body()
    payload: dict[str, Any]

    if settings.payments_webhook_verify:
        signature = request.headers.get("Stripe-Signature")
        if not signature:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing signature header",
            )
        try:  # pragma: no cover - depends on stripe availability
            event = stripe_client.construct_event(payload_bytes, signature)
        except StripeClientError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        if hasattr(event, "to_dict_recursive"):
            payload = cast(dict[str, Any], event.to_dict_recursive())
        else:
            payload = cast(dict[str, Any], event)
    else:
        try:
            payload = json.loads(payload_bytes)
        except json.JSONDecodeError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
            ) from exc

    return await _process_event(session, payload, background_tasks)
