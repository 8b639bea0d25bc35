"""Reservation orchestration: availability, pricing, persistence and payment hand-off."""
from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from rentals_api.core.config import get_settings
from rentals_api.core.settings import get_payment_settings
from rentals_api.integrations import StripeClient, StripeClientError
from rentals_api.models import (
    BOOKING_OVERLAP_CONSTRAINT,
    Booking,
    BookingStatus,
    BookingType,
    Customer,
    Product,
    ProductSlot,
    PromoCode,
    PromoCodeRedemption,
    SchedulingMode,
)
from rentals_api.services import (
    booking_block_service,
    customer_service,
    cutoff_service,
    day_rental_service,
    pricing_service,
    resource_registry_service,
    slot_service,
)
from rentals_api.services.errors import (
    BookingIntegrityError,
    ConflictError,
    DependencyError,
    LeadTimeError,
    ValidationError,
)
from rentals_api.services.pricing_service import BookingQuote
from rentals_api.services.time_windows import (
    coerce_utc,
    format_window,
    local_today,
    utcnow,
)

logger = logging.getLogger(__name__)

REASON_TOO_SOON = "too_soon"
RACE_LOST_MESSAGE = "Someone just booked this slot! Please choose another time."

_DAY_RENTAL_TYPES = (BookingType.DAILY, BookingType.WEEKEND, BookingType.SUNDAY)


@dataclass(slots=True)
class Available:
    """A bookable plan: the unit, its windows and any assigned crews."""

    product: Product
    unit_id: uuid.UUID
    booking_type: BookingType
    event_date: date
    delivery_date: date
    pickup_date: date
    delivery_window: str
    pickup_window: str
    event_start: datetime
    event_end: datetime
    service_start: datetime
    service_end: datetime
    same_day_pickup: bool = False
    slot_id: uuid.UUID | None = None
    demotion_reason: str | None = None
    delivery_crew_id: uuid.UUID | None = None
    pickup_crew_id: uuid.UUID | None = None
    delivery_vehicle_id: uuid.UUID | None = None
    pickup_vehicle_id: uuid.UUID | None = None

    is_available = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_available": True,
            "product_id": str(self.product.id),
            "unit_id": str(self.unit_id),
            "booking_type": self.booking_type.value,
            "slot_id": str(self.slot_id) if self.slot_id else None,
            "event_date": self.event_date.isoformat(),
            "delivery_date": self.delivery_date.isoformat(),
            "pickup_date": self.pickup_date.isoformat(),
            "delivery_window": self.delivery_window,
            "pickup_window": self.pickup_window,
            "event_start": self.event_start.isoformat(),
            "event_end": self.event_end.isoformat(),
            "service_start": self.service_start.isoformat(),
            "service_end": self.service_end.isoformat(),
            "same_day_pickup": self.same_day_pickup,
            "demotion_reason": self.demotion_reason,
            "delivery_crew_id": _str_or_none(self.delivery_crew_id),
            "pickup_crew_id": _str_or_none(self.pickup_crew_id),
        }


@dataclass(slots=True)
class Unavailable:
    """Why a request cannot be booked, with the nearest alternative when known."""

    reason_code: str
    message: str
    earliest_available: date | datetime | None = None
    alternative: dict[str, Any] | None = None

    is_available = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_available": False,
            "reason_code": self.reason_code,
            "message": self.message,
            "earliest_available": (
                self.earliest_available.isoformat() if self.earliest_available else None
            ),
            "alternative": self.alternative,
        }


AvailabilityOutcome = Available | Unavailable


@dataclass(slots=True)
class ReservationResult:
    """What a caller gets back from a successful reservation."""

    booking: Booking
    customer: Customer
    quote: BookingQuote
    checkout_session_id: str | None = None
    checkout_url: str | None = None
    demotion_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "booking_id": str(self.booking.id),
            "booking_number": self.booking.booking_number,
            "status": self.booking.status.value,
            "same_day_pickup": self.booking.same_day_pickup,
            "demotion_reason": self.demotion_reason,
            "checkout_session_id": self.checkout_session_id,
            "checkout_url": self.checkout_url,
            "pricing": self.quote.to_dict(),
        }


@dataclass(slots=True)
class CancellationResult:
    booking_id: uuid.UUID
    outcome: str
    checkout_session_id: str | None = field(default=None)


def _str_or_none(value: uuid.UUID | None) -> str | None:
    return str(value) if value is not None else None


def _generate_booking_number(today: date) -> str:
    return f"B-{today:%Y%m%d}-{secrets.token_hex(3).upper()}"


def _product_snapshot(product: Product) -> dict[str, Any]:
    def _price(value: Decimal | None) -> str | None:
        return f"{value:.2f}" if value is not None else None

    return {
        "id": str(product.id),
        "slug": product.slug,
        "name": product.name,
        "scheduling_mode": product.scheduling_mode.value,
        "price_daily": _price(product.price_daily),
        "price_weekend": _price(product.price_weekend),
        "price_sunday": _price(product.price_sunday),
        "setup_minutes": product.setup_minutes,
        "teardown_minutes": product.teardown_minutes,
        "travel_buffer_minutes": product.travel_buffer_minutes,
        "cleaning_minutes": product.cleaning_minutes,
    }


def _find_slot(product: Product, slot_id: uuid.UUID) -> ProductSlot:
    slot = next(
        (slot for slot in product.slots if slot.id == slot_id and slot.is_active), None
    )
    if slot is None:
        raise ValidationError("Selected time slot does not exist for this product")
    return slot


async def _next_open_slot(
    session: AsyncSession,
    *,
    product: Product,
    slot: ProductSlot,
    day: date,
    lead_time_hours: int | None,
    now: datetime,
) -> dict[str, Any] | None:
    slots = await slot_service.get_slots_for_date(
        session, product=product, day=day, lead_time_hours=lead_time_hours, now=now
    )
    open_slots = [entry for entry in slots if entry.is_available]
    later = [entry for entry in open_slots if entry.start_time_local > slot.start_time_local]
    candidate = (later or open_slots or [None])[0]
    if candidate is None:
        return None
    return {
        "date": day.isoformat(),
        "slot_id": str(candidate.slot_id),
        "label": candidate.label,
    }


async def _resolve_slot(
    session: AsyncSession,
    *,
    product: Product,
    slot_id: uuid.UUID | None,
    event_date: date,
    lead_time_hours: int | None,
    now: datetime,
) -> AvailabilityOutcome:
    if slot_id is None:
        raise ValidationError("A time slot is required for this product")
    slot = _find_slot(product, slot_id)
    availability = await slot_service.evaluate_slot(
        session,
        product=product,
        slot=slot,
        day=event_date,
        lead_time_hours=lead_time_hours,
        now=now,
    )
    if not availability.is_available:
        reason = availability.reason_code or slot_service.REASON_FULLY_BOOKED
        outcome = Unavailable(
            reason_code=reason,
            message=availability.unavailable_reason or "Time slot not available",
        )
        if reason == slot_service.REASON_TOO_SOON:
            hours = (
                lead_time_hours
                if lead_time_hours is not None
                else get_settings().lead_time_hours
            )
            outcome.earliest_available = now + timedelta(hours=hours)
        elif reason == slot_service.REASON_FULLY_BOOKED:
            outcome.alternative = await _next_open_slot(
                session,
                product=product,
                slot=slot,
                day=event_date,
                lead_time_hours=lead_time_hours,
                now=now,
            )
        return outcome

    window = availability.window
    event_window = format_window(slot.start_time_local, slot.end_time_local)
    setup = timedelta(minutes=product.setup_minutes)
    teardown = timedelta(minutes=product.teardown_minutes)
    assigned = await day_rental_service.assign_leg_resources(
        session,
        delivery_window=(window.event_start - setup, window.event_start),
        delivery_leg=(window.service_start, window.event_start),
        pickup_window=(window.event_end, window.event_end + teardown),
        pickup_leg=(window.event_end, window.service_end),
    )
    assert availability.unit_id is not None
    return Available(
        product=product,
        unit_id=availability.unit_id,
        booking_type=BookingType.SLOT,
        event_date=event_date,
        delivery_date=event_date,
        pickup_date=event_date,
        delivery_window=event_window,
        pickup_window=event_window,
        event_start=window.event_start,
        event_end=window.event_end,
        service_start=window.service_start,
        service_end=window.service_end,
        same_day_pickup=True,
        slot_id=slot.id,
        **assigned,
    )


async def _resolve_day_rental(
    session: AsyncSession,
    *,
    product: Product,
    booking_type: BookingType,
    delivery_date: date,
    pickup_date: date,
    event_date: date,
    lead_time_hours: int | None,
    now: datetime,
    alternative_type: BookingType | None = None,
) -> AvailabilityOutcome:
    resolution = await day_rental_service.resolve_day_rental(
        session,
        product=product,
        delivery_date=delivery_date,
        pickup_date=pickup_date,
        lead_time_hours=lead_time_hours,
        now=now,
        booking_type=alternative_type,
    )
    if not resolution.is_available or resolution.timeline is None:
        return Unavailable(
            reason_code=resolution.reason_code or day_rental_service.REASON_NO_UNIT,
            message=resolution.unavailable_reason or "Not available for these dates",
            earliest_available=resolution.earliest_available,
            alternative=resolution.alternative,
        )
    timeline = resolution.timeline
    assert resolution.unit_id is not None
    return Available(
        product=product,
        unit_id=resolution.unit_id,
        booking_type=booking_type,
        event_date=event_date,
        delivery_date=timeline.delivery_date,
        pickup_date=timeline.pickup_date,
        delivery_window=timeline.delivery_window,
        pickup_window=timeline.pickup_window,
        event_start=timeline.event_start,
        event_end=timeline.event_end,
        service_start=timeline.service_start,
        service_end=timeline.service_end,
        same_day_pickup=timeline.same_day_pickup,
        demotion_reason=resolution.demotion_reason,
        delivery_crew_id=resolution.delivery_crew_id,
        pickup_crew_id=resolution.pickup_crew_id,
        delivery_vehicle_id=resolution.delivery_vehicle_id,
        pickup_vehicle_id=resolution.pickup_vehicle_id,
    )


async def resolve_availability(
    session: AsyncSession,
    *,
    product_ref: uuid.UUID | str,
    event_date: date,
    booking_type: BookingType | None = None,
    slot_id: uuid.UUID | None = None,
    pickup_date: date | None = None,
    now: datetime | None = None,
    lead_time_hours: int | None = None,
) -> AvailabilityOutcome:
    """Apply the booking cutoff, then dispatch to the slot or day-rental resolver.

    The returned plan is advisory. The bookings exclusion constraint decides
    which of several racing inserts actually wins.
    """
    now = coerce_utc(now) if now is not None else utcnow()
    product = await resource_registry_service.get_product(
        session, product_ref=product_ref
    )
    if product is None:
        raise ValidationError("Product not found")

    alternative_type: BookingType | None = None
    if product.scheduling_mode == SchedulingMode.SLOT_BASED:
        if booking_type not in (None, BookingType.SLOT):
            raise ValidationError("This product is only bookable by time slot")
        delivery_date = event_date
    else:
        booking_type = booking_type or BookingType.DAILY
        if booking_type not in _DAY_RENTAL_TYPES:
            raise ValidationError("A rental type of daily, weekend or sunday is required")
        if pickup_date is None:
            dates = day_rental_service.derive_rental_dates(booking_type, event_date)
            delivery_date, pickup_date = dates.delivery_date, dates.pickup_date
            alternative_type = booking_type
        else:
            delivery_date = event_date

    cutoff = cutoff_service.check_booking_cutoff(delivery_date, now=now)
    if not cutoff.allowed:
        return Unavailable(
            reason_code=REASON_TOO_SOON,
            message=cutoff.message or "Date is too soon",
            earliest_available=cutoff.earliest_available,
        )

    if product.scheduling_mode == SchedulingMode.SLOT_BASED:
        return await _resolve_slot(
            session,
            product=product,
            slot_id=slot_id,
            event_date=event_date,
            lead_time_hours=lead_time_hours,
            now=now,
        )
    assert booking_type is not None and pickup_date is not None
    return await _resolve_day_rental(
        session,
        product=product,
        booking_type=booking_type,
        delivery_date=delivery_date,
        pickup_date=pickup_date,
        event_date=event_date,
        lead_time_hours=lead_time_hours,
        now=now,
        alternative_type=alternative_type,
    )


def _raise_unavailable(outcome: Unavailable) -> None:
    if outcome.reason_code == REASON_TOO_SOON:
        raise LeadTimeError(outcome.message, earliest_available=outcome.earliest_available)
    raise ConflictError(outcome.message, alternative=outcome.alternative)


async def _discard_booking(session: AsyncSession, booking: Booking) -> None:
    await booking_block_service.delete_booking_blocks(session, booking_id=booking.id)
    session.expire(booking, ["blocks"])
    await session.delete(booking)
    await session.commit()


async def _alternative_after_race(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    outcome: Available,
    lead_time_hours: int | None,
    now: datetime,
) -> dict[str, Any] | None:
    # The rollback expired the product, so load it again.
    product = await resource_registry_service.get_product(session, product_ref=product_id)
    if product is None:
        return None
    if product.scheduling_mode == SchedulingMode.SLOT_BASED:
        slot = next((slot for slot in product.slots if slot.id == outcome.slot_id), None)
        if slot is None:
            return None
        return await _next_open_slot(
            session,
            product=product,
            slot=slot,
            day=outcome.event_date,
            lead_time_hours=lead_time_hours,
            now=now,
        )
    return await day_rental_service.find_next_available_dates(
        session,
        product=product,
        delivery_date=outcome.delivery_date,
        pickup_date=outcome.pickup_date,
        booking_type=outcome.booking_type,
    )


async def create_reservation(
    session: AsyncSession,
    *,
    payment_client: StripeClient,
    product_ref: uuid.UUID | str,
    event_date: date,
    customer_email: str,
    booking_type: BookingType | None = None,
    slot_id: uuid.UUID | None = None,
    customer_first_name: str | None = None,
    customer_last_name: str | None = None,
    customer_phone: str | None = None,
    promo_code: str | None = None,
    payment_type: str = "deposit",
    now: datetime | None = None,
    lead_time_hours: int | None = None,
) -> ReservationResult:
    """Create a pending booking and open a checkout session for it."""
    now = coerce_utc(now) if now is not None else utcnow()
    email = customer_service.normalize_email(customer_email)
    if payment_type not in pricing_service.PAYMENT_TYPES:
        raise ValidationError("payment_type must be 'deposit' or 'full'")

    outcome = await resolve_availability(
        session,
        product_ref=product_ref,
        event_date=event_date,
        booking_type=booking_type,
        slot_id=slot_id,
        now=now,
        lead_time_hours=lead_time_hours,
    )
    if isinstance(outcome, Unavailable):
        logger.info(
            "Reservation for %s on %s unavailable: %s",
            product_ref,
            event_date,
            outcome.reason_code,
        )
        _raise_unavailable(outcome)
    assert isinstance(outcome, Available)
    product = outcome.product

    customer = await customer_service.find_or_create_customer(
        session,
        email=email,
        first_name=customer_first_name,
        last_name=customer_last_name,
        phone=customer_phone,
    )
    today = local_today(now)
    quote = await pricing_service.quote_booking(
        session,
        product=product,
        booking_type=outcome.booking_type,
        payment_type=payment_type,
        promo_code=promo_code,
        customer_id=customer.id,
        today=today,
    )

    booking = Booking(
        booking_number=_generate_booking_number(today),
        product_id=product.id,
        unit_id=outcome.unit_id,
        customer_id=customer.id,
        slot_id=outcome.slot_id,
        booking_type=outcome.booking_type,
        status=BookingStatus.PENDING,
        product_snapshot=_product_snapshot(product),
        event_date=outcome.event_date,
        delivery_date=outcome.delivery_date,
        pickup_date=outcome.pickup_date,
        delivery_window=outcome.delivery_window,
        pickup_window=outcome.pickup_window,
        same_day_pickup=outcome.same_day_pickup,
        event_start=outcome.event_start,
        event_end=outcome.event_end,
        service_start=outcome.service_start,
        service_end=outcome.service_end,
        subtotal=quote.subtotal,
        discount_amount=quote.discount_total,
        promo_code=quote.promo_code,
        total=quote.total,
        deposit_amount=quote.deposit_amount,
        balance_due=quote.balance_due,
        payment_type=quote.payment_type,
        delivery_crew_id=outcome.delivery_crew_id,
        pickup_crew_id=outcome.pickup_crew_id,
        delivery_vehicle_id=outcome.delivery_vehicle_id,
        pickup_vehicle_id=outcome.pickup_vehicle_id,
    )
    product_id = product.id
    session.add(booking)
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        if BOOKING_OVERLAP_CONSTRAINT in str(exc.orig):
            logger.info(
                "Lost booking race for unit %s (%s - %s)",
                outcome.unit_id,
                outcome.service_start,
                outcome.service_end,
            )
            alternative = await _alternative_after_race(
                session,
                product_id=product_id,
                outcome=outcome,
                lead_time_hours=lead_time_hours,
                now=now,
            )
            raise ConflictError(RACE_LOST_MESSAGE, alternative=alternative) from exc
        logger.exception("Failed to persist booking for product %s", product_id)
        raise DependencyError("Unable to save the booking. Please try again.") from exc

    await booking_block_service.materialize_blocks(session, booking)
    await session.commit()

    if quote.amount_due_now <= 0:
        # Nothing to collect, so there is no checkout to wait for.
        await confirm_reservation(session, booking_id=booking.id, now=now)
        logger.info(
            "Booking %s fully discounted; confirmed without checkout",
            booking.booking_number,
        )
        return ReservationResult(
            booking=booking,
            customer=customer,
            quote=quote,
            demotion_reason=outcome.demotion_reason,
        )

    payment_settings = get_payment_settings()
    site_url = payment_settings.site_url
    try:
        checkout = payment_client.create_checkout_session(
            amount=quote.amount_due_now,
            description=f"{product.name} booking {booking.booking_number}",
            metadata={
                "booking_id": booking.id,
                "booking_number": booking.booking_number,
                "payment_type": quote.payment_type,
            },
            success_url=f"{site_url}/booking/success?booking={booking.booking_number}",
            cancel_url=f"{site_url}/booking/cancelled?booking={booking.booking_number}",
            customer_email=customer.email,
            expires_after_minutes=payment_settings.checkout_session_ttl_minutes,
            idempotency_seed=booking.id,
        )
    except StripeClientError as exc:
        logger.exception(
            "Checkout session failed for booking %s; rolling back", booking.id
        )
        await _discard_booking(session, booking)
        raise DependencyError(
            "Payment could not be started. Your booking was not saved, please try again."
        ) from exc

    booking.stripe_checkout_session_id = checkout.id
    await session.commit()
    logger.info(
        "Booking %s created pending payment (unit %s, %s - %s)",
        booking.booking_number,
        booking.unit_id,
        booking.service_start,
        booking.service_end,
    )
    return ReservationResult(
        booking=booking,
        customer=customer,
        quote=quote,
        checkout_session_id=checkout.id,
        checkout_url=checkout.url,
        demotion_reason=outcome.demotion_reason,
    )


async def get_reservation(
    session: AsyncSession, *, booking_id: uuid.UUID
) -> Booking | None:
    stmt = (
        select(Booking)
        .options(
            selectinload(Booking.product),
            selectinload(Booking.customer),
            selectinload(Booking.blocks),
        )
        .where(Booking.id == booking_id)
    )
    result = await session.execute(stmt)
    return result.scalars().unique().one_or_none()


async def get_reservation_by_checkout_session(
    session: AsyncSession, *, checkout_session_id: str
) -> Booking | None:
    stmt = (
        select(Booking)
        .options(selectinload(Booking.customer))
        .where(Booking.stripe_checkout_session_id == checkout_session_id)
    )
    return (await session.execute(stmt)).scalars().first()


def _expire_checkout(payment_client: StripeClient | None, session_id: str | None) -> None:
    if payment_client is None or not session_id:
        return
    try:
        payment_client.expire_checkout_session(session_id)
    except StripeClientError:
        logger.warning("Could not expire checkout session %s", session_id)


async def cancel_reservation(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    reason: str | None = None,
    payment_client: StripeClient | None = None,
    now: datetime | None = None,
) -> CancellationResult:
    """Cancel a booking and release its blocks in one transaction.

    Pending bookings are deleted outright; confirmed ones are kept as
    ``cancelled`` for the record.
    """
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise ValidationError("Booking not found")
    if booking.status == BookingStatus.CANCELLED:
        return CancellationResult(booking_id=booking_id, outcome="already_cancelled")
    if booking.status == BookingStatus.COMPLETED:
        raise ValidationError("Completed bookings cannot be cancelled")

    checkout_session_id = booking.stripe_checkout_session_id
    if booking.status == BookingStatus.PENDING:
        await _discard_booking(session, booking)
        outcome = "deleted"
    else:
        await booking_block_service.delete_booking_blocks(session, booking_id=booking.id)
        session.expire(booking, ["blocks"])
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = coerce_utc(now) if now is not None else utcnow()
        booking.cancellation_reason = reason
        await session.commit()
        outcome = "cancelled"

    logger.info("Booking %s %s (%s)", booking_id, outcome, reason or "no reason given")
    if outcome == "deleted":
        _expire_checkout(payment_client, checkout_session_id)
    return CancellationResult(
        booking_id=booking_id,
        outcome=outcome,
        checkout_session_id=checkout_session_id,
    )


async def confirm_reservation(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    checkout_session_id: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Mark a pending booking confirmed after payment and record promo usage."""
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise ValidationError("Booking not found")
    if booking.status == BookingStatus.CONFIRMED:
        return booking
    if booking.status != BookingStatus.PENDING:
        raise ConflictError(
            f"Booking {booking.booking_number} is {booking.status.value} and cannot be confirmed"
        )
    if (
        checkout_session_id
        and booking.stripe_checkout_session_id
        and booking.stripe_checkout_session_id != checkout_session_id
    ):
        logger.error(
            "Checkout session %s does not match booking %s (expected %s)",
            checkout_session_id,
            booking.id,
            booking.stripe_checkout_session_id,
        )
        raise BookingIntegrityError("Checkout session does not belong to this booking")

    booking.status = BookingStatus.CONFIRMED
    booking.confirmed_at = coerce_utc(now) if now is not None else utcnow()
    if checkout_session_id and not booking.stripe_checkout_session_id:
        booking.stripe_checkout_session_id = checkout_session_id

    if booking.promo_code:
        promo = (
            await session.execute(
                select(PromoCode).where(PromoCode.code == booking.promo_code)
            )
        ).scalar_one_or_none()
        if promo is not None:
            promo.usage_count += 1
            session.add(
                PromoCodeRedemption(
                    promo_code_id=promo.id,
                    customer_id=booking.customer_id,
                    booking_id=booking.id,
                    discount_applied=booking.discount_amount,
                )
            )
    await session.commit()
    logger.info("Booking %s confirmed", booking.booking_number)
    return booking


async def expire_pending_reservations(
    session: AsyncSession,
    *,
    older_than_minutes: int | None = None,
    payment_client: StripeClient | None = None,
    now: datetime | None = None,
) -> list[uuid.UUID]:
    """Remove pending bookings whose payment window has lapsed."""
    if older_than_minutes is None:
        older_than_minutes = get_settings().pending_booking_ttl_minutes
    now = coerce_utc(now) if now is not None else utcnow()
    threshold = now - timedelta(minutes=older_than_minutes)
    stmt = select(Booking).where(
        Booking.status == BookingStatus.PENDING, Booking.created_at < threshold
    )
    stale = list((await session.execute(stmt)).scalars().all())
    expired: list[uuid.UUID] = []
    session_ids: list[str | None] = []
    for booking in stale:
        await booking_block_service.delete_booking_blocks(session, booking_id=booking.id)
        session.expire(booking, ["blocks"])
        await session.delete(booking)
        expired.append(booking.id)
        session_ids.append(booking.stripe_checkout_session_id)
    await session.commit()
    for checkout_session_id in session_ids:
        _expire_checkout(payment_client, checkout_session_id)
    if expired:
        logger.info("Expired %d pending bookings", len(expired))
    return expired
