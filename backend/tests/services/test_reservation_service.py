"""Tests for the reservation orchestrator."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from rentals_api.integrations import StripeClient, StripeClientError
from rentals_api.models import (
    BlackoutDate,
    Booking,
    BookingBlock,
    BookingStatus,
    BookingType,
    DiscountType,
    PromoCode,
    PromoCodeRedemption,
)
from rentals_api.services import (
    booking_block_service,
    reservation_service,
    resource_registry_service,
)
from rentals_api.services.errors import (
    BookingIntegrityError,
    ConflictError,
    DependencyError,
    LeadTimeError,
    ValidationError,
)
from rentals_api.services.reservation_service import Available, Unavailable

pytestmark = pytest.mark.asyncio

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=UTC)
TUESDAY = date(2025, 7, 15)
SLOT_DAY = date(2025, 7, 12)


class FailingStripeClient(StripeClient):
    def create_checkout_session(self, **kwargs):
        raise StripeClientError("card network unavailable")


async def _reserve(sessionmaker, payment_client=None, **overrides):
    params = dict(
        product_ref="bounce-castle",
        event_date=TUESDAY,
        customer_email="renter@example.com",
        customer_first_name="Robin",
        now=NOW,
    )
    params.update(overrides)
    async with sessionmaker() as session:
        return await reservation_service.create_reservation(
            session, payment_client=payment_client or StripeClient(None), **params
        )


async def _count(sessionmaker, model) -> int:
    async with sessionmaker() as session:
        return await session.scalar(select(func.count()).select_from(model))


def _stale_unit_once(monkeypatch, unit_id: uuid.UUID) -> None:
    """Answer the first unit lookup as if a competing booking had not landed yet."""
    real_find_free_unit = resource_registry_service.find_free_unit
    stale_answers = [SimpleNamespace(id=unit_id)]

    async def stale_free_unit(session, *, product_id, start, end):
        if stale_answers:
            return stale_answers.pop()
        return await real_find_free_unit(
            session, product_id=product_id, start=start, end=end
        )

    monkeypatch.setattr(resource_registry_service, "find_free_unit", stale_free_unit)


async def test_reservation_creates_pending_booking_with_blocks(
    sessionmaker, catalog
) -> None:
    result = await _reserve(sessionmaker)

    assert result.booking.status == BookingStatus.PENDING
    assert result.booking.booking_number.startswith("B-20250701-")
    assert result.booking.unit_id == catalog["castle_unit_id"]
    assert result.booking.same_day_pickup is True
    assert result.checkout_session_id and result.checkout_session_id.startswith("cs_test_")
    assert result.booking.stripe_checkout_session_id == result.checkout_session_id
    assert result.quote.total == Decimal("200.00")
    assert result.quote.deposit_amount == Decimal("50.00")
    payload = result.to_dict()
    assert payload["status"] == "pending"
    assert payload["pricing"]["amount_due_now"] == "50.00"

    async with sessionmaker() as session:
        booking = await reservation_service.get_reservation(
            session, booking_id=result.booking.id
        )
    assert booking is not None
    assert booking.customer.email == "renter@example.com"
    assert booking.product_snapshot["slug"] == "bounce-castle"
    assert len(booking.blocks) == 5


async def test_concurrent_requests_for_last_unit_yield_one_booking(
    sessionmaker, catalog
) -> None:
    payment_client = StripeClient(None)

    async def attempt(index: int):
        try:
            return await _reserve(
                sessionmaker,
                payment_client,
                customer_email=f"racer{index}@example.com",
            )
        except ConflictError as exc:
            return exc

    outcomes = await asyncio.gather(*(attempt(index) for index in range(4)))

    winners = [item for item in outcomes if not isinstance(item, ConflictError)]
    losers = [item for item in outcomes if isinstance(item, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 3
    assert await _count(sessionmaker, Booking) == 1


async def test_lost_race_is_reported_as_conflict(
    sessionmaker, catalog, booking_factory, monkeypatch
) -> None:
    async with sessionmaker() as session:
        await booking_factory(
            session,
            product_id=catalog["castle_id"],
            unit_id=catalog["castle_unit_id"],
            day=TUESDAY,
            start=time(6, 0),
            end=time(22, 0),
        )

    _stale_unit_once(monkeypatch, catalog["castle_unit_id"])

    with pytest.raises(ConflictError) as excinfo:
        await _reserve(sessionmaker)

    wednesday = (TUESDAY + timedelta(days=1)).isoformat()
    assert excinfo.value.message == reservation_service.RACE_LOST_MESSAGE
    assert excinfo.value.alternative == {
        "event_date": wednesday,
        "delivery_date": wednesday,
        "pickup_date": wednesday,
    }
    assert excinfo.value.to_detail()["alternative"]["event_date"] == wednesday
    assert await _count(sessionmaker, Booking) == 1


async def test_lost_slot_race_names_next_open_slot(
    sessionmaker, catalog, monkeypatch
) -> None:
    morning = dict(
        product_ref="photo-booth", event_date=SLOT_DAY, slot_id=catalog["morning_slot_id"]
    )
    await _reserve(sessionmaker, **morning)
    _stale_unit_once(monkeypatch, catalog["booth_unit_id"])

    with pytest.raises(ConflictError) as excinfo:
        await _reserve(sessionmaker, customer_email="second@example.com", **morning)

    assert excinfo.value.message == reservation_service.RACE_LOST_MESSAGE
    assert excinfo.value.alternative == {
        "date": SLOT_DAY.isoformat(),
        "slot_id": str(catalog["evening_slot_id"]),
        "label": "Evening",
    }
    assert await _count(sessionmaker, Booking) == 1


async def test_payment_failure_rolls_back_booking(sessionmaker, catalog) -> None:
    with pytest.raises(DependencyError):
        await _reserve(sessionmaker, FailingStripeClient(None))

    assert await _count(sessionmaker, Booking) == 0
    assert await _count(sessionmaker, BookingBlock) == 0

    retry = await _reserve(sessionmaker)
    assert retry.booking.status == BookingStatus.PENDING


async def test_block_failure_is_logged_and_keeps_the_booking(
    sessionmaker, catalog, monkeypatch, caplog
) -> None:
    async def broken_blocks(session, **kwargs):
        raise BookingIntegrityError("Unit does not belong to this product")

    monkeypatch.setattr(booking_block_service, "create_booking_blocks", broken_blocks)

    with caplog.at_level(logging.ERROR, logger="rentals_api.services.booking_block_service"):
        result = await _reserve(sessionmaker)

    async with sessionmaker() as session:
        booking = await session.get(Booking, result.booking.id)
        assert booking is not None
        assert booking.status == BookingStatus.PENDING
    assert await _count(sessionmaker, BookingBlock) == 0
    assert result.checkout_session_id is not None
    assert "Failed to materialize blocks for booking" in caplog.text


async def test_fully_discounted_booking_is_confirmed_without_checkout(
    sessionmaker, catalog
) -> None:
    async with sessionmaker() as session:
        session.add(
            PromoCode(
                code="FREEBIE",
                discount_type=DiscountType.PERCENT,
                discount_amount=Decimal("100"),
            )
        )
        await session.commit()

    # Any attempt to open a checkout would fail the booking.
    result = await _reserve(sessionmaker, FailingStripeClient(None), promo_code="FREEBIE")

    assert result.quote.total == Decimal("0.00")
    assert result.quote.amount_due_now == Decimal("0.00")
    assert result.checkout_session_id is None
    assert result.checkout_url is None
    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.to_dict()["status"] == "confirmed"

    async with sessionmaker() as session:
        booking = await session.get(Booking, result.booking.id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.confirmed_at is not None
        assert booking.stripe_checkout_session_id is None
        promo = (
            await session.execute(select(PromoCode).where(PromoCode.code == "FREEBIE"))
        ).scalar_one()
        assert promo.usage_count == 1
    assert await _count(sessionmaker, PromoCodeRedemption) == 1
    assert await _count(sessionmaker, BookingBlock) > 0


async def test_slot_lead_time_raises_lead_time_error(sessionmaker, catalog) -> None:
    with pytest.raises(LeadTimeError) as excinfo:
        await _reserve(
            sessionmaker,
            product_ref="photo-booth",
            event_date=SLOT_DAY,
            slot_id=catalog["evening_slot_id"],
            now=datetime(2025, 7, 11, 14, 0, tzinfo=UTC),
            lead_time_hours=30,
        )

    assert excinfo.value.message == "Requires 30 hours advance booking"
    assert excinfo.value.earliest_available == datetime(2025, 7, 12, 20, 0, tzinfo=UTC)


async def test_booking_cutoff_raises_lead_time_error(sessionmaker, catalog) -> None:
    with pytest.raises(LeadTimeError) as excinfo:
        await _reserve(
            sessionmaker,
            event_date=date(2025, 7, 2),
            now=datetime(2025, 7, 1, 17, 0, tzinfo=UTC),
        )

    assert excinfo.value.earliest_available == date(2025, 7, 3)


async def test_slot_reservation_requires_slot(sessionmaker, catalog) -> None:
    with pytest.raises(ValidationError):
        await _reserve(sessionmaker, product_ref="photo-booth", event_date=SLOT_DAY)


async def test_full_slot_conflict_names_alternative(sessionmaker, catalog) -> None:
    await _reserve(
        sessionmaker,
        product_ref="photo-booth",
        event_date=SLOT_DAY,
        slot_id=catalog["morning_slot_id"],
    )

    with pytest.raises(ConflictError) as excinfo:
        await _reserve(
            sessionmaker,
            product_ref="photo-booth",
            event_date=SLOT_DAY,
            slot_id=catalog["morning_slot_id"],
            customer_email="second@example.com",
        )

    assert excinfo.value.alternative == {
        "date": SLOT_DAY.isoformat(),
        "slot_id": str(catalog["evening_slot_id"]),
        "label": "Evening",
    }


async def test_blackout_date_is_a_conflict(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        session.add(BlackoutDate(start_date=TUESDAY, end_date=TUESDAY, reason="Holiday"))
        await session.commit()

    with pytest.raises(ConflictError) as excinfo:
        await _reserve(sessionmaker)
    assert excinfo.value.message == "Date not available"


async def test_resolve_availability_returns_tagged_outcomes(
    sessionmaker, catalog
) -> None:
    async with sessionmaker() as session:
        available = await reservation_service.resolve_availability(
            session,
            product_ref="bounce-castle",
            event_date=date(2025, 7, 19),
            booking_type=BookingType.WEEKEND,
            now=NOW,
        )
        too_soon = await reservation_service.resolve_availability(
            session,
            product_ref="bounce-castle",
            event_date=date(2025, 6, 30),
            now=NOW,
        )
        with pytest.raises(ValidationError):
            await reservation_service.resolve_availability(
                session, product_ref="missing-product", event_date=TUESDAY, now=NOW
            )

    assert isinstance(available, Available)
    assert available.is_available is True
    assert available.pickup_date == date(2025, 7, 21)
    assert available.same_day_pickup is False
    assert isinstance(too_soon, Unavailable)
    assert too_soon.reason_code == reservation_service.REASON_TOO_SOON
    assert too_soon.to_dict()["message"] == "This date is in the past."


async def test_cancel_pending_booking_deletes_it(sessionmaker, catalog) -> None:
    payment_client = StripeClient(None)
    result = await _reserve(sessionmaker, payment_client)

    async with sessionmaker() as session:
        cancellation = await reservation_service.cancel_reservation(
            session,
            booking_id=result.booking.id,
            reason="changed plans",
            payment_client=payment_client,
        )

    assert cancellation.outcome == "deleted"
    assert await _count(sessionmaker, Booking) == 0
    assert await _count(sessionmaker, BookingBlock) == 0
    checkout = payment_client.retrieve_checkout_session(result.checkout_session_id)
    assert checkout.status == "expired"


async def test_cancel_confirmed_booking_keeps_record(sessionmaker, catalog) -> None:
    result = await _reserve(sessionmaker)
    async with sessionmaker() as session:
        await reservation_service.confirm_reservation(
            session, booking_id=result.booking.id, now=NOW
        )

    async with sessionmaker() as session:
        first = await reservation_service.cancel_reservation(
            session, booking_id=result.booking.id, reason="rain", now=NOW
        )
    async with sessionmaker() as session:
        second = await reservation_service.cancel_reservation(
            session, booking_id=result.booking.id
        )
        booking = await reservation_service.get_reservation(
            session, booking_id=result.booking.id
        )

    assert first.outcome == "cancelled"
    assert second.outcome == "already_cancelled"
    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancellation_reason == "rain"
    assert booking.blocks == []

    retry = await _reserve(sessionmaker, customer_email="next@example.com")
    assert retry.booking.unit_id == catalog["castle_unit_id"]


async def test_cancel_unknown_booking_is_validation_error(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        with pytest.raises(ValidationError):
            await reservation_service.cancel_reservation(session, booking_id=uuid.uuid4())


async def test_confirm_is_idempotent_and_records_promo_use(
    sessionmaker, catalog
) -> None:
    async with sessionmaker() as session:
        session.add(
            PromoCode(
                code="WELCOME",
                discount_type=DiscountType.FIXED,
                discount_amount=Decimal("25.00"),
            )
        )
        await session.commit()
    result = await _reserve(sessionmaker, promo_code="welcome")
    assert result.quote.total == Decimal("175.00")

    for _ in range(2):
        async with sessionmaker() as session:
            booking = await reservation_service.confirm_reservation(
                session,
                booking_id=result.booking.id,
                checkout_session_id=result.checkout_session_id,
                now=NOW,
            )
            assert booking.status == BookingStatus.CONFIRMED

    async with sessionmaker() as session:
        promo = (
            await session.execute(select(PromoCode).where(PromoCode.code == "WELCOME"))
        ).scalar_one()
        redemptions = await session.scalar(
            select(func.count()).select_from(PromoCodeRedemption)
        )
    assert promo.usage_count == 1
    assert redemptions == 1


async def test_confirm_rejects_foreign_checkout_session(sessionmaker, catalog) -> None:
    result = await _reserve(sessionmaker)
    async with sessionmaker() as session:
        with pytest.raises(BookingIntegrityError):
            await reservation_service.confirm_reservation(
                session,
                booking_id=result.booking.id,
                checkout_session_id="cs_test_someone_else",
            )


async def test_expire_pending_removes_stale_bookings(sessionmaker, catalog) -> None:
    result = await _reserve(sessionmaker)
    later = datetime.now(UTC) + timedelta(hours=1)

    async with sessionmaker() as session:
        untouched = await reservation_service.expire_pending_reservations(
            session, older_than_minutes=120, now=later
        )
    async with sessionmaker() as session:
        expired = await reservation_service.expire_pending_reservations(
            session, older_than_minutes=30, now=later
        )

    assert untouched == []
    assert expired == [result.booking.id]
    assert await _count(sessionmaker, Booking) == 0
    assert await _count(sessionmaker, BookingBlock) == 0
