"""Test fixtures for the rentals backend."""
from __future__ import annotations

import os
import uuid
from collections.abc import AsyncIterator
from datetime import date, time
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("BOOKING_TIMEZONE", "America/New_York")
os.environ.setdefault("PAYMENTS_WEBHOOK_VERIFY", "false")
os.environ.setdefault("INTERNAL_API_TOKEN", "test-internal-token")
os.environ.setdefault("DEPOSIT_AMOUNT", "50.00")

from rentals_api.core.config import get_settings
from rentals_api.db.base import Base
from rentals_api.db.session import dispose_engine, get_sessionmaker
from rentals_api.main import app
from rentals_api.models import (
    Booking,
    BookingStatus,
    BookingType,
    Customer,
    OpsResource,
    OpsResourceType,
    Product,
    ProductSlot,
    SchedulingMode,
    Unit,
)
from rentals_api.services.time_windows import format_window, local_instant


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest.fixture()
def sessionmaker(reset_database: None, db_url: str) -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker(db_url)


@pytest_asyncio.fixture()
async def catalog(sessionmaker: async_sessionmaker[AsyncSession]) -> dict[str, uuid.UUID]:
    """Seed two day-rental products sharing an evening, a slot product and ops resources."""
    async with sessionmaker() as session:
        castle = Product(
            slug="bounce-castle",
            name="Bounce Castle",
            scheduling_mode=SchedulingMode.DAY_RENTAL,
            price_daily=Decimal("200.00"),
            price_weekend=Decimal("350.00"),
            price_sunday=Decimal("300.00"),
            setup_minutes=60,
            teardown_minutes=30,
            travel_buffer_minutes=30,
            cleaning_minutes=30,
            shared_resource_group="evening-crew",
        )
        foam = Product(
            slug="foam-party",
            name="Foam Party",
            scheduling_mode=SchedulingMode.DAY_RENTAL,
            price_daily=Decimal("400.00"),
            shared_resource_group="evening-crew",
        )
        booth = Product(
            slug="photo-booth",
            name="Photo Booth",
            scheduling_mode=SchedulingMode.SLOT_BASED,
            price_daily=Decimal("150.00"),
            setup_minutes=90,
            teardown_minutes=60,
            travel_buffer_minutes=30,
            cleaning_minutes=30,
        )
        session.add_all([castle, foam, booth])
        await session.flush()

        castle_unit = Unit(product_id=castle.id, unit_number=1)
        foam_unit = Unit(product_id=foam.id, unit_number=1)
        booth_unit = Unit(product_id=booth.id, unit_number=1)
        morning = ProductSlot(
            product_id=booth.id,
            label="Morning",
            start_time_local=time(9, 0),
            end_time_local=time(12, 0),
            display_order=1,
        )
        evening = ProductSlot(
            product_id=booth.id,
            label="Evening",
            start_time_local=time(17, 0),
            end_time_local=time(20, 0),
            display_order=2,
        )
        crew = OpsResource(name="Crew A", resource_type=OpsResourceType.DELIVERY_CREW)
        van = OpsResource(name="Van 1", resource_type=OpsResourceType.VEHICLE)
        session.add_all([castle_unit, foam_unit, booth_unit, morning, evening, crew, van])
        await session.commit()

        return {
            "castle_id": castle.id,
            "castle_unit_id": castle_unit.id,
            "foam_id": foam.id,
            "foam_unit_id": foam_unit.id,
            "booth_id": booth.id,
            "booth_unit_id": booth_unit.id,
            "morning_slot_id": morning.id,
            "evening_slot_id": evening.id,
            "crew_id": crew.id,
            "van_id": van.id,
        }


async def insert_booking(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    unit_id: uuid.UUID,
    day: date,
    start: time,
    end: time,
    status: BookingStatus = BookingStatus.CONFIRMED,
    email: str = "existing@example.com",
) -> Booking:
    """Insert a booking occupying ``unit_id`` from ``start`` to ``end`` local time."""
    customer = Customer(email=f"{uuid.uuid4().hex[:6]}.{email}")
    session.add(customer)
    await session.flush()
    booking = Booking(
        booking_number=f"B-TEST-{uuid.uuid4().hex[:6].upper()}",
        product_id=product_id,
        unit_id=unit_id,
        customer_id=customer.id,
        booking_type=BookingType.DAILY,
        status=status,
        product_snapshot={},
        event_date=day,
        delivery_date=day,
        pickup_date=day,
        delivery_window=format_window(start, end),
        pickup_window=format_window(start, end),
        event_start=local_instant(day, start),
        event_end=local_instant(day, end),
        service_start=local_instant(day, start),
        service_end=local_instant(day, end),
        subtotal=Decimal("100.00"),
        total=Decimal("100.00"),
        deposit_amount=Decimal("50.00"),
        balance_due=Decimal("50.00"),
    )
    session.add(booking)
    await session.commit()
    return booking


@pytest.fixture()
def booking_factory():
    return insert_booking


@pytest_asyncio.fixture()
async def client(catalog: dict[str, uuid.UUID]) -> AsyncIterator[AsyncClient]:
    """Yield an async client against the seeded catalog."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client
