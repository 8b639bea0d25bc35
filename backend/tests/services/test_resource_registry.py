"""Tests for product, unit and ops resource lookups."""

from __future__ import annotations

from datetime import date, time

import pytest
from sqlalchemy import update

from rentals_api.models import (
    BlackoutDate,
    OpsResource,
    OpsResourceSchedule,
    OpsResourceType,
    Product,
    Unit,
    UnitStatus,
)
from rentals_api.services import resource_registry_service

pytestmark = pytest.mark.asyncio

TUESDAY = date(2025, 7, 15)


async def test_get_product_by_slug_or_id(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        by_slug = await resource_registry_service.get_product(
            session, product_ref="photo-booth"
        )
        by_id = await resource_registry_service.get_product(
            session, product_ref=catalog["booth_id"]
        )
        by_text_id = await resource_registry_service.get_product(
            session, product_ref=str(catalog["booth_id"])
        )
        missing = await resource_registry_service.get_product(
            session, product_ref="nope"
        )

    assert by_slug.id == by_id.id == by_text_id.id == catalog["booth_id"]
    assert [slot.label for slot in by_slug.slots] == ["Morning", "Evening"]
    assert missing is None


async def test_inactive_product_is_hidden(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        await session.execute(
            update(Product).where(Product.id == catalog["foam_id"]).values(is_active=False)
        )
        await session.commit()

    async with sessionmaker() as session:
        product = await resource_registry_service.get_product(
            session, product_ref="foam-party"
        )
    assert product is None


async def test_resources_default_to_standard_shift_in_name_order(
    sessionmaker, catalog
) -> None:
    async with sessionmaker() as session:
        session.add(
            OpsResource(name="Alpha Crew", resource_type=OpsResourceType.DELIVERY_CREW)
        )
        await session.commit()

    async with sessionmaker() as session:
        crews = await resource_registry_service.list_available_resources(
            session, resource_type=OpsResourceType.DELIVERY_CREW, day=TUESDAY
        )

    assert [crew.name for crew in crews] == ["Alpha Crew", "Crew A"]
    assert all(
        (crew.start_time, crew.end_time) == (time(8, 0), time(20, 0)) for crew in crews
    )


async def test_schedule_rows_override_or_remove_a_day(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        session.add_all(
            [
                OpsResourceSchedule(
                    resource_id=catalog["crew_id"],
                    day_of_week=2,
                    start_time=time(6, 0),
                    end_time=time(14, 0),
                ),
                OpsResourceSchedule(
                    resource_id=catalog["van_id"],
                    day_of_week=2,
                    start_time=time(8, 0),
                    end_time=time(20, 0),
                    is_available=False,
                ),
            ]
        )
        await session.commit()

    async with sessionmaker() as session:
        crews = await resource_registry_service.list_available_resources(
            session, resource_type=OpsResourceType.DELIVERY_CREW, day=TUESDAY
        )
        vans = await resource_registry_service.list_available_resources(
            session, resource_type=OpsResourceType.VEHICLE, day=TUESDAY
        )
        wednesday_vans = await resource_registry_service.list_available_resources(
            session, resource_type=OpsResourceType.VEHICLE, day=date(2025, 7, 16)
        )

    assert [(crew.start_time, crew.end_time) for crew in crews] == [
        (time(6, 0), time(14, 0))
    ]
    assert vans == []
    assert [van.id for van in wednesday_vans] == [catalog["van_id"]]


async def test_blackouts_apply_globally_and_per_product(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        session.add_all(
            [
                BlackoutDate(start_date=date(2025, 7, 4), end_date=date(2025, 7, 4)),
                BlackoutDate(
                    product_id=catalog["castle_id"],
                    start_date=date(2025, 7, 20),
                    end_date=date(2025, 7, 22),
                ),
            ]
        )
        await session.commit()

    async with sessionmaker() as session:
        holiday = await resource_registry_service.is_blacked_out(
            session, product_id=catalog["booth_id"], days=[date(2025, 7, 4)]
        )
        castle_week = await resource_registry_service.is_blacked_out(
            session,
            product_id=catalog["castle_id"],
            days=[date(2025, 7, 19), date(2025, 7, 21)],
        )
        booth_week = await resource_registry_service.is_blacked_out(
            session, product_id=catalog["booth_id"], days=[date(2025, 7, 21)]
        )
        straddling = await resource_registry_service.is_blacked_out(
            session,
            product_id=catalog["castle_id"],
            days=[date(2025, 7, 19), date(2025, 7, 23)],
        )

    assert holiday is True
    assert castle_week is True
    assert booth_week is False
    assert straddling is False


async def test_list_units_hides_units_out_of_service(sessionmaker, catalog) -> None:
    async with sessionmaker() as session:
        session.add(
            Unit(
                product_id=catalog["castle_id"],
                unit_number=2,
                status=UnitStatus.MAINTENANCE,
            )
        )
        await session.commit()

    async with sessionmaker() as session:
        available = await resource_registry_service.list_units(
            session, product_id=catalog["castle_id"]
        )
        everything = await resource_registry_service.list_units(
            session, product_id=catalog["castle_id"], only_available=False
        )

    assert [unit.unit_number for unit in available] == [1]
    assert [unit.unit_number for unit in everything] == [1, 2]
