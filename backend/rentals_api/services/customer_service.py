"""Customer directory lookups."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.models import Customer
from rentals_api.security.redact import describe_customer, mask_phone
from rentals_api.services.errors import ValidationError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
        raise ValidationError("A valid customer email is required")
    return normalized


async def get_customer_by_email(session: AsyncSession, *, email: str) -> Customer | None:
    stmt = select(Customer).where(Customer.email == normalize_email(email))
    return (await session.execute(stmt)).scalar_one_or_none()


async def find_or_create_customer(
    session: AsyncSession,
    *,
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
) -> Customer:
    """Return the customer for ``email``, creating it inside the current transaction."""
    normalized = normalize_email(email)
    customer = await get_customer_by_email(session, email=normalized)
    if customer is not None:
        if phone and not customer.phone:
            customer.phone = phone
        return customer

    customer = Customer(
        email=normalized, first_name=first_name, last_name=last_name, phone=phone
    )
    try:
        async with session.begin_nested():
            session.add(customer)
    except IntegrityError:
        # Lost a race with another request creating the same customer.
        existing = await get_customer_by_email(session, email=normalized)
        if existing is None:
            raise
        return existing
    logger.info(
        "Created %s (phone %s)", describe_customer(customer), mask_phone(phone)
    )
    return customer
