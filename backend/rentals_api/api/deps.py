"""Common API dependencies."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated

from fastapi import Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rentals_api.core.config import get_settings
from rentals_api.core.settings import get_payment_settings
from rentals_api.db.session import get_session
from rentals_api.integrations import StripeClient


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


@lru_cache
def _build_stripe_client(secret_key: str | None, webhook_secret: str | None) -> StripeClient:
    return StripeClient(secret_key, webhook_secret=webhook_secret)


def get_stripe_client() -> StripeClient:
    """Return a process-wide Stripe client for the configured keys."""
    settings = get_payment_settings()
    return _build_stripe_client(
        settings.stripe_secret_key, settings.stripe_webhook_secret
    )


def has_internal_token(token: str | None) -> bool:
    expected = get_settings().internal_api_token
    if not expected or not token:
        return False
    return secrets.compare_digest(token, expected)


async def require_internal_token(
    x_internal_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard housekeeping endpoints behind ``INTERNAL_API_TOKEN``."""
    if not has_internal_token(x_internal_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal token",
        )
