"""Versioned API router."""

from fastapi import APIRouter

from . import availability, health, payments_webhook, promo_codes, reservations

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(
    availability.router, prefix="/availability", tags=["availability"]
)
router.include_router(promo_codes.router, prefix="/promo-codes", tags=["promo-codes"])
router.include_router(
    reservations.router, prefix="/reservations", tags=["reservations"]
)
router.include_router(payments_webhook.router, tags=["payments-webhook"])

__all__ = ["router"]
