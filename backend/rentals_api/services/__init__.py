"""Service layer exports."""
from rentals_api.services import (
    booking_block_service,
    customer_service,
    cutoff_service,
    day_rental_service,
    notification_service,
    pricing_service,
    reservation_service,
    resource_registry_service,
    slot_service,
)

__all__ = [
    "booking_block_service",
    "customer_service",
    "cutoff_service",
    "day_rental_service",
    "notification_service",
    "pricing_service",
    "reservation_service",
    "resource_registry_service",
    "slot_service",
]
