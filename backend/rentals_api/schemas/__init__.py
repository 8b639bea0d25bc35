"""Schema exports."""

from rentals_api.schemas.availability import (
    AvailabilityOutcomeRead,
    AvailabilityResolveRequest,
    CutoffRead,
    DayRentalAvailabilityRead,
    SlotAvailabilityRead,
)
from rentals_api.schemas.promo_code import PromoCodeValidateRequest, PromoCodeValidateResponse
from rentals_api.schemas.reservation import (
    BookingBlockRead,
    PricingLineRead,
    PricingRead,
    ReservationCancelRequest,
    ReservationCancelResponse,
    ReservationCreate,
    ReservationCreateResponse,
    ReservationExpireResponse,
    ReservationRead,
)

__all__ = [
    "AvailabilityOutcomeRead",
    "AvailabilityResolveRequest",
    "BookingBlockRead",
    "CutoffRead",
    "DayRentalAvailabilityRead",
    "PricingLineRead",
    "PricingRead",
    "PromoCodeValidateRequest",
    "PromoCodeValidateResponse",
    "ReservationCancelRequest",
    "ReservationCancelResponse",
    "ReservationCreate",
    "ReservationCreateResponse",
    "ReservationExpireResponse",
    "ReservationRead",
    "SlotAvailabilityRead",
]
