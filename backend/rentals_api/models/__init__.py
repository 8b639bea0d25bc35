"""ORM models package export."""

from rentals_api.models.booking import (
    BOOKING_OVERLAP_CONSTRAINT,
    BlockResourceKind,
    BlockType,
    Booking,
    BookingBlock,
    BookingStatus,
    BookingType,
)
from rentals_api.models.customer import Customer
from rentals_api.models.ops_resource import (
    OpsResource,
    OpsResourceSchedule,
    OpsResourceType,
)
from rentals_api.models.product import (
    BlackoutDate,
    Product,
    ProductSlot,
    SchedulingMode,
    Unit,
    UnitStatus,
)
from rentals_api.models.promo_code import DiscountType, PromoCode, PromoCodeRedemption

__all__ = [
    "BOOKING_OVERLAP_CONSTRAINT",
    "BlackoutDate",
    "BlockResourceKind",
    "BlockType",
    "Booking",
    "BookingBlock",
    "BookingStatus",
    "BookingType",
    "Customer",
    "DiscountType",
    "OpsResource",
    "OpsResourceSchedule",
    "OpsResourceType",
    "Product",
    "ProductSlot",
    "PromoCode",
    "PromoCodeRedemption",
    "SchedulingMode",
    "Unit",
    "UnitStatus",
]
