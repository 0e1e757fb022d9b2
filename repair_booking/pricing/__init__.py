"""Booking price computation."""

from repair_booking.pricing.calculator import (
    QUOTE_MODE,
    SERVICE_MODE,
    FeeSchedule,
    PriceBreakdown,
    PricingInput,
    compute_price,
)
from repair_booking.pricing.shop_fees import fee_schedule_for_shop, service_base_price

__all__ = [
    "FeeSchedule",
    "PriceBreakdown",
    "PricingInput",
    "QUOTE_MODE",
    "SERVICE_MODE",
    "compute_price",
    "fee_schedule_for_shop",
    "service_base_price",
]
