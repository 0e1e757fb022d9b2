"""Resolve a shop's stored pricing configuration into effective fee terms."""

from decimal import Decimal

from repair_booking.config import PRICING
from repair_booking.core.domain_exceptions import InvalidConfiguration
from repair_booking.db.models import Quote, Shop, ShopPricingConfig, ShopService
from repair_booking.pricing.calculator import FeeSchedule

DEFAULT_LABOR_RATE = Decimal("85.00")


def _to_decimal(value) -> Decimal:
    # SQLite hands Numeric columns back as Decimal already; floats only
    # arrive from hand-built objects.
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def fee_schedule_for_shop(shop: Shop, quote: Quote | None = None) -> FeeSchedule:
    """Apply shop overrides, then quote terms, on top of marketplace defaults."""
    config: ShopPricingConfig | None = shop.pricing_config

    deposit_percent = PRICING.deposit_percent
    tax_applicable = True
    towing_fee = PRICING.towing_fee
    mobile_fee = PRICING.mobile_fee

    if config is not None:
        if config.deposit_percent is not None:
            deposit_percent = _to_decimal(config.deposit_percent)
        tax_applicable = bool(config.tax_applicable)
        if config.towing_fee is not None:
            towing_fee = _to_decimal(config.towing_fee)
        if config.mobile_fee is not None:
            mobile_fee = _to_decimal(config.mobile_fee)

    if quote is not None and quote.deposit_percent is not None:
        deposit_percent = _to_decimal(quote.deposit_percent)

    return FeeSchedule(
        deposit_percent=deposit_percent,
        tax_applicable=tax_applicable,
        tax_rate=PRICING.tax_rate,
        platform_fee=PRICING.platform_fee,
        towing_fee=towing_fee,
        mobile_fee=mobile_fee,
    )


def service_base_price(service: ShopService, shop: Shop) -> Decimal:
    """Custom price when set, otherwise labor rate times estimated hours."""
    if service.price is not None:
        return _to_decimal(service.price)

    if service.labor_hours is None:
        raise InvalidConfiguration(
            f"Service {service.id} at shop {shop.id} has neither a price nor a labor estimate."
        )

    config = shop.pricing_config
    labor_rate = (
        _to_decimal(config.labor_rate)
        if config is not None and config.labor_rate is not None
        else DEFAULT_LABOR_RATE
    )
    if labor_rate < 0:
        raise InvalidConfiguration(f"Labor rate for shop {shop.id} cannot be negative.")
    return labor_rate * _to_decimal(service.labor_hours)
