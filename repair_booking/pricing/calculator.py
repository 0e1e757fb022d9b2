"""Deterministic price, tax and deposit computation for a reservation.

All arithmetic is Decimal. Intermediate sums are kept exact; rounding
(half up, to the cent) happens only on the reported tax, total and deposit.
The remaining balance is derived from the rounded total and deposit so the
two always add back up to the total.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from repair_booking.config import PRICING
from repair_booking.core.domain_exceptions import InvalidConfiguration
from repair_booking.db.models import BOOKING_METHODS, DROP_OFF, MOBILE, TOWING

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

SERVICE_MODE = "SERVICE"
QUOTE_MODE = "QUOTE"


@dataclass(frozen=True)
class FeeSchedule:
    """A shop's effective fee terms, with marketplace defaults already applied."""

    deposit_percent: Decimal = PRICING.deposit_percent
    tax_applicable: bool = True
    tax_rate: Decimal = PRICING.tax_rate
    platform_fee: Decimal = PRICING.platform_fee
    towing_fee: Decimal = PRICING.towing_fee
    mobile_fee: Decimal = PRICING.mobile_fee


@dataclass(frozen=True)
class PricingInput:
    mode: str
    base_amount: Decimal
    method: str
    fees: FeeSchedule


@dataclass(frozen=True)
class PriceBreakdown:
    base: Decimal
    surcharge: Decimal
    tax: Decimal
    platform_fee: Decimal
    total: Decimal
    deposit: Decimal
    remaining: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "base": self.base,
            "surcharge": self.surcharge,
            "tax": self.tax,
            "platform_fee": self.platform_fee,
            "total": self.total,
            "deposit": self.deposit,
            "remaining": self.remaining,
        }


def round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def surcharge_for(method: str, fees: FeeSchedule) -> Decimal:
    """Flat fulfillment fee; in-shop drop-off carries none."""
    if method == DROP_OFF:
        return ZERO
    if method == TOWING:
        return fees.towing_fee
    if method == MOBILE:
        return fees.mobile_fee
    raise ValueError(f"Unknown fulfillment method: {method!r}")


def validate_fee_schedule(fees: FeeSchedule) -> None:
    if not ZERO <= fees.deposit_percent <= HUNDRED:
        raise InvalidConfiguration(
            f"Deposit percentage must be between 0 and 100, got {fees.deposit_percent}."
        )
    if fees.tax_rate < ZERO:
        raise InvalidConfiguration(f"Tax rate cannot be negative, got {fees.tax_rate}.")
    for label, amount in (
        ("Platform fee", fees.platform_fee),
        ("Towing fee", fees.towing_fee),
        ("Mobile fee", fees.mobile_fee),
    ):
        if amount < ZERO:
            raise InvalidConfiguration(f"{label} cannot be negative, got {amount}.")


def compute_price(pricing_input: PricingInput) -> PriceBreakdown:
    """Compute the full breakdown for a direct-service or quote booking."""
    fees = pricing_input.fees
    validate_fee_schedule(fees)

    if pricing_input.method not in BOOKING_METHODS:
        raise ValueError(f"Unknown fulfillment method: {pricing_input.method!r}")
    if pricing_input.base_amount < ZERO:
        raise InvalidConfiguration(
            f"Base price cannot be negative, got {pricing_input.base_amount}."
        )

    base = pricing_input.base_amount
    surcharge = surcharge_for(pricing_input.method, fees)

    if pricing_input.mode == SERVICE_MODE:
        tax = (base + surcharge) * fees.tax_rate if fees.tax_applicable else ZERO
    elif pricing_input.mode == QUOTE_MODE:
        # Quote totals already include the shop's tax.
        tax = ZERO
    else:
        raise ValueError(f"Unknown pricing mode: {pricing_input.mode!r}")

    exact_total = base + surcharge + tax + fees.platform_fee
    exact_deposit = exact_total * fees.deposit_percent / HUNDRED

    total = round_cents(exact_total)
    deposit = round_cents(exact_deposit)

    return PriceBreakdown(
        base=round_cents(base),
        surcharge=round_cents(surcharge),
        tax=round_cents(tax),
        platform_fee=round_cents(fees.platform_fee),
        total=total,
        deposit=deposit,
        remaining=total - deposit,
    )
