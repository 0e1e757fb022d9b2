"""Client for the external payment service that holds escrow deposits."""

import logging
from decimal import Decimal

import httpx

from repair_booking.config import PAYMENTS

logger = logging.getLogger(__name__)


def release_deposit(booking_id: int, amount: Decimal) -> None:
    """Ask the payment service to refund a booking's escrow deposit."""
    if not PAYMENTS.api_url:
        logger.warning(
            "PAYMENTS_API_URL not set; deposit release for booking %d skipped.",
            booking_id,
        )
        return

    response = httpx.post(
        f"{PAYMENTS.api_url.rstrip('/')}/deposits/{booking_id}/release",
        json={"booking_id": booking_id, "amount": str(amount)},
        timeout=PAYMENTS.timeout_seconds,
    )
    response.raise_for_status()
    logger.info("Deposit release requested for booking %d (amount=%s)", booking_id, amount)
