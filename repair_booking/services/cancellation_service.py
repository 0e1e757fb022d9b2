"""Cancellation and deposit refund policy."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from repair_booking.config import POLICY
from repair_booking.core.domain_exceptions import Forbidden, InvalidStateTransition
from repair_booking.db.models import (
    CANCELLED,
    NON_REFUNDABLE,
    PROPOSAL_DECLINED,
    REFUNDABLE,
    Booking,
)
from repair_booking.scheduling.slot_time import as_utc
from repair_booking.services import notification_service, payment_client
from repair_booking.services.booking_service import CANCELLABLE_STATUSES, get_booking

logger = logging.getLogger(__name__)

CANCELLATION_WINDOW = timedelta(hours=POLICY.cancellation_window_hours)


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    refund_status: str
    message: str


def refund_status_for(scheduled_at: datetime, now: datetime) -> str:
    """Deposit is kept when the appointment is less than the window away.

    `scheduled_at` is the displayed appointment instant, i.e. the slot time
    projected onto the booking date, not any stored epoch timestamp.
    """
    if as_utc(scheduled_at) - as_utc(now) < CANCELLATION_WINDOW:
        return NON_REFUNDABLE
    return REFUNDABLE


def cancel_booking(
    db: Session,
    booking_id: int,
    requested_by: int,
    now: datetime | None = None,
) -> CancellationResult:
    """Cancel a PENDING/CONFIRMED booking and free its slot occurrence."""
    now = now or datetime.now(timezone.utc)
    booking = get_booking(db, booking_id)

    by_owner = booking.user_id == requested_by
    by_shop = booking.shop.owner_user_id == requested_by
    if not by_owner and not by_shop:
        raise Forbidden("Not authorized to cancel this booking.")

    if booking.status not in CANCELLABLE_STATUSES:
        raise InvalidStateTransition(
            f"Booking in status {booking.status} cannot be cancelled."
        )

    refund_status = refund_status_for(booking.scheduled_at, now)

    try:
        # The partial unique index ignores cancelled rows, which releases
        # the slot occurrence in the same commit.
        booking.status = CANCELLED
        booking.refund_status = refund_status
        booking.cancelled_at = now
        booking.cancelled_by = requested_by

        pending = booking.pending_proposal
        if pending is not None:
            pending.status = PROPOSAL_DECLINED
            pending.responded_at = now

        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Booking %d cancelled by user %d (refund_status=%s)",
        booking.id,
        requested_by,
        refund_status,
    )

    if refund_status == REFUNDABLE and booking.deposit_paid:
        notification_service.dispatch(payment_client.release_deposit, booking.id, booking.deposit)

    try:
        notification_service.notify_booking_cancelled(
            booking,
            refund_status=refund_status,
            by_shop=by_shop and not by_owner,
        )
    except Exception:
        logger.exception("Failed to schedule cancellation notification for booking %d", booking.id)

    if refund_status == REFUNDABLE:
        message = "Booking cancelled successfully. Deposit will be refunded."
    else:
        message = "Booking cancelled. Deposit is non-refundable due to late cancellation."

    return CancellationResult(booking=booking, refund_status=refund_status, message=message)
