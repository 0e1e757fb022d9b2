"""Fire-and-forget notifications for booking events.

Messages are handed to the background scheduler once it is attached by the
application lifespan; without one (scripts, tests) they run inline. Either
way a delivery failure is logged and never reaches the caller, so it cannot
undo the booking change that triggered it.
"""

import logging
from collections.abc import Callable
from typing import Any

from apscheduler.schedulers.base import BaseScheduler

from repair_booking.db.models import Booking, RescheduleProposal
from repair_booking.scheduling.slot_time import as_utc, format_minute_of_day
from repair_booking.services.twilio_client import send_whatsapp_message

logger = logging.getLogger(__name__)

_scheduler: BaseScheduler | None = None


def attach_scheduler(scheduler: BaseScheduler | None) -> None:
    global _scheduler
    _scheduler = scheduler


def _run_safely(func: Callable[..., Any], *args: Any) -> None:
    try:
        func(*args)
    except Exception:
        logger.exception("Background dispatch of %s failed.", getattr(func, "__name__", func))


def dispatch(func: Callable[..., Any], *args: Any) -> None:
    """Run `func(*args)` in the background without propagating failures."""
    if _scheduler is not None and _scheduler.running:
        try:
            _scheduler.add_job(
                _run_safely,
                trigger="date",
                args=[func, *args],
                name=f"dispatch:{getattr(func, '__name__', 'job')}",
            )
            return
        except Exception:
            logger.exception("Could not enqueue background job; running inline.")

    _run_safely(func, *args)


def _send(phone: str | None, body: str, audience: str, booking_id: int) -> None:
    if not phone:
        logger.warning(
            "No %s phone for booking %d. Skipping notification.",
            audience,
            booking_id,
        )
        return
    dispatch(send_whatsapp_message, phone, body)


def _appointment_label(booking: Booking) -> str:
    return as_utc(booking.scheduled_at).strftime("%Y-%m-%d %H:%M UTC")


def notify_booking_created(booking: Booking) -> None:
    when = _appointment_label(booking)
    _send(
        booking.shop.phone,
        f"New booking #{booking.id} for {when}. Deposit due: ${booking.deposit}.",
        "shop",
        booking.id,
    )
    _send(
        booking.customer.phone,
        f"Your booking #{booking.id} at {booking.shop.name} is requested for {when}.",
        "customer",
        booking.id,
    )


def notify_booking_cancelled(booking: Booking, refund_status: str, by_shop: bool) -> None:
    when = _appointment_label(booking)
    if by_shop:
        _send(
            booking.customer.phone,
            f"{booking.shop.name} cancelled booking #{booking.id} ({when}). "
            f"Deposit: {refund_status.replace('_', ' ').lower()}.",
            "customer",
            booking.id,
        )
    else:
        _send(
            booking.shop.phone,
            f"Booking #{booking.id} ({when}) was cancelled by the customer. "
            f"Deposit: {refund_status.replace('_', ' ').lower()}.",
            "shop",
            booking.id,
        )


def notify_status_changed(booking: Booking) -> None:
    _send(
        booking.customer.phone,
        f"Booking #{booking.id} at {booking.shop.name} is now {booking.status.replace('_', ' ').lower()}.",
        "customer",
        booking.id,
    )


def notify_reschedule_proposed(booking: Booking, proposal: RescheduleProposal) -> None:
    message = f" Message: {proposal.message}" if proposal.message else ""
    _send(
        booking.customer.phone,
        f"{booking.shop.name} proposed moving booking #{booking.id} to "
        f"{proposal.proposed_date.isoformat()} {format_minute_of_day(proposal.proposed_minute)} UTC.{message}",
        "customer",
        booking.id,
    )


def notify_reschedule_answered(booking: Booking, accepted: bool) -> None:
    if accepted:
        body = f"Customer accepted the new time for booking #{booking.id}: {_appointment_label(booking)}."
    else:
        body = f"Customer declined the proposed new time for booking #{booking.id}."
    _send(booking.shop.phone, body, "shop", booking.id)
