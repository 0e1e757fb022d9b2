"""Shop-proposed reschedules and the owner's accept/decline response.

A proposal is its own record attached to the booking. Accepting moves the
booking's slot claim and schedule; the primary status is left alone.
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from repair_booking.core.domain_exceptions import (
    BookingValidationError,
    Forbidden,
    InvalidStateTransition,
    NotFound,
    SlotAlreadyBooked,
)
from repair_booking.db.models import (
    PROPOSAL_ACCEPTED,
    PROPOSAL_DECLINED,
    PROPOSAL_PENDING,
    PROPOSAL_SUPERSEDED,
    Booking,
    RescheduleProposal,
)
from repair_booking.scheduling.slot_time import parse_time_of_day, project_onto_date
from repair_booking.services import notification_service
from repair_booking.services.availability_service import find_slot_at, is_occurrence_booked
from repair_booking.services.booking_service import (
    CANCELLABLE_STATUSES,
    get_booking,
    is_slot_conflict,
)

logger = logging.getLogger(__name__)


def _require_reschedulable(booking: Booking) -> None:
    if booking.status not in CANCELLABLE_STATUSES:
        raise InvalidStateTransition(
            f"Booking in status {booking.status} cannot be rescheduled."
        )


def _require_pending_proposal(booking: Booking) -> RescheduleProposal:
    proposal = booking.pending_proposal
    if proposal is None:
        raise NotFound("No pending reschedule proposal for this booking.")
    return proposal


def propose_reschedule(
    db: Session,
    booking_id: int,
    requested_by: int,
    new_date: date,
    new_time: str,
    message: str | None = None,
    now: datetime | None = None,
) -> RescheduleProposal:
    """Record a shop's proposal; the new time must be one of its configured slots."""
    now = now or datetime.now(timezone.utc)
    booking = get_booking(db, booking_id)

    if booking.shop.owner_user_id != requested_by:
        raise Forbidden("Only the shop can propose a new time.")
    _require_reschedulable(booking)

    try:
        minute = parse_time_of_day(new_time)
    except ValueError as exc:
        raise BookingValidationError(str(exc)) from None

    slot = find_slot_at(db, shop_id=booking.shop_id, target_date=new_date, minute=minute)
    if slot is None:
        raise NotFound(
            "Proposed time is not in the shop's availability. Add the slot before proposing it."
        )

    start_at, _ = project_onto_date(slot.start_minute, slot.end_minute, new_date)
    if start_at <= now:
        raise BookingValidationError("Cannot propose a time in the past.")

    try:
        previous = booking.pending_proposal
        if previous is not None:
            previous.status = PROPOSAL_SUPERSEDED
            previous.responded_at = now

        proposal = RescheduleProposal(
            proposed_date=new_date,
            proposed_minute=minute,
            proposed_slot_id=slot.id,
            message=message,
            status=PROPOSAL_PENDING,
            proposed_by=requested_by,
        )
        booking.proposals.append(proposal)
        db.commit()
        db.refresh(proposal)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Reschedule proposed for booking %d: %s slot %d",
        booking.id,
        new_date,
        slot.id,
    )

    try:
        notification_service.notify_reschedule_proposed(booking, proposal)
    except Exception:
        logger.exception("Failed to schedule proposal notification for booking %d", booking.id)

    return proposal


def accept_reschedule(
    db: Session,
    booking_id: int,
    requested_by: int,
    now: datetime | None = None,
) -> Booking:
    """Move the booking onto the proposed slot if that occurrence is still free."""
    now = now or datetime.now(timezone.utc)
    booking = get_booking(db, booking_id)

    if booking.user_id != requested_by:
        raise Forbidden("Only the booking owner can accept a new time.")
    _require_reschedulable(booking)
    proposal = _require_pending_proposal(booking)

    slot = proposal.proposed_slot
    if slot is None or slot.shop_id != booking.shop_id:
        raise NotFound("Proposed slot no longer exists.")

    new_start, _ = project_onto_date(slot.start_minute, slot.end_minute, proposal.proposed_date)
    if new_start <= now:
        raise BookingValidationError("Proposed time has already passed.")

    if is_occurrence_booked(
        db,
        slot_id=slot.id,
        target_date=proposal.proposed_date,
        exclude_booking_id=booking.id,
    ):
        raise SlotAlreadyBooked("Proposed time slot has been booked by someone else.")

    previous_date = booking.scheduled_date
    try:
        booking.slot_id = slot.id
        booking.scheduled_date = proposal.proposed_date
        booking.scheduled_at = new_start
        booking.reminder_sent = False
        proposal.status = PROPOSAL_ACCEPTED
        proposal.responded_at = now
        db.commit()
        db.refresh(booking)
    except IntegrityError as exc:
        # Lost the occurrence between the check and the write; rollback
        # restores the original schedule and keeps the proposal pending.
        db.rollback()
        if not is_slot_conflict(exc):
            raise
        logger.warning(
            "Reschedule of booking %d lost slot %d on %s",
            booking_id,
            slot.id,
            proposal.proposed_date,
        )
        raise SlotAlreadyBooked("Proposed time slot has been booked by someone else.") from None
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Booking %d rescheduled from %s to %s",
        booking.id,
        previous_date,
        booking.scheduled_date,
    )

    try:
        notification_service.notify_reschedule_answered(booking, accepted=True)
    except Exception:
        logger.exception("Failed to schedule reschedule notification for booking %d", booking.id)

    return booking


def decline_reschedule(
    db: Session,
    booking_id: int,
    requested_by: int,
    now: datetime | None = None,
) -> Booking:
    """Discard the pending proposal; the booking keeps its current schedule."""
    now = now or datetime.now(timezone.utc)
    booking = get_booking(db, booking_id)

    if booking.user_id != requested_by:
        raise Forbidden("Only the booking owner can decline a new time.")
    _require_reschedulable(booking)
    proposal = _require_pending_proposal(booking)

    try:
        proposal.status = PROPOSAL_DECLINED
        proposal.responded_at = now
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Reschedule proposal %d declined for booking %d", proposal.id, booking.id)

    try:
        notification_service.notify_reschedule_answered(booking, accepted=False)
    except Exception:
        logger.exception("Failed to schedule decline notification for booking %d", booking.id)

    return booking
