"""Shop-side management of recurring weekly time slots."""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from repair_booking.core.domain_exceptions import (
    BookingValidationError,
    Forbidden,
    NotFound,
    SlotInUse,
    SlotOverlap,
)
from repair_booking.db.models import CANCELLED, Booking, RescheduleProposal, TimeSlot
from repair_booking.scheduling.slot_time import SlotTimeValue, project_onto_date, to_minute_of_day
from repair_booking.services.availability_service import get_shop

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class ScheduledBooking:
    booking_id: int
    status: str
    customer_name: str | None
    vehicle: str | None


@dataclass(frozen=True)
class ScheduledSlot:
    slot_id: int
    scheduled_date: date
    display_start: datetime
    display_end: datetime | None
    booking: ScheduledBooking | None


def _slot_range(start_minute: int, end_minute: int | None) -> tuple[int, int]:
    # An open-ended slot still occupies its starting minute.
    return start_minute, end_minute if end_minute is not None else start_minute + 1


def _require_shop_owner(db: Session, shop_id: int, requested_by: int):
    shop = get_shop(db, shop_id)
    if shop.owner_user_id != requested_by:
        raise Forbidden("Only the shop owner can manage its schedule.")
    return shop


def add_time_slot(
    db: Session,
    shop_id: int,
    requested_by: int,
    weekday: int,
    start: SlotTimeValue,
    end: SlotTimeValue | None = None,
) -> TimeSlot:
    """Add a recurring slot, rejecting overlaps with the shop's other slots that day."""
    _require_shop_owner(db, shop_id, requested_by)

    if not 0 <= weekday <= 6:
        raise BookingValidationError("Weekday must be between 0 (Monday) and 6 (Sunday).")

    try:
        start_minute = to_minute_of_day(start)
        end_minute = to_minute_of_day(end) if end is not None else None
    except (TypeError, ValueError) as exc:
        raise BookingValidationError(str(exc)) from None

    if end_minute is not None and end_minute <= start_minute:
        raise BookingValidationError("Slot end must be after its start.")

    new_start, new_end = _slot_range(start_minute, end_minute)
    existing = db.scalars(
        select(TimeSlot)
        .where(TimeSlot.shop_id == shop_id)
        .where(TimeSlot.weekday == weekday)
    ).all()
    for slot in existing:
        other_start, other_end = _slot_range(slot.start_minute, slot.end_minute)
        if new_start < other_end and other_start < new_end:
            raise SlotOverlap(f"Slot overlaps existing slot {slot.id}.")

    try:
        slot = TimeSlot(
            shop_id=shop_id,
            weekday=weekday,
            start_minute=start_minute,
            end_minute=end_minute,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Time slot %d added for shop %d (weekday=%d)", slot.id, shop_id, weekday)
    return slot


def remove_time_slot(db: Session, shop_id: int, requested_by: int, slot_id: int) -> None:
    """Delete a slot that no booking has ever referenced."""
    _require_shop_owner(db, shop_id, requested_by)

    slot = db.scalar(
        select(TimeSlot)
        .where(TimeSlot.id == slot_id)
        .where(TimeSlot.shop_id == shop_id)
    )
    if slot is None:
        raise NotFound("Slot not found.")

    references = db.scalar(
        select(func.count(Booking.id)).where(Booking.slot_id == slot_id)
    ) or 0
    references += db.scalar(
        select(func.count(RescheduleProposal.id))
        .where(RescheduleProposal.proposed_slot_id == slot_id)
    ) or 0
    if references:
        raise SlotInUse("Slot is referenced by bookings and cannot be deleted.")

    try:
        db.delete(slot)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Time slot %d removed from shop %d", slot_id, shop_id)


def _describe_vehicle(booking: Booking) -> str | None:
    vehicle = booking.vehicle
    if vehicle is None:
        return None
    label = " ".join(part for part in (vehicle.make, vehicle.model) if part)
    return label or None


def list_weekly_schedule(
    db: Session,
    shop_id: int,
    requested_by: int,
    start_date: date,
) -> list[ScheduledSlot]:
    """The shop's slots over seven days from `start_date`, with the booking holding each.

    Ordered by date, then start time. Cancelled bookings are not shown, so a
    freed occurrence appears without a booking.
    """
    _require_shop_owner(db, shop_id, requested_by)
    end_date = start_date + timedelta(days=DAYS_PER_WEEK)

    slots = db.scalars(
        select(TimeSlot)
        .where(TimeSlot.shop_id == shop_id)
        .order_by(TimeSlot.start_minute.asc())
    ).all()

    bookings = db.scalars(
        select(Booking)
        .options(joinedload(Booking.customer), joinedload(Booking.vehicle))
        .where(Booking.shop_id == shop_id)
        .where(Booking.scheduled_date >= start_date)
        .where(Booking.scheduled_date < end_date)
        .where(Booking.status != CANCELLED)
    ).unique().all()
    held = {(booking.slot_id, booking.scheduled_date): booking for booking in bookings}

    schedule = []
    for offset in range(DAYS_PER_WEEK):
        day = start_date + timedelta(days=offset)
        for slot in slots:
            if slot.weekday != day.weekday():
                continue
            display_start, display_end = project_onto_date(slot.start_minute, slot.end_minute, day)
            booking = held.get((slot.id, day))
            schedule.append(
                ScheduledSlot(
                    slot_id=slot.id,
                    scheduled_date=day,
                    display_start=display_start,
                    display_end=display_end,
                    booking=(
                        ScheduledBooking(
                            booking_id=booking.id,
                            status=booking.status,
                            customer_name=booking.customer.name if booking.customer else None,
                            vehicle=_describe_vehicle(booking),
                        )
                        if booking is not None
                        else None
                    ),
                )
            )
    return schedule
