"""Read-only slot availability for a shop on a calendar date."""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from repair_booking.core.domain_exceptions import NotFound
from repair_booking.db.models import CANCELLED, Booking, Shop, TimeSlot
from repair_booking.scheduling.slot_time import project_onto_date


@dataclass(frozen=True)
class SlotAvailability:
    slot_id: int
    display_start: datetime
    display_end: datetime | None
    is_booked: bool


def get_shop(db: Session, shop_id: int) -> Shop:
    shop = db.scalar(select(Shop).where(Shop.id == shop_id))
    if shop is None:
        raise NotFound("Shop not found.")
    return shop


def booked_slot_ids(
    db: Session,
    slot_ids: list[int],
    target_date: date,
    exclude_booking_id: int | None = None,
) -> set[int]:
    """Slots among `slot_ids` held by a non-cancelled booking on `target_date`."""
    if not slot_ids:
        return set()

    query = (
        select(Booking.slot_id)
        .where(Booking.slot_id.in_(slot_ids))
        .where(Booking.scheduled_date == target_date)
        .where(Booking.status != CANCELLED)
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    return set(db.scalars(query).all())


def is_occurrence_booked(
    db: Session,
    slot_id: int,
    target_date: date,
    exclude_booking_id: int | None = None,
) -> bool:
    return bool(
        booked_slot_ids(
            db=db,
            slot_ids=[slot_id],
            target_date=target_date,
            exclude_booking_id=exclude_booking_id,
        )
    )


def list_availability(db: Session, shop_id: int, target_date: date) -> list[SlotAvailability]:
    """Return the shop's slots for the date's weekday with booked/free status."""
    get_shop(db, shop_id)

    slots = db.scalars(
        select(TimeSlot)
        .where(TimeSlot.shop_id == shop_id)
        .where(TimeSlot.weekday == target_date.weekday())
        .order_by(TimeSlot.start_minute.asc())
    ).all()

    taken = booked_slot_ids(db=db, slot_ids=[slot.id for slot in slots], target_date=target_date)

    availability = []
    for slot in slots:
        display_start, display_end = project_onto_date(
            slot.start_minute,
            slot.end_minute,
            target_date,
        )
        availability.append(
            SlotAvailability(
                slot_id=slot.id,
                display_start=display_start,
                display_end=display_end,
                is_booked=slot.id in taken,
            )
        )
    return availability


def find_slot_at(db: Session, shop_id: int, target_date: date, minute: int) -> TimeSlot | None:
    """Resolve the shop's slot starting at `minute` on the date's weekday."""
    return db.scalar(
        select(TimeSlot)
        .where(TimeSlot.shop_id == shop_id)
        .where(TimeSlot.weekday == target_date.weekday())
        .where(TimeSlot.start_minute == minute)
    )
