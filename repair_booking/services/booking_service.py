"""Booking reservation and lifecycle services."""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from repair_booking.core.domain_exceptions import (
    BookingValidationError,
    Forbidden,
    InvalidStateTransition,
    NotFound,
    QuoteAlreadyBooked,
    SlotAlreadyBooked,
)
from repair_booking.db.models import (
    BOOKING_METHODS,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    IN_PROGRESS,
    PENDING,
    PROPOSAL_SUPERSEDED,
    QUOTE_ACCEPTED,
    QUOTE_DECLINED,
    QUOTE_EXPIRED,
    QUOTE_PENDING,
    QUOTE_QUOTED,
    Booking,
    Quote,
    Shop,
    ShopService,
    TimeSlot,
    Vehicle,
)
from repair_booking.pricing import (
    QUOTE_MODE,
    SERVICE_MODE,
    PriceBreakdown,
    PricingInput,
    compute_price,
    fee_schedule_for_shop,
    service_base_price,
)
from repair_booking.scheduling.slot_time import project_onto_date
from repair_booking.services import notification_service
from repair_booking.services.availability_service import get_shop, is_occurrence_booked

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (PENDING, CONFIRMED)

# Forward-only progression driven by the shop. Cancellation has its own path.
ALLOWED_TRANSITIONS = {
    PENDING: {CONFIRMED},
    CONFIRMED: {IN_PROGRESS},
    IN_PROGRESS: {COMPLETED},
    COMPLETED: set(),
    CANCELLED: set(),
}

BOOKABLE_QUOTE_STATUSES = (QUOTE_QUOTED, QUOTE_ACCEPTED)

UNBOOKABLE_QUOTE_REASONS = {
    QUOTE_PENDING: "Quote is still awaiting the shop's estimate.",
    QUOTE_DECLINED: "Quote was declined and cannot be booked.",
    QUOTE_EXPIRED: "Quote has expired. Request a new quote from the shop.",
}


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalar(select(Booking).where(Booking.id == booking_id))
    if booking is None:
        raise NotFound("Booking not found.")
    return booking


def get_booking_for_party(db: Session, booking_id: int, requested_by: int) -> Booking:
    """Load a booking visible to its owner or to the shop that holds it."""
    booking = get_booking(db, booking_id)
    if requested_by not in (booking.user_id, booking.shop.owner_user_id):
        raise Forbidden("Not authorized to access this booking.")
    return booking


def list_bookings(db: Session, requested_by: int, status: str | None = None) -> list[Booking]:
    """Bookings the caller owns, plus those made at shops the caller runs."""
    shop_ids = select(Shop.id).where(Shop.owner_user_id == requested_by)
    query = (
        select(Booking)
        .where((Booking.user_id == requested_by) | (Booking.shop_id.in_(shop_ids)))
        .order_by(Booking.scheduled_at.asc(), Booking.id.asc())
    )
    if status is not None:
        query = query.where(Booking.status == status.upper())
    return list(db.scalars(query).all())


def get_slot_for_shop(db: Session, shop_id: int, slot_id: int) -> TimeSlot:
    slot = db.scalar(
        select(TimeSlot)
        .where(TimeSlot.id == slot_id)
        .where(TimeSlot.shop_id == shop_id)
    )
    if slot is None:
        raise NotFound("Slot not found for this shop.")
    return slot


def _load_owned_vehicle(db: Session, vehicle_id: int, user_id: int) -> Vehicle:
    vehicle = db.scalar(select(Vehicle).where(Vehicle.id == vehicle_id))
    if vehicle is None:
        raise NotFound("Vehicle not found.")
    if vehicle.owner_id != user_id:
        raise Forbidden("Vehicle does not belong to the requesting user.")
    return vehicle


def _load_bookable_quote(db: Session, quote_id: int, shop_id: int, vehicle_id: int) -> Quote:
    quote = db.scalar(
        select(Quote)
        .where(Quote.id == quote_id)
        .where(Quote.shop_id == shop_id)
    )
    if quote is None:
        raise NotFound("Quote not found for this shop.")
    if quote.vehicle_id != vehicle_id:
        raise BookingValidationError("Quote was issued for a different vehicle.")
    if quote.status not in BOOKABLE_QUOTE_STATUSES:
        raise InvalidStateTransition(
            UNBOOKABLE_QUOTE_REASONS.get(quote.status, f"Quote in status {quote.status} cannot be booked.")
        )

    existing = db.scalar(
        select(Booking.id)
        .where(Booking.quote_id == quote_id)
        .where(Booking.status != CANCELLED)
    )
    if existing is not None:
        raise QuoteAlreadyBooked(f"A booking already exists for this quote (booking {existing}).")
    return quote


def _validate_occurrence(slot: TimeSlot, scheduled_date: date, now: datetime) -> datetime:
    """Check the slot runs on the date's weekday and return its start instant."""
    if slot.weekday != scheduled_date.weekday():
        raise BookingValidationError("Slot is not offered on the requested date.")

    scheduled_at, _ = project_onto_date(slot.start_minute, slot.end_minute, scheduled_date)
    if scheduled_at <= now:
        raise BookingValidationError("Cannot book a slot in the past.")
    return scheduled_at


def _is_quote_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return "uq_bookings_active_quote" in message or "bookings.quote_id" in message


def is_slot_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the active slot-occurrence index."""
    message = str(exc.orig)
    return (
        "uq_bookings_active_slot_occurrence" in message
        or "bookings.slot_id, bookings.scheduled_date" in message
    )


def price_reservation(
    db: Session,
    shop_id: int,
    method: str,
    service_id: int | None = None,
    quote_id: int | None = None,
) -> PriceBreakdown:
    """Compute the price for a prospective booking without reserving anything."""
    if (service_id is None) == (quote_id is None):
        raise BookingValidationError("Provide exactly one of service_id or quote_id.")
    if method not in BOOKING_METHODS:
        raise BookingValidationError(f"Unknown fulfillment method: {method}.")

    shop = get_shop(db, shop_id)
    if quote_id is not None:
        quote = db.scalar(
            select(Quote)
            .where(Quote.id == quote_id)
            .where(Quote.shop_id == shop_id)
        )
        if quote is None:
            raise NotFound("Quote not found for this shop.")
        return compute_price(
            PricingInput(
                mode=QUOTE_MODE,
                base_amount=quote.estimated_total,
                method=method,
                fees=fee_schedule_for_shop(shop, quote),
            )
        )

    service = db.scalar(
        select(ShopService)
        .where(ShopService.id == service_id)
        .where(ShopService.shop_id == shop_id)
    )
    if service is None:
        raise NotFound("Service not found for this shop.")
    return compute_price(
        PricingInput(
            mode=SERVICE_MODE,
            base_amount=service_base_price(service, shop),
            method=method,
            fees=fee_schedule_for_shop(shop),
        )
    )


def reserve_booking(
    db: Session,
    user_id: int,
    shop_id: int,
    slot_id: int,
    vehicle_id: int,
    method: str,
    scheduled_date: date,
    service_id: int | None = None,
    quote_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Claim a slot occurrence and create a PENDING booking with a price snapshot.

    The storage layer's unique index arbitrates concurrent claims. The loser
    gets SlotAlreadyBooked immediately; there are no retries.
    """
    now = now or datetime.now(timezone.utc)

    if (service_id is None) == (quote_id is None):
        raise BookingValidationError("Provide exactly one of service_id or quote_id.")
    if method not in BOOKING_METHODS:
        raise BookingValidationError(f"Unknown fulfillment method: {method}.")

    shop = get_shop(db, shop_id)
    slot = get_slot_for_shop(db, shop_id, slot_id)
    _load_owned_vehicle(db, vehicle_id, user_id)

    quote: Quote | None = None
    if quote_id is not None:
        quote = _load_bookable_quote(db, quote_id, shop_id, vehicle_id)

    scheduled_at = _validate_occurrence(slot, scheduled_date, now)

    if is_occurrence_booked(db, slot_id=slot.id, target_date=scheduled_date):
        raise SlotAlreadyBooked("Selected time slot is already booked. Please choose another.")

    price = price_reservation(
        db=db,
        shop_id=shop.id,
        method=method,
        service_id=service_id,
        quote_id=quote_id,
    )

    try:
        booking = Booking(
            user_id=user_id,
            shop_id=shop.id,
            vehicle_id=vehicle_id,
            service_id=service_id,
            quote_id=quote_id,
            slot_id=slot.id,
            scheduled_date=scheduled_date,
            scheduled_at=scheduled_at,
            method=method,
            status=PENDING,
            base_price=price.base,
            surcharge=price.surcharge,
            tax=price.tax,
            platform_fee=price.platform_fee,
            total=price.total,
            deposit=price.deposit,
            deposit_paid=False,
            notes=notes,
        )
        db.add(booking)
        if quote is not None:
            quote.status = QUOTE_ACCEPTED

        db.commit()
        db.refresh(booking)
    except IntegrityError as exc:
        db.rollback()
        if _is_quote_conflict(exc):
            raise QuoteAlreadyBooked("A booking already exists for this quote.") from None
        if not is_slot_conflict(exc):
            raise
        logger.warning(
            "Lost reservation race for slot %d on %s (user_id=%d)",
            slot_id,
            scheduled_date,
            user_id,
        )
        raise SlotAlreadyBooked("Selected time slot is already booked. Please choose another.") from None
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "Booking created",
        extra={
            "booking_id": booking.id,
            "shop_id": shop.id,
            "slot_id": slot.id,
            "user_id": user_id,
        },
    )

    try:
        notification_service.notify_booking_created(booking)
    except Exception:
        logger.exception("Failed to schedule notifications for booking %d", booking.id)

    return booking


def update_booking_status(
    db: Session,
    booking_id: int,
    new_status: str,
    requested_by: int,
) -> Booking:
    """Advance a booking along PENDING -> CONFIRMED -> IN_PROGRESS -> COMPLETED."""
    booking = get_booking(db, booking_id)
    if booking.shop.owner_user_id != requested_by:
        raise Forbidden("Only the shop can update booking progress.")

    if new_status == CANCELLED:
        raise InvalidStateTransition("Use the cancellation endpoint to cancel a booking.")

    allowed_next_statuses = ALLOWED_TRANSITIONS.get(booking.status, set())
    if new_status not in allowed_next_statuses:
        raise InvalidStateTransition(
            f"Invalid status transition from {booking.status} to {new_status}."
        )

    try:
        booking.status = new_status
        # Work has started; an open reschedule offer no longer applies.
        if new_status not in CANCELLABLE_STATUSES:
            pending = booking.pending_proposal
            if pending is not None:
                pending.status = PROPOSAL_SUPERSEDED
                pending.responded_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Booking %d moved to %s", booking.id, new_status)

    try:
        notification_service.notify_status_changed(booking)
    except Exception:
        logger.exception("Failed to schedule status notification for booking %d", booking.id)

    return booking


def record_deposit_payment(db: Session, booking_id: int, requested_by: int) -> Booking:
    """Mark the escrow deposit as paid by the booking owner."""
    booking = get_booking(db, booking_id)
    if booking.user_id != requested_by:
        raise Forbidden("Only the booking owner can pay the deposit.")
    if booking.status not in CANCELLABLE_STATUSES:
        raise InvalidStateTransition(
            f"Deposit cannot be paid on a {booking.status} booking."
        )
    if booking.deposit_paid:
        return booking

    try:
        booking.deposit_paid = True
        db.commit()
        db.refresh(booking)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Deposit recorded for booking %d (amount=%s)", booking.id, booking.deposit)
    return booking
