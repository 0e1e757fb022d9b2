from datetime import datetime, timezone

import pytest

from repair_booking.core.domain_exceptions import (
    BookingValidationError,
    Forbidden,
    InvalidStateTransition,
    NotFound,
    SlotAlreadyBooked,
)
from repair_booking.db.models import Booking, RescheduleProposal
from repair_booking.scheduling.slot_time import as_utc
from repair_booking.services import reschedule_service
from repair_booking.services.availability_service import list_availability
from repair_booking.services.booking_service import reserve_booking, update_booking_status
from repair_booking.services.cancellation_service import cancel_booking
from repair_booking.services.reschedule_service import (
    accept_reschedule,
    decline_reschedule,
    propose_reschedule,
)

from tests.conftest import (
    CUSTOMER_ID,
    MONDAY,
    NEXT_MONDAY,
    NOW,
    OTHER_CUSTOMER_ID,
    SHOP_OWNER_ID,
    TUESDAY,
    make_slot,
)


def _book(db, marketplace, user_id=CUSTOMER_ID, vehicle_key="vehicle", scheduled_date=MONDAY, slot=None):
    return reserve_booking(
        db=db,
        user_id=user_id,
        shop_id=marketplace["shop"].id,
        slot_id=(slot or marketplace["slot"]).id,
        vehicle_id=marketplace[vehicle_key].id,
        method="DROP_OFF",
        scheduled_date=scheduled_date,
        service_id=marketplace["service"].id,
        now=NOW,
    )


def _propose(db, booking, new_date=NEXT_MONDAY, new_time="09:00", message="Parts delayed"):
    return propose_reschedule(
        db,
        booking.id,
        requested_by=SHOP_OWNER_ID,
        new_date=new_date,
        new_time=new_time,
        message=message,
        now=NOW,
    )


@pytest.fixture
def booking(db, marketplace):
    return _book(db, marketplace)


def test_propose_attaches_pending_proposal(db, booking, sent_messages):
    sent_messages.clear()

    proposal = _propose(db, booking)

    assert proposal.status == "PENDING"
    assert proposal.proposed_date == NEXT_MONDAY
    assert proposal.proposed_minute == 9 * 60
    assert booking.pending_proposal.id == proposal.id
    assert booking.status == "PENDING"
    to, body = sent_messages[0]
    assert to == "+15550000002"
    assert "2030-01-21 09:00" in body
    assert "Parts delayed" in body


def test_accept_moves_booking_and_frees_old_occurrence(db, marketplace, booking):
    update_booking_status(db, booking.id, "CONFIRMED", requested_by=SHOP_OWNER_ID)
    _propose(db, booking)

    moved = accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    assert moved.scheduled_date == NEXT_MONDAY
    assert as_utc(moved.scheduled_at) == datetime(2030, 1, 21, 9, 0, tzinfo=timezone.utc)
    assert moved.status == "CONFIRMED"
    assert moved.pending_proposal is None
    assert db.query(RescheduleProposal).one().status == "ACCEPTED"
    shop_id = marketplace["shop"].id
    assert list_availability(db, shop_id, MONDAY)[0].is_booked is False
    assert list_availability(db, shop_id, NEXT_MONDAY)[0].is_booked is True


def test_accept_onto_a_different_slot(db, marketplace, booking):
    late_slot = make_slot(db, marketplace["shop"], weekday=1, start_minute=15 * 60, end_minute=16 * 60)
    _propose(db, booking, new_date=TUESDAY, new_time="15:00")

    moved = accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    assert moved.slot_id == late_slot.id
    assert as_utc(moved.scheduled_at) == datetime(2030, 1, 15, 15, 0, tzinfo=timezone.utc)


def test_accept_fails_when_target_was_taken(db, marketplace, booking):
    _propose(db, booking)
    _book(db, marketplace, user_id=OTHER_CUSTOMER_ID, vehicle_key="other_vehicle", scheduled_date=NEXT_MONDAY)

    with pytest.raises(SlotAlreadyBooked):
        accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    db.expire_all()
    unchanged = db.get(Booking, booking.id)
    assert unchanged.scheduled_date == MONDAY
    assert unchanged.pending_proposal is not None


def test_accept_race_is_settled_by_storage_guard(db, marketplace, booking, monkeypatch):
    _propose(db, booking)
    _book(db, marketplace, user_id=OTHER_CUSTOMER_ID, vehicle_key="other_vehicle", scheduled_date=NEXT_MONDAY)
    monkeypatch.setattr(reschedule_service, "is_occurrence_booked", lambda *args, **kwargs: False)

    with pytest.raises(SlotAlreadyBooked):
        accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    db.expire_all()
    unchanged = db.get(Booking, booking.id)
    assert unchanged.scheduled_date == MONDAY
    assert unchanged.pending_proposal is not None


def test_decline_keeps_schedule(db, booking):
    _propose(db, booking)

    kept = decline_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    assert kept.scheduled_date == MONDAY
    assert kept.pending_proposal is None
    assert db.query(RescheduleProposal).one().status == "DECLINED"


def test_new_proposal_supersedes_previous(db, marketplace, booking):
    make_slot(db, marketplace["shop"], weekday=1, start_minute=15 * 60, end_minute=16 * 60)
    first = _propose(db, booking)
    second = _propose(db, booking, new_date=TUESDAY, new_time="15:00")

    db.refresh(first)
    assert first.status == "SUPERSEDED"
    assert booking.pending_proposal.id == second.id


def test_only_shop_proposes_and_only_owner_answers(db, booking):
    with pytest.raises(Forbidden):
        propose_reschedule(db, booking.id, requested_by=CUSTOMER_ID, new_date=NEXT_MONDAY, new_time="09:00", now=NOW)

    _propose(db, booking)

    with pytest.raises(Forbidden):
        accept_reschedule(db, booking.id, requested_by=SHOP_OWNER_ID, now=NOW)
    with pytest.raises(Forbidden):
        decline_reschedule(db, booking.id, requested_by=OTHER_CUSTOMER_ID, now=NOW)


def test_proposed_time_must_be_an_existing_slot(db, booking):
    with pytest.raises(NotFound):
        _propose(db, booking, new_time="13:00")
    with pytest.raises(NotFound):
        _propose(db, booking, new_date=TUESDAY, new_time="09:00")


@pytest.mark.parametrize("new_time", ["9am", "25:00", ""])
def test_malformed_time_is_rejected(db, booking, new_time):
    with pytest.raises(BookingValidationError):
        _propose(db, booking, new_time=new_time)


def test_cannot_propose_the_past(db, booking):
    with pytest.raises(BookingValidationError):
        propose_reschedule(
            db,
            booking.id,
            requested_by=SHOP_OWNER_ID,
            new_date=MONDAY,
            new_time="09:00",
            now=datetime(2030, 1, 14, 10, 0, tzinfo=timezone.utc),
        )


def test_answer_requires_pending_proposal(db, booking):
    with pytest.raises(NotFound):
        accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)
    with pytest.raises(NotFound):
        decline_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)


def test_cancelled_booking_cannot_be_rescheduled(db, booking):
    cancel_booking(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)

    with pytest.raises(InvalidStateTransition):
        _propose(db, booking)


def test_finished_booking_cannot_answer_a_proposal(db, booking):
    _propose(db, booking)
    for status in ("CONFIRMED", "IN_PROGRESS", "COMPLETED"):
        update_booking_status(db, booking.id, status, requested_by=SHOP_OWNER_ID)

    with pytest.raises(InvalidStateTransition):
        decline_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)
    with pytest.raises(InvalidStateTransition):
        accept_reschedule(db, booking.id, requested_by=CUSTOMER_ID, now=NOW)


def test_starting_work_supersedes_open_proposal(db, booking):
    proposal = _propose(db, booking)
    update_booking_status(db, booking.id, "CONFIRMED", requested_by=SHOP_OWNER_ID)

    assert booking.pending_proposal is not None

    started = update_booking_status(db, booking.id, "IN_PROGRESS", requested_by=SHOP_OWNER_ID)

    db.refresh(proposal)
    assert proposal.status == "SUPERSEDED"
    assert started.pending_proposal is None
    assert started.scheduled_date == MONDAY
