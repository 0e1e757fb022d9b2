import pytest

from repair_booking.db.models import Booking
from repair_booking.scheduler import reminder_scheduler
from repair_booking.services.booking_service import reserve_booking, update_booking_status

from tests.conftest import CUSTOMER_ID, MONDAY, NEXT_MONDAY, NOW, SHOP_OWNER_ID


@pytest.fixture
def reminders(monkeypatch):
    sent = []
    monkeypatch.setattr(
        reminder_scheduler,
        "send_whatsapp_message",
        lambda to, body: sent.append((to, body)),
    )
    return sent


def _book(db, marketplace, scheduled_date, confirm=True):
    booking = reserve_booking(
        db=db,
        user_id=CUSTOMER_ID,
        shop_id=marketplace["shop"].id,
        slot_id=marketplace["slot"].id,
        vehicle_id=marketplace["vehicle"].id,
        method="DROP_OFF",
        scheduled_date=scheduled_date,
        service_id=marketplace["service"].id,
        now=NOW,
    )
    if confirm:
        update_booking_status(db, booking.id, "CONFIRMED", requested_by=SHOP_OWNER_ID)
    return booking


def test_reminds_todays_confirmed_bookings_once(db, session_factory, marketplace, reminders):
    today = _book(db, marketplace, MONDAY)
    _book(db, marketplace, NEXT_MONDAY)

    assert reminder_scheduler.send_daily_reminders(today=MONDAY, session_factory=session_factory) == (1, 0)
    assert reminders == [
        ("+15550000002", "Reminder: your appointment at Precision Auto is today at 09:00 UTC."),
    ]

    db.expire_all()
    assert db.get(Booking, today.id).reminder_sent is True
    assert reminder_scheduler.send_daily_reminders(today=MONDAY, session_factory=session_factory) == (0, 0)


def test_pending_bookings_are_not_reminded(db, session_factory, marketplace, reminders):
    _book(db, marketplace, MONDAY, confirm=False)

    assert reminder_scheduler.send_daily_reminders(today=MONDAY, session_factory=session_factory) == (0, 0)
    assert reminders == []


def test_failed_send_is_counted_and_retried_later(db, session_factory, marketplace, monkeypatch):
    booking = _book(db, marketplace, MONDAY)

    def down(to, body):
        raise ConnectionError("twilio unreachable")

    monkeypatch.setattr(reminder_scheduler, "send_whatsapp_message", down)

    assert reminder_scheduler.send_daily_reminders(today=MONDAY, session_factory=session_factory) == (0, 1)
    db.expire_all()
    assert db.get(Booking, booking.id).reminder_sent is False
