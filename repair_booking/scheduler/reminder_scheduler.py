"""Background scheduler for booking reminders and deferred dispatch.

Uses APScheduler BackgroundScheduler. The same scheduler runs one-shot
notification and deposit-release jobs handed over by the booking services,
plus a daily job that reminds customers of today's confirmed appointments.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import select
from sqlalchemy.orm import joinedload

from repair_booking.config import POLICY
from repair_booking.db.models import CONFIRMED, Booking
from repair_booking.db.session import SessionLocal
from repair_booking.scheduling.slot_time import as_utc
from repair_booking.services.twilio_client import send_whatsapp_message

logger = logging.getLogger(__name__)


def send_daily_reminders(today: date | None = None, session_factory=SessionLocal) -> tuple[int, int]:
    """Send WhatsApp reminders for today's confirmed bookings.

    Returns (sent, failed).
    """
    today = today or datetime.now(timezone.utc).date()
    logger.info("Running daily reminder job for %s", today)

    day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
    day_end = day_start + timedelta(days=1)

    db = session_factory()
    sent, failed = 0, 0
    try:
        bookings = db.scalars(
            select(Booking)
            .options(joinedload(Booking.customer), joinedload(Booking.shop))
            .where(Booking.scheduled_at >= day_start)
            .where(Booking.scheduled_at < day_end)
            .where(Booking.status == CONFIRMED)
            .where(Booking.reminder_sent.is_(False))
        ).unique().all()

        for booking in bookings:
            customer = booking.customer
            if customer is None or not customer.phone:
                logger.warning(
                    "Booking %d has no associated customer phone. Skipping.",
                    booking.id,
                )
                failed += 1
                continue

            message = (
                f"Reminder: your appointment at {booking.shop.name} is today "
                f"at {as_utc(booking.scheduled_at).strftime('%H:%M')} UTC."
            )

            try:
                send_whatsapp_message(to=customer.phone, body=message)
                booking.reminder_sent = True
                db.commit()
                sent += 1
            except Exception:
                db.rollback()
                logger.exception(
                    "Failed to send reminder for booking %d to %s",
                    booking.id,
                    customer.phone,
                )
                failed += 1

        logger.info(
            "Reminder job complete: %d sent, %d failed out of %d bookings.",
            sent,
            failed,
            len(bookings),
        )
    except Exception:
        logger.exception("Unhandled error in reminder job.")
    finally:
        db.close()

    return sent, failed


def start_scheduler() -> BackgroundScheduler:
    """Create, configure, and start the background scheduler.

    Returns the scheduler instance so the caller can shut it down if needed.
    """
    scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

    scheduler.add_job(
        send_daily_reminders,
        trigger="cron",
        hour=POLICY.reminder_hour,
        minute=0,
        id="daily_booking_reminder",
        name="Send daily WhatsApp booking reminders",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started (daily reminders at %02d:00 UTC).",
        POLICY.reminder_hour,
    )
    return scheduler
