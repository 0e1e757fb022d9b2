"""FastAPI entrypoint for the repair marketplace booking engine.

- `routes/` for availability, pricing and booking endpoints
- `services/` for reservation, cancellation and reschedule logic
- `pricing/` for the price/deposit/tax breakdown
- `db/` for SQLAlchemy models and session management
- `scheduler/` for APScheduler background jobs
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException

from repair_booking.core.domain_exceptions import DomainException
from repair_booking.core.exceptions import domain_exception_handler, http_exception_handler
from repair_booking.core.middleware import RequestContextMiddleware
from repair_booking.db.init_db import init_db
from repair_booking.scheduler.reminder_scheduler import start_scheduler
from repair_booking.services import notification_service
from repair_booking.routes import bookings, pricing, shops

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize app resources before serving traffic."""
    init_db()
    logger.info("Database tables initialized.")

    # Background scheduler for reminders and fire-and-forget dispatch.
    try:
        scheduler = start_scheduler()
        notification_service.attach_scheduler(scheduler)
    except Exception:
        logger.exception("Failed to start scheduler; notifications will run inline.")
        scheduler = None

    yield

    # Graceful shutdown.
    notification_service.attach_scheduler(None)
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down.")


app = FastAPI(
    title="Repair Booking API",
    version="0.1.0",
    description="Availability, pricing and reservation engine for the repair marketplace.",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)

app.include_router(shops.router)
app.include_router(pricing.router)
app.include_router(bookings.router)


@app.get("/", tags=["health"])
def root() -> dict[str, str]:
    """Simple status endpoint for uptime checks."""
    return {"status": "Repair Booking Running"}
