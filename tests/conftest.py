"""Shared fixtures: an isolated in-memory database and record factories."""

import os

# Point the app at a throwaway database before any app import.
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from repair_booking.db.models import (
    Customer,
    Quote,
    Shop,
    ShopPricingConfig,
    ShopService,
    TimeSlot,
    Vehicle,
)
from repair_booking.db.session import Base, get_db
from repair_booking.services import notification_service

# Monday 2030-01-07 12:00 UTC; services under test take `now` explicitly.
NOW = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 14)
NEXT_MONDAY = date(2030, 1, 21)
TUESDAY = date(2030, 1, 15)

SHOP_OWNER_ID = 500
CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2


def future_weekday(weekday: int, weeks_ahead: int = 2) -> date:
    """A date on `weekday` safely in the future relative to the real clock."""
    start = date.today() + timedelta(weeks=weeks_ahead)
    return start + timedelta(days=(weekday - start.weekday()) % 7)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def sent_messages(monkeypatch):
    """Capture outbound WhatsApp messages instead of calling Twilio."""
    sent: list[tuple[str, str]] = []

    def fake_send(to: str, body: str) -> str:
        sent.append((to, body))
        return f"SM{len(sent)}"

    monkeypatch.setattr(notification_service, "send_whatsapp_message", fake_send)
    notification_service.attach_scheduler(None)
    return sent


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_shop(
    db: Session,
    owner_user_id: int = SHOP_OWNER_ID,
    name: str = "Precision Auto",
    phone: str | None = "+15550000001",
    deposit_percent: Decimal | None = Decimal("20"),
    tax_applicable: bool = True,
    towing_fee: Decimal | None = None,
    mobile_fee: Decimal | None = None,
    labor_rate: Decimal = Decimal("85.00"),
) -> Shop:
    shop = Shop(name=name, owner_user_id=owner_user_id, phone=phone)
    shop.pricing_config = ShopPricingConfig(
        labor_rate=labor_rate,
        deposit_percent=deposit_percent,
        tax_applicable=tax_applicable,
        towing_fee=towing_fee,
        mobile_fee=mobile_fee,
    )
    db.add(shop)
    db.commit()
    db.refresh(shop)
    return shop


def make_customer(db: Session, user_id: int = CUSTOMER_ID, phone: str | None = "+15550000002") -> Customer:
    customer = Customer(id=user_id, name=f"Customer {user_id}", phone=phone)
    db.add(customer)
    db.commit()
    return customer


def make_vehicle(db: Session, owner_id: int = CUSTOMER_ID) -> Vehicle:
    vehicle = Vehicle(owner_id=owner_id, make="Toyota", model="Corolla", year=2018)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def make_service(
    db: Session,
    shop: Shop,
    price: Decimal | None = Decimal("60.00"),
    labor_hours: Decimal | None = None,
) -> ShopService:
    service = ShopService(shop_id=shop.id, name="Oil change", price=price, labor_hours=labor_hours)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def make_slot(
    db: Session,
    shop: Shop,
    weekday: int = 0,
    start_minute: int = 9 * 60,
    end_minute: int | None = 10 * 60,
) -> TimeSlot:
    slot = TimeSlot(
        shop_id=shop.id,
        weekday=weekday,
        start_minute=start_minute,
        end_minute=end_minute,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def make_quote(
    db: Session,
    shop: Shop,
    vehicle: Vehicle,
    estimated_total: Decimal = Decimal("300.00"),
    deposit_percent: Decimal | None = None,
    status: str = "QUOTED",
) -> Quote:
    quote = Quote(
        shop_id=shop.id,
        vehicle_id=vehicle.id,
        estimated_total=estimated_total,
        deposit_percent=deposit_percent,
        status=status,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)
    return quote


@pytest.fixture
def marketplace(db):
    """A shop with a Monday 09:00 slot, a $60 service, and one customer's vehicle."""
    shop = make_shop(db)
    make_customer(db, CUSTOMER_ID)
    make_customer(db, OTHER_CUSTOMER_ID, phone="+15550000003")
    vehicle = make_vehicle(db, CUSTOMER_ID)
    other_vehicle = make_vehicle(db, OTHER_CUSTOMER_ID)
    service = make_service(db, shop)
    slot = make_slot(db, shop)
    return {
        "shop": shop,
        "vehicle": vehicle,
        "other_vehicle": other_vehicle,
        "service": service,
        "slot": slot,
    }
