"""SQLAlchemy ORM models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repair_booking.db.session import Base

# Booking statuses
PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"
BOOKING_STATUSES = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED)

# Fulfillment methods
DROP_OFF = "DROP_OFF"
TOWING = "TOWING"
MOBILE = "MOBILE"
BOOKING_METHODS = (DROP_OFF, TOWING, MOBILE)

# Refund outcomes
REFUNDABLE = "REFUNDABLE"
NON_REFUNDABLE = "NON_REFUNDABLE"

# Quote statuses
QUOTE_PENDING = "PENDING"
QUOTE_QUOTED = "QUOTED"
QUOTE_ACCEPTED = "ACCEPTED"
QUOTE_DECLINED = "DECLINED"
QUOTE_EXPIRED = "EXPIRED"

# Reschedule proposal statuses
PROPOSAL_PENDING = "PENDING"
PROPOSAL_ACCEPTED = "ACCEPTED"
PROPOSAL_DECLINED = "DECLINED"
PROPOSAL_SUPERSEDED = "SUPERSEDED"

MONEY = Numeric(10, 2, asdecimal=True)


class Shop(Base):
    """Represents a repair shop listed on the marketplace."""

    __tablename__ = "shops"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    pricing_config: Mapped[Optional["ShopPricingConfig"]] = relationship(
        back_populates="shop",
        uselist=False,
        cascade="all, delete-orphan",
    )
    services: Mapped[list["ShopService"]] = relationship(back_populates="shop")
    time_slots: Mapped[list["TimeSlot"]] = relationship(back_populates="shop")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="shop")


class ShopPricingConfig(Base):
    """Per-shop fee configuration; unset values fall back to marketplace defaults."""

    __tablename__ = "shop_pricing_configs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(
        ForeignKey("shops.id"),
        nullable=False,
        unique=True,
        index=True,
    )

    labor_rate: Mapped[Decimal] = mapped_column(
        MONEY,
        nullable=False,
        default=Decimal("85.00"),
        server_default=text("85.00"),
    )
    deposit_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    tax_applicable: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("1"),
    )
    towing_fee: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    mobile_fee: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)

    shop: Mapped["Shop"] = relationship(back_populates="pricing_config")


class ShopService(Base):
    """A service a shop offers, with its custom price or labor estimate."""

    __tablename__ = "shop_services"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    labor_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)

    shop: Mapped["Shop"] = relationship(back_populates="services")


class Customer(Base):
    """A vehicle owner; the id is the authenticated user id."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    vehicles: Mapped[list["Vehicle"]] = relationship(back_populates="owner")


class Vehicle(Base):
    """Represents a vehicle owned by a customer."""

    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)

    make: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    license_plate: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    owner: Mapped["Customer"] = relationship(back_populates="vehicles")


class Quote(Base):
    """A shop's pre-negotiated offer for a vehicle."""

    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)

    # Already inclusive of the shop's own fees and tax.
    estimated_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    deposit_percent: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=QUOTE_QUOTED,
        server_default=text("'QUOTED'"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class TimeSlot(Base):
    """A recurring weekly window a shop accepts bookings in.

    Times are minutes since midnight, detached from any calendar date.
    """

    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("shop_id", "weekday", "start_minute", name="uq_time_slots_shop_weekday_start"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)

    # 0 = Monday, matching date.weekday()
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    end_minute: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    shop: Mapped["Shop"] = relationship(back_populates="time_slots")


class Booking(Base):
    """One reserved appointment claiming a single slot occurrence."""

    __tablename__ = "bookings"
    __table_args__ = (
        # One non-cancelled booking per (slot, date). Concurrent reservations
        # are arbitrated here, not in application code.
        Index(
            "uq_bookings_active_slot_occurrence",
            "slot_id",
            "scheduled_date",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
        Index(
            "uq_bookings_active_quote",
            "quote_id",
            unique=True,
            sqlite_where=text("quote_id IS NOT NULL AND status != 'CANCELLED'"),
            postgresql_where=text("quote_id IS NOT NULL AND status != 'CANCELLED'"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False, index=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)
    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey("shop_services.id"), nullable=True)
    quote_id: Mapped[Optional[int]] = mapped_column(ForeignKey("quotes.id"), nullable=True)
    slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id"), nullable=False, index=True)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    method: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DROP_OFF,
        server_default=text("'DROP_OFF'"),
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=PENDING,
        server_default=text("'PENDING'"),
    )

    # Price snapshot, computed once at reservation time.
    base_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    surcharge: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    deposit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    deposit_paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )

    refund_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    reminder_sent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    customer: Mapped["Customer"] = relationship()
    shop: Mapped["Shop"] = relationship(back_populates="bookings")
    vehicle: Mapped["Vehicle"] = relationship()
    service: Mapped[Optional["ShopService"]] = relationship()
    quote: Mapped[Optional["Quote"]] = relationship()
    slot: Mapped["TimeSlot"] = relationship()

    proposals: Mapped[list["RescheduleProposal"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="RescheduleProposal.id",
    )

    @property
    def remaining(self) -> Decimal:
        return self.total - self.deposit

    @property
    def pending_proposal(self) -> Optional["RescheduleProposal"]:
        for proposal in self.proposals:
            if proposal.status == PROPOSAL_PENDING:
                return proposal
        return None


class RescheduleProposal(Base):
    """A shop-proposed new time for a booking, awaiting the owner's answer."""

    __tablename__ = "reschedule_proposals"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False, index=True)

    proposed_date: Mapped[date] = mapped_column(Date, nullable=False)
    proposed_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    proposed_slot_id: Mapped[int] = mapped_column(ForeignKey("time_slots.id"), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=PROPOSAL_PENDING,
        server_default=text("'PENDING'"),
    )
    proposed_by: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    booking: Mapped["Booking"] = relationship(back_populates="proposals")
    proposed_slot: Mapped["TimeSlot"] = relationship()
