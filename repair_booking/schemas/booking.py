from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from repair_booking.db.models import Booking, RescheduleProposal
from repair_booking.pricing import PriceBreakdown
from repair_booking.scheduling.slot_time import as_utc, format_minute_of_day


class SlotAvailabilityItem(BaseModel):
    slot_id: int
    display_start: datetime
    display_end: datetime | None = None
    is_booked: bool


class ScheduledBookingItem(BaseModel):
    booking_id: int
    status: str
    customer_name: str | None = None
    vehicle: str | None = None


class WeeklyScheduleItem(BaseModel):
    slot_id: int
    scheduled_date: date
    display_start: datetime
    display_end: datetime | None = None
    booking: ScheduledBookingItem | None = None


class TimeSlotCreate(BaseModel):
    weekday: int = Field(ge=0, le=6)
    start_time: str = Field(description="HH:MM, 24h")
    end_time: str | None = Field(default=None, description="HH:MM, 24h")


class TimeSlotResponse(BaseModel):
    slot_id: int
    weekday: int
    start_time: str
    end_time: str | None = None


class PricePreviewRequest(BaseModel):
    shop_id: int
    method: str = "DROP_OFF"
    service_id: int | None = None
    quote_id: int | None = None

    @model_validator(mode="after")
    def _one_price_source(self):
        if (self.service_id is None) == (self.quote_id is None):
            raise ValueError("Provide exactly one of service_id or quote_id.")
        return self


class PriceBreakdownResponse(BaseModel):
    base: Decimal
    surcharge: Decimal
    tax: Decimal
    platform_fee: Decimal
    total: Decimal
    deposit: Decimal
    remaining: Decimal

    @classmethod
    def from_breakdown(cls, breakdown: PriceBreakdown) -> "PriceBreakdownResponse":
        return cls(**breakdown.as_dict())


class BookingCreate(PricePreviewRequest):
    slot_id: int
    vehicle_id: int
    scheduled_date: date
    notes: str | None = Field(default=None, max_length=2000)


class RescheduleProposalRequest(BaseModel):
    new_date: date
    new_time: str = Field(description="HH:MM, 24h")
    message: str | None = Field(default=None, max_length=1000)


class RescheduleProposalResponse(BaseModel):
    proposal_id: int
    proposed_date: date
    proposed_time: str
    message: str | None = None
    status: str

    @classmethod
    def from_model(cls, proposal: RescheduleProposal) -> "RescheduleProposalResponse":
        return cls(
            proposal_id=proposal.id,
            proposed_date=proposal.proposed_date,
            proposed_time=format_minute_of_day(proposal.proposed_minute),
            message=proposal.message,
            status=proposal.status,
        )


class StatusUpdate(BaseModel):
    status: str


class BookingResponse(BaseModel):
    booking_id: int
    user_id: int
    shop_id: int
    vehicle_id: int
    service_id: int | None = None
    quote_id: int | None = None
    slot_id: int
    method: str
    status: str
    scheduled_date: date
    scheduled_at: datetime
    price: PriceBreakdownResponse
    deposit_paid: bool
    refund_status: str | None = None
    notes: str | None = None
    reschedule_proposal: RescheduleProposalResponse | None = None

    @classmethod
    def from_model(cls, booking: Booking) -> "BookingResponse":
        proposal = booking.pending_proposal
        return cls(
            booking_id=booking.id,
            user_id=booking.user_id,
            shop_id=booking.shop_id,
            vehicle_id=booking.vehicle_id,
            service_id=booking.service_id,
            quote_id=booking.quote_id,
            slot_id=booking.slot_id,
            method=booking.method,
            status=booking.status,
            scheduled_date=booking.scheduled_date,
            scheduled_at=as_utc(booking.scheduled_at),
            price=PriceBreakdownResponse(
                base=booking.base_price,
                surcharge=booking.surcharge,
                tax=booking.tax,
                platform_fee=booking.platform_fee,
                total=booking.total,
                deposit=booking.deposit,
                remaining=booking.remaining,
            ),
            deposit_paid=booking.deposit_paid,
            refund_status=booking.refund_status,
            notes=booking.notes,
            reschedule_proposal=(
                RescheduleProposalResponse.from_model(proposal) if proposal is not None else None
            ),
        )


class CancelResponse(BaseModel):
    message: str
    refund_status: str
    booking: BookingResponse
