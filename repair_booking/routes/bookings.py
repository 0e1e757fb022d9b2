from fastapi import APIRouter, Depends, status as http_status
from sqlalchemy.orm import Session

from repair_booking.core.identity import get_current_user_id
from repair_booking.db.session import get_db
from repair_booking.services.booking_service import (
    get_booking_for_party,
    list_bookings,
    record_deposit_payment,
    reserve_booking,
    update_booking_status,
)
from repair_booking.services.cancellation_service import cancel_booking
from repair_booking.services.reschedule_service import (
    accept_reschedule,
    decline_reschedule,
    propose_reschedule,
)

from repair_booking.schemas.common import APIResponse

from typing import List
from repair_booking.schemas.booking import (
    BookingCreate,
    BookingResponse,
    CancelResponse,
    RescheduleProposalRequest,
    RescheduleProposalResponse,
    StatusUpdate,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=APIResponse[BookingResponse],
    status_code=http_status.HTTP_201_CREATED,
)
def create_booking(
    payload: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = reserve_booking(
        db=db,
        user_id=user_id,
        shop_id=payload.shop_id,
        slot_id=payload.slot_id,
        vehicle_id=payload.vehicle_id,
        method=payload.method.upper(),
        scheduled_date=payload.scheduled_date,
        service_id=payload.service_id,
        quote_id=payload.quote_id,
        notes=payload.notes,
    )
    return APIResponse.ok(BookingResponse.from_model(booking))


@router.get("", response_model=APIResponse[List[BookingResponse]])
def my_bookings(
    status: str | None = None,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    bookings = list_bookings(db=db, requested_by=user_id, status=status)
    return APIResponse.ok(
        [BookingResponse.from_model(booking) for booking in bookings],
    )


@router.get("/{booking_id}", response_model=APIResponse[BookingResponse])
def booking_detail(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = get_booking_for_party(db=db, booking_id=booking_id, requested_by=user_id)
    return APIResponse.ok(BookingResponse.from_model(booking))


@router.patch("/{booking_id}/status", response_model=APIResponse[BookingResponse])
def update_status(
    booking_id: int,
    payload: StatusUpdate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = update_booking_status(
        db=db,
        booking_id=booking_id,
        new_status=payload.status.upper(),
        requested_by=user_id,
    )
    return APIResponse.ok(BookingResponse.from_model(booking))


@router.post("/{booking_id}/deposit", response_model=APIResponse[BookingResponse])
def pay_deposit(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = record_deposit_payment(db=db, booking_id=booking_id, requested_by=user_id)
    return APIResponse.ok(BookingResponse.from_model(booking))


@router.put("/{booking_id}/cancel", response_model=APIResponse[CancelResponse])
def cancel(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = cancel_booking(db=db, booking_id=booking_id, requested_by=user_id)
    return APIResponse.ok(
        CancelResponse(
            message=result.message,
            refund_status=result.refund_status,
            booking=BookingResponse.from_model(result.booking),
        ),
    )


@router.post(
    "/{booking_id}/reschedule/proposal",
    response_model=APIResponse[RescheduleProposalResponse],
    status_code=http_status.HTTP_201_CREATED,
)
def propose(
    booking_id: int,
    payload: RescheduleProposalRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    proposal = propose_reschedule(
        db=db,
        booking_id=booking_id,
        requested_by=user_id,
        new_date=payload.new_date,
        new_time=payload.new_time,
        message=payload.message,
    )
    return APIResponse.ok(RescheduleProposalResponse.from_model(proposal))


@router.put("/{booking_id}/reschedule", response_model=APIResponse[BookingResponse])
def accept_proposal(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = accept_reschedule(db=db, booking_id=booking_id, requested_by=user_id)
    return APIResponse.ok(BookingResponse.from_model(booking))


@router.put("/{booking_id}/reschedule/decline", response_model=APIResponse[BookingResponse])
def decline_proposal(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    booking = decline_reschedule(db=db, booking_id=booking_id, requested_by=user_id)
    return APIResponse.ok(BookingResponse.from_model(booking))
