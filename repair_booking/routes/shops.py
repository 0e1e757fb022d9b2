"""Shop availability and weekly schedule routes."""

from datetime import date, datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status as http_status
from sqlalchemy.orm import Session

from repair_booking.core.identity import get_current_user_id
from repair_booking.db.session import get_db
from repair_booking.schemas.booking import (
    SlotAvailabilityItem,
    TimeSlotCreate,
    TimeSlotResponse,
    WeeklyScheduleItem,
)
from repair_booking.schemas.common import APIResponse
from repair_booking.scheduling.slot_time import format_minute_of_day, parse_time_of_day
from repair_booking.services.availability_service import list_availability
from repair_booking.services.schedule_service import (
    add_time_slot,
    list_weekly_schedule,
    remove_time_slot,
)

router = APIRouter(prefix="/shops", tags=["shops"])


@router.get("/{shop_id}/availability", response_model=APIResponse[List[SlotAvailabilityItem]])
def shop_availability(
    shop_id: int,
    target_date: date = Query(alias="date", description="Date in YYYY-MM-DD format"),
    db: Session = Depends(get_db),
):
    slots = list_availability(db=db, shop_id=shop_id, target_date=target_date)
    return APIResponse.ok(
        [
            SlotAvailabilityItem(
                slot_id=slot.slot_id,
                display_start=slot.display_start,
                display_end=slot.display_end,
                is_booked=slot.is_booked,
            )
            for slot in slots
        ],
    )


@router.get("/{shop_id}/availability/week", response_model=APIResponse[List[WeeklyScheduleItem]])
def shop_weekly_schedule(
    shop_id: int,
    start_date: date | None = Query(default=None, description="First day, YYYY-MM-DD; defaults to today (UTC)"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    schedule = list_weekly_schedule(
        db=db,
        shop_id=shop_id,
        requested_by=user_id,
        start_date=start_date or datetime.now(timezone.utc).date(),
    )
    return APIResponse.ok(
        [WeeklyScheduleItem.model_validate(entry, from_attributes=True) for entry in schedule],
    )


@router.post(
    "/{shop_id}/slots",
    response_model=APIResponse[TimeSlotResponse],
    status_code=http_status.HTTP_201_CREATED,
)
def create_slot(
    shop_id: int,
    payload: TimeSlotCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    try:
        start_minute = parse_time_of_day(payload.start_time)
        end_minute = parse_time_of_day(payload.end_time) if payload.end_time else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    slot = add_time_slot(
        db=db,
        shop_id=shop_id,
        requested_by=user_id,
        weekday=payload.weekday,
        start=start_minute,
        end=end_minute,
    )
    return APIResponse.ok(
        TimeSlotResponse(
            slot_id=slot.id,
            weekday=slot.weekday,
            start_time=format_minute_of_day(slot.start_minute),
            end_time=format_minute_of_day(slot.end_minute) if slot.end_minute is not None else None,
        ),
    )


@router.delete("/{shop_id}/slots/{slot_id}", response_model=APIResponse[dict])
def delete_slot(
    shop_id: int,
    slot_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    remove_time_slot(db=db, shop_id=shop_id, requested_by=user_id, slot_id=slot_id)
    return APIResponse.ok({"slot_id": slot_id, "deleted": True})
