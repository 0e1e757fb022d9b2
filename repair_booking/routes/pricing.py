"""Price preview for a prospective booking."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from repair_booking.db.session import get_db
from repair_booking.schemas.booking import PriceBreakdownResponse, PricePreviewRequest
from repair_booking.schemas.common import APIResponse
from repair_booking.services.booking_service import price_reservation

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/preview", response_model=APIResponse[PriceBreakdownResponse])
def preview_price(payload: PricePreviewRequest, db: Session = Depends(get_db)):
    breakdown = price_reservation(
        db=db,
        shop_id=payload.shop_id,
        method=payload.method.upper(),
        service_id=payload.service_id,
        quote_id=payload.quote_id,
    )
    return APIResponse.ok(PriceBreakdownResponse.from_breakdown(breakdown))
