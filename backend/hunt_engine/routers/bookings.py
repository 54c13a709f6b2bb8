# backend/hunt_engine/routers/bookings.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import BookingOptionsOut, CompleteBookingIn, CompleteBookingOut
from ..services.booking_service import booking_options, complete_booking

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/hunts/{hunt_id}/options", response_model=BookingOptionsOut)
def get_booking_options(hunt_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    opts = booking_options(db, principal=p, hunt_id=hunt_id)
    win = opts["window"]
    return {
        "hunt": opts["hunt"],
        "window_start": win.start if win else None,
        "window_end": win.end if win else None,
        "plans": opts["plans"],
        "addons": opts["addons"],
    }


@router.post("/hunts/{hunt_id}/complete", response_model=CompleteBookingOut)
def post_complete_booking(
    hunt_id: int,
    payload: CompleteBookingIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    res = complete_booking(
        db,
        principal=p,
        hunt_id=hunt_id,
        pricing_item_id=payload.pricing_item_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        addons=payload.addons,
        client_name=payload.client_name,
    )
    return {
        "hunt_id": res.hunt.id,
        "contract_id": res.contract.id,
        "contract_status": res.contract.status,
        "contract_created": res.contract_created,
        "days": res.days,
        "quote": res.breakdown.as_dict(),
    }
