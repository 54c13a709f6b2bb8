# backend/hunt_engine/routers/bills.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..db import get_db
from ..schemas import BillOut, PaymentItemOut, PaymentPlanIn, RecordPaymentIn
from ..services import guide_fee_bill

router = APIRouter(tags=["bills"])


@router.get("/contracts/{contract_id}/bill", response_model=BillOut)
def get_bill(contract_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return guide_fee_bill.get_or_create_bill(db, principal=p, contract_id=contract_id).as_dict()


@router.post("/contracts/{contract_id}/payment-plan", response_model=BillOut)
def create_payment_plan(
    contract_id: int,
    payload: PaymentPlanIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    bill = guide_fee_bill.create_payment_plan(
        db,
        principal=p,
        contract_id=contract_id,
        installments=payload.installments,
        first_due_date=payload.first_due_date,
    )
    return bill.as_dict()


@router.post("/payment-items/{payment_item_id}/payments", response_model=PaymentItemOut)
def record_payment(
    payment_item_id: int,
    payload: RecordPaymentIn,
    db: Session = Depends(get_db),
    p=Depends(require_admin),
):
    return guide_fee_bill.record_payment(
        db,
        principal=p,
        payment_item_id=payment_item_id,
        amount_cents=payload.amount_cents,
    )
