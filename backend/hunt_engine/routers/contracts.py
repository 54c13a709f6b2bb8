# backend/hunt_engine/routers/contracts.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin
from ..clients.signature_service import SignatureService, get_signature_service
from ..db import get_db
from ..models import HuntContract
from ..schemas import (
    CancelIn,
    ContractCreateIn,
    ContractOut,
    EnsureContractIn,
    LinkHuntIn,
    ReviewIn,
    SubmitCompletionIn,
)
from ..services import contract_lifecycle as lifecycle
from ..services.ownership import must_get_contract

router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("", response_model=list[ContractOut])
def list_contracts(
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    q = select(HuntContract).where(HuntContract.outfitter_id == p.outfitter_id)
    if p.role == "client":
        q = q.where(HuntContract.client_email == p.email)
    if status:
        q = q.where(HuntContract.status == status)
    rows = db.scalars(q.order_by(desc(HuntContract.id)).limit(limit)).all()
    return [lifecycle.contract_view(c) for c in rows]


@router.post("", response_model=ContractOut)
def create_contract(payload: ContractCreateIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    c = lifecycle.create_draft_contract(
        db,
        principal=p,
        client_email=payload.client_email,
        hunt_id=payload.hunt_id,
        client_name=payload.client_name,
    )
    return lifecycle.contract_view(c)


@router.post("/ensure", response_model=ContractOut)
def ensure_contract(payload: EnsureContractIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    c, _created = lifecycle.ensure_contract_for_hunt(
        db,
        outfitter_id=p.outfitter_id,
        hunt_id=payload.hunt_id,
        actor_user_id=p.user_id,
    )
    return lifecycle.contract_view(c)


@router.get("/{contract_id}", response_model=ContractOut)
def get_contract(contract_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return lifecycle.contract_view(must_get_contract(db, principal=p, contract_id=contract_id))


@router.post("/{contract_id}/link-hunt", response_model=ContractOut)
def link_hunt(contract_id: int, payload: LinkHuntIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    c = lifecycle.link_hunt(db, principal=p, contract_id=contract_id, hunt_id=payload.hunt_id)
    return lifecycle.contract_view(c)


@router.post("/{contract_id}/open", response_model=ContractOut)
def open_for_client(contract_id: int, db: Session = Depends(get_db), p=Depends(require_admin)):
    return lifecycle.contract_view(lifecycle.open_for_client(db, principal=p, contract_id=contract_id))


@router.post("/{contract_id}/submit", response_model=ContractOut)
def submit_completion(
    contract_id: int,
    payload: SubmitCompletionIn,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    c = lifecycle.submit_client_completion(db, principal=p, contract_id=contract_id, client_name=payload.client_name)
    return lifecycle.contract_view(c)


@router.post("/{contract_id}/review", response_model=ContractOut)
def review(contract_id: int, payload: ReviewIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    c = lifecycle.review_contract(db, principal=p, contract_id=contract_id, action=payload.action, notes=payload.notes)
    return lifecycle.contract_view(c)


@router.post("/{contract_id}/send-for-signature", response_model=ContractOut)
def send_for_signature(
    contract_id: int,
    db: Session = Depends(get_db),
    p=Depends(require_admin),
    signer: SignatureService = Depends(get_signature_service),
):
    c = lifecycle.send_for_signature(db, principal=p, contract_id=contract_id, signer=signer)
    return lifecycle.contract_view(c)


@router.post("/{contract_id}/cancel", response_model=ContractOut)
def cancel(contract_id: int, payload: CancelIn, db: Session = Depends(get_db), p=Depends(require_admin)):
    c = lifecycle.cancel_contract(db, principal=p, contract_id=contract_id, reason=payload.reason)
    return lifecycle.contract_view(c)
