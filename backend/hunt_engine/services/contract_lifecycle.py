# backend/hunt_engine/services/contract_lifecycle.py
"""
Persistence side of the hunt contract lifecycle.

Status changes go through domain.contract_fsm.transition(); this module
gathers the guard facts, persists the result and writes the audit row in
the same commit.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..clients.signature_service import SignatureService, SignatureStatus
from ..db import unit_of_work
from ..domain.audit import audit_write, contract_snapshot, payment_snapshot
from ..domain.contract_document import render_contract
from ..domain.contract_fsm import (
    AWAITING_SIGNATURE_STATES,
    ContractEvent,
    ContractStatus,
    TransitionGuards,
    is_editable,
    parse_status,
    transition,
)
from ..domain.errors import AuthorizationError, StateError, ValidationError
from ..models import ContractTemplate, Hunt, HuntContract, Outfitter, PaymentItem
from . import guide_fee_bill
from .contract_locks import lock_contract
from .hunt_booking import (
    completion_data_for_hunt,
    completion_has_plan,
    freeze_completion,
    hunt_booking_is_complete,
    quote_for_hunt,
    read_completion,
)
from .ownership import must_get_contract, must_get_hunt

log = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.utcnow()


def _norm_email(v: Optional[str]) -> str:
    return (v or "").strip().lower()


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------
def find_live_contract(db: Session, *, outfitter_id: int, hunt_id: int) -> Optional[HuntContract]:
    return db.scalar(
        select(HuntContract)
        .where(
            HuntContract.outfitter_id == int(outfitter_id),
            HuntContract.hunt_id == int(hunt_id),
            HuntContract.status != ContractStatus.CANCELLED.value,
        )
        .order_by(HuntContract.id)
    )


def active_template(db: Session, *, outfitter_id: int) -> Optional[ContractTemplate]:
    return db.scalar(
        select(ContractTemplate)
        .where(
            ContractTemplate.outfitter_id == int(outfitter_id),
            ContractTemplate.template_type == "hunt_contract",
            ContractTemplate.is_active.is_(True),
        )
        .order_by(ContractTemplate.id.desc())
    )


def _outfitter_name(db: Session, outfitter_id: int) -> str:
    row = db.get(Outfitter, int(outfitter_id))
    return row.name if row else "Outfitter"


def render_content(db: Session, contract: HuntContract) -> str:
    hunt = contract.hunt
    tpl = db.get(ContractTemplate, contract.template_id) if contract.template_id else None
    breakdown = quote_for_hunt(db, hunt) if hunt is not None else None
    return render_contract(
        template_content=tpl.content if tpl else None,
        hunt=hunt,
        client_name=contract.client_name or contract.client_email,
        client_email=contract.client_email,
        outfitter_name=_outfitter_name(db, contract.outfitter_id),
        breakdown=breakdown,
        generated_on=_now().date(),
    )


def guards_for(db: Session, contract: HuntContract, **overrides: bool) -> TransitionGuards:
    hunt = contract.hunt
    facts: dict[str, bool] = {
        "template_exists": active_template(db, outfitter_id=contract.outfitter_id) is not None,
        "hunt_linked": hunt is not None,
        "booking_complete": hunt is not None and hunt_booking_is_complete(db, hunt),
        "has_plan_selection": completion_has_plan(contract),
        "signature_sent": bool(contract.signature_tracking_ref),
        "client_signature": contract.client_signed_at is not None,
        "admin_signature": contract.admin_signed_at is not None,
    }
    facts.update(overrides)
    return TransitionGuards(**facts)


def apply_event(
    db: Session,
    contract: HuntContract,
    event: ContractEvent,
    *,
    actor_user_id: Optional[int],
    guards: Optional[TransitionGuards] = None,
) -> ContractStatus:
    """Moves the contract and queues the audit row. Caller commits."""
    before = contract_snapshot(contract)
    nxt = transition(contract.status, event, guards if guards is not None else guards_for(db, contract))
    contract.status = nxt.value
    contract.updated_at = _now()
    db.add(contract)
    audit_write(
        db,
        outfitter_id=contract.outfitter_id,
        actor_user_id=actor_user_id,
        action=f"contract.{event.value}",
        entity_type="hunt_contract",
        entity_id=contract.id,
        before=before,
        after=contract_snapshot(contract),
    )
    log.info(
        "contract_transition",
        extra={"contract_id": contract.id, "outfitter_id": contract.outfitter_id, "hunt_id": contract.hunt_id},
    )
    return nxt


# -----------------------------------------------------------------------------
# Creation
# -----------------------------------------------------------------------------
def _new_contract(db: Session, *, outfitter_id: int, client_email: str, hunt: Optional[Hunt]) -> HuntContract:
    tpl = active_template(db, outfitter_id=outfitter_id)
    c = HuntContract(
        outfitter_id=int(outfitter_id),
        hunt_id=hunt.id if hunt is not None else None,
        template_id=tpl.id if tpl else None,
        client_email=_norm_email(client_email),
        status=ContractStatus.DRAFT.value,
        created_at=_now(),
        updated_at=_now(),
    )
    c.hunt = hunt
    c.content = render_content(db, c)
    return c


def ensure_contract_for_hunt(
    db: Session,
    *,
    outfitter_id: int,
    hunt_id: int,
    actor_user_id: Optional[int] = None,
) -> tuple[HuntContract, bool]:
    """
    Returns (contract, created). Safe to call repeatedly and concurrently.

    A new contract for a hunt whose booking is already complete is frozen
    and moved to pending_admin_review in the same commit.

    The partial unique index on hunt_contracts(hunt_id) for non-cancelled
    rows decides races: the loser's insert fails, it rolls back and returns
    the winner's row.
    """
    existing = find_live_contract(db, outfitter_id=outfitter_id, hunt_id=hunt_id)
    if existing is not None:
        return existing, False

    hunt = db.scalar(select(Hunt).where(Hunt.id == int(hunt_id), Hunt.outfitter_id == int(outfitter_id)))
    if hunt is None:
        raise AuthorizationError("hunt")
    if not hunt.client_email:
        raise ValidationError("the hunt has no client assigned", code="ClientRequired")

    c = _new_contract(db, outfitter_id=outfitter_id, client_email=hunt.client_email, hunt=hunt)
    try:
        with unit_of_work(db):
            db.add(c)
            db.flush()
            audit_write(
                db,
                outfitter_id=outfitter_id,
                actor_user_id=actor_user_id,
                action="contract.created",
                entity_type="hunt_contract",
                entity_id=c.id,
                after=contract_snapshot(c),
            )
            if hunt_booking_is_complete(db, hunt):
                freeze_completion(c, completion_data_for_hunt(hunt, quote_for_hunt(db, hunt)))
                apply_event(db, c, ContractEvent.BOOKING_COMPLETED, actor_user_id=actor_user_id)
    except IntegrityError:
        winner = find_live_contract(db, outfitter_id=outfitter_id, hunt_id=hunt_id)
        if winner is None:
            raise
        log.info("contract_create_race_lost", extra={"contract_id": winner.id, "hunt_id": hunt_id})
        return winner, False

    log.info("contract_created", extra={"contract_id": c.id, "outfitter_id": outfitter_id, "hunt_id": hunt_id})
    return c, True


def create_draft_contract(
    db: Session,
    *,
    principal: Principal,
    client_email: str,
    hunt_id: Optional[int] = None,
    client_name: Optional[str] = None,
) -> HuntContract:
    email = _norm_email(client_email)
    if not email or "@" not in email:
        raise ValidationError("a valid client email is required", code="ClientRequired")

    hunt: Optional[Hunt] = None
    if hunt_id is not None:
        hunt = must_get_hunt(db, principal=principal, hunt_id=hunt_id)
        _check_same_client(hunt, email)
        if find_live_contract(db, outfitter_id=principal.outfitter_id, hunt_id=hunt.id) is not None:
            raise StateError("this hunt already has a contract", code="ContractExists", details={"hunt_id": hunt.id})

    c = _new_contract(db, outfitter_id=principal.outfitter_id, client_email=email, hunt=hunt)
    c.client_name = client_name
    try:
        with unit_of_work(db):
            db.add(c)
            db.flush()
            audit_write(
                db,
                outfitter_id=principal.outfitter_id,
                actor_user_id=principal.user_id,
                action="contract.created",
                entity_type="hunt_contract",
                entity_id=c.id,
                after=contract_snapshot(c),
            )
    except IntegrityError:
        raise StateError("this hunt already has a contract", code="ContractExists", details={"hunt_id": hunt_id})
    return c


def _check_same_client(hunt: Hunt, email: str) -> None:
    if hunt.client_email and _norm_email(hunt.client_email) != email:
        raise ValidationError(
            "the hunt is assigned to a different client",
            code="ClientMismatch",
            details={"hunt_client_email": hunt.client_email},
        )


def link_hunt(db: Session, *, principal: Principal, contract_id: int, hunt_id: int) -> HuntContract:
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    hunt = must_get_hunt(db, principal=principal, hunt_id=hunt_id)

    if c.hunt_id == hunt.id:
        return c
    if c.hunt_id is not None:
        raise StateError("contract is already linked to another hunt", code="AlreadyLinked", details={"hunt_id": c.hunt_id})
    if not is_editable(c.status):
        raise StateError(f"cannot link a hunt to a contract in status '{c.status}'", code="ContractLocked")
    _check_same_client(hunt, _norm_email(c.client_email))

    before = contract_snapshot(c)
    try:
        with unit_of_work(db):
            if not hunt.client_email:
                hunt.client_email = c.client_email
            c.hunt_id = hunt.id
            c.hunt = hunt
            c.content = render_content(db, c)
            c.updated_at = _now()
            db.add(c)
            audit_write(
                db,
                outfitter_id=c.outfitter_id,
                actor_user_id=principal.user_id,
                action="contract.link_hunt",
                entity_type="hunt_contract",
                entity_id=c.id,
                before=before,
                after=contract_snapshot(c),
            )
    except IntegrityError:
        raise StateError("this hunt already has a contract", code="ContractExists", details={"hunt_id": hunt.id})
    return c


# -----------------------------------------------------------------------------
# Client / admin workflow
# -----------------------------------------------------------------------------
def open_for_client(db: Session, *, principal: Principal, contract_id: int) -> HuntContract:
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    with unit_of_work(db):
        apply_event(db, c, ContractEvent.OPEN_FOR_CLIENT, actor_user_id=principal.user_id)
    return c


def submit_client_completion(
    db: Session,
    *,
    principal: Principal,
    contract_id: int,
    client_name: Optional[str] = None,
) -> HuntContract:
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    if c.hunt is None:
        raise ValidationError("the contract must be linked to a hunt", code="HuntNotLinked")

    # validate the move before freezing anything onto the row
    transition(c.status, ContractEvent.CLIENT_SUBMIT, guards_for(db, c, has_plan_selection=c.hunt.selected_pricing_item_id is not None))

    breakdown = quote_for_hunt(db, c.hunt)
    with unit_of_work(db):
        freeze_completion(c, completion_data_for_hunt(c.hunt, breakdown))
        if client_name:
            c.client_name = client_name
        c.content = render_content(db, c)
        apply_event(db, c, ContractEvent.CLIENT_SUBMIT, actor_user_id=principal.user_id)
    return c


def review_contract(
    db: Session,
    *,
    principal: Principal,
    contract_id: int,
    action: str,
    notes: Optional[str] = None,
) -> HuntContract:
    act = (action or "").strip().lower()
    if act not in ("approve", "reject"):
        raise ValidationError("action must be one of: approve, reject", code="InvalidAction", details={"legal_actions": ["approve", "reject"]})

    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    event = ContractEvent.APPROVE if act == "approve" else ContractEvent.REJECT
    with unit_of_work(db):
        apply_event(db, c, event, actor_user_id=principal.user_id)
        c.admin_reviewed_at = _now()
        c.admin_reviewed_by = principal.email
        c.admin_review_notes = notes
        if event is ContractEvent.REJECT:
            c.client_completion_json = None
            c.client_completed_at = None
    return c


def send_for_signature(
    db: Session,
    *,
    principal: Principal,
    contract_id: int,
    signer: SignatureService,
) -> HuntContract:
    """
    The signature service is called first. If it fails nothing is written
    and the CollaboratorError reaches the caller; the contract stays
    ready_for_signature and the call can simply be repeated.
    """
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    transition(c.status, ContractEvent.SEND_FOR_SIGNATURE, TransitionGuards(signature_sent=True))

    envelope = signer.send(c.id)

    with unit_of_work(db):
        c.signature_tracking_ref = envelope.tracking_ref
        c.signature_sent_at = _now()
        apply_event(db, c, ContractEvent.SEND_FOR_SIGNATURE, actor_user_id=principal.user_id)
    log.info("contract_sent_for_signature", extra={"contract_id": c.id, "tracking_ref": envelope.tracking_ref})
    return c


def apply_signature_status(
    db: Session,
    contract: HuntContract,
    status: SignatureStatus,
    *,
    actor_user_id: Optional[int] = None,
) -> HuntContract:
    """
    Advances a contract awaiting signatures as far as the reported status
    allows. Repeated or stale notifications are no-ops.
    """
    st = parse_status(contract.status)
    if st not in AWAITING_SIGNATURE_STATES:
        return contract

    with unit_of_work(db):
        if st is ContractStatus.SENT_TO_SIGNATURE_SERVICE and status.client_signed:
            contract.client_signed_at = contract.client_signed_at or _now()
            st = apply_event(db, contract, ContractEvent.CLIENT_SIGNED, actor_user_id=actor_user_id)
        if st is ContractStatus.CLIENT_SIGNED and status.admin_signed:
            contract.admin_signed_at = contract.admin_signed_at or _now()
            st = apply_event(db, contract, ContractEvent.ADMIN_SIGNED, actor_user_id=actor_user_id)

    if st is ContractStatus.FULLY_EXECUTED:
        try:
            guide_fee_bill.create_bill_if_needed(db, contract=contract, actor_user_id=actor_user_id)
        except ValidationError as e:
            # the contract is executed either way; the bill is built on first fetch instead
            log.warning(
                "guide_fee_bill_deferred",
                extra={"contract_id": contract.id, "outfitter_id": contract.outfitter_id, "error": e.code},
            )
    return contract


def find_by_tracking_ref(db: Session, tracking_ref: str) -> Optional[HuntContract]:
    return db.scalar(select(HuntContract).where(HuntContract.signature_tracking_ref == str(tracking_ref)))


def contracts_awaiting_signature(db: Session, *, limit: int = 200) -> list[HuntContract]:
    states = [s.value for s in AWAITING_SIGNATURE_STATES]
    return list(
        db.scalars(
            select(HuntContract)
            .where(HuntContract.status.in_(states), HuntContract.signature_tracking_ref.is_not(None))
            .order_by(HuntContract.signature_sent_at)
            .limit(int(limit))
        ).all()
    )


# -----------------------------------------------------------------------------
# Cancellation
# -----------------------------------------------------------------------------
def cancel_contract(db: Session, *, principal: Principal, contract_id: int, reason: Optional[str] = None) -> HuntContract:
    """
    Cancels the contract and every pending payment item in one commit.

    Items are read under the contract lock so a bill created concurrently
    is cancelled too rather than left live on a cancelled contract.
    """
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    if parse_status(c.status) is ContractStatus.CANCELLED:
        return c

    with unit_of_work(db):
        c = lock_contract(db, contract_id=c.id)
        if parse_status(c.status) is ContractStatus.CANCELLED:
            return c

        items = list(
            db.scalars(
                select(PaymentItem)
                .where(PaymentItem.contract_id == c.id, PaymentItem.status == "pending")
                .execution_options(populate_existing=True)
            ).all()
        )
        apply_event(db, c, ContractEvent.CANCEL, actor_user_id=principal.user_id)
        c.cancelled_at = _now()
        if reason:
            c.admin_review_notes = reason
        for it in items:
            before = payment_snapshot(it)
            it.status = "cancelled"
            it.updated_at = _now()
            db.add(it)
            audit_write(
                db,
                outfitter_id=c.outfitter_id,
                actor_user_id=principal.user_id,
                action="payment_item.cancelled",
                entity_type="payment_item",
                entity_id=it.id,
                before=before,
                after=payment_snapshot(it),
            )
    log.info("contract_cancelled", extra={"contract_id": c.id, "outfitter_id": c.outfitter_id})
    return c


def contract_view(c: HuntContract) -> dict[str, Any]:
    return {
        "id": c.id,
        "hunt_id": c.hunt_id,
        "client_email": c.client_email,
        "client_name": c.client_name,
        "status": c.status,
        "content": c.content,
        "client_completion": read_completion(c) or None,
        "signature_tracking_ref": c.signature_tracking_ref,
        "created_at": c.created_at,
        "client_signed_at": c.client_signed_at,
        "admin_signed_at": c.admin_signed_at,
        "cancelled_at": c.cancelled_at,
    }
