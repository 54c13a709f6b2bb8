# backend/hunt_engine/services/booking_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..auth import Principal
from ..db import unit_of_work
from ..domain import pricing_match
from ..domain.audit import audit_write, contract_snapshot
from ..domain.booking_dates import as_date, derive_required_days, require_valid_span
from ..domain.contract_fsm import ContractEvent, ContractStatus, is_editable, parse_status
from ..domain.errors import StateError, ValidationError
from ..domain.fees import AddonKind, FeeBreakdown, normalize_addon_selections, parse_addon_kind
from ..models import Hunt, HuntContract
from .contract_lifecycle import apply_event, ensure_contract_for_hunt, find_live_contract, render_content
from .hunt_booking import completion_data_for_hunt, freeze_completion, quote_for_selection, write_addons
from .hunt_codes import resolve_season_window
from .ownership import must_get_hunt, must_get_pricing_item, outfitter_catalog

log = logging.getLogger(__name__)

_DAY_START = time(0, 0, 0)
_DAY_END = time(23, 59, 59)


@dataclass
class BookingResult:
    hunt: Hunt
    contract: HuntContract
    breakdown: FeeBreakdown
    days: int
    contract_created: bool


def _check_quantities(raw: Optional[Mapping[Any, Any]]) -> dict[AddonKind, int]:
    for k, v in (raw or {}).items():
        kind = parse_addon_kind(k)
        try:
            qty = int(v or 0)
        except (TypeError, ValueError):
            raise ValidationError(f"quantity for '{kind.value}' must be a whole number", code="InvalidQuantity")
        if qty < 0:
            raise ValidationError(
                f"quantity for '{kind.value}' must be zero or more",
                code="InvalidQuantity",
                details={"addon": kind.value, "quantity": qty},
            )
    return normalize_addon_selections(raw)


def _check_plan_for_hunt(db: Session, hunt: Hunt, pricing_item_id: int):
    plan = must_get_pricing_item(db, outfitter_id=hunt.outfitter_id, pricing_item_id=pricing_item_id)
    legal = pricing_match.guide_fee_plans(outfitter_catalog(db, outfitter_id=hunt.outfitter_id), hunt.species, hunt.weapon)
    if plan.id not in {p.id for p in legal}:
        raise ValidationError(
            f"'{plan.title}' is not a guide-fee plan offered for this hunt",
            code="PlanNotForHunt",
            details={"legal_pricing_item_ids": [p.id for p in legal]},
        )
    return plan


def _advance_after_booking(db: Session, contract: HuntContract, actor_user_id: Optional[int]) -> None:
    st = parse_status(contract.status)
    if st is ContractStatus.DRAFT:
        apply_event(db, contract, ContractEvent.BOOKING_COMPLETED, actor_user_id=actor_user_id)
    elif st is ContractStatus.PENDING_CLIENT_COMPLETION:
        apply_event(db, contract, ContractEvent.CLIENT_SUBMIT, actor_user_id=actor_user_id)
    else:
        # already waiting on the admin; only the frozen selection changed
        audit_write(
            db,
            outfitter_id=contract.outfitter_id,
            actor_user_id=actor_user_id,
            action="contract.completion_refreshed",
            entity_type="hunt_contract",
            entity_id=contract.id,
            after=contract_snapshot(contract),
        )


def complete_booking(
    db: Session,
    *,
    principal: Principal,
    hunt_id: int,
    pricing_item_id: int,
    start_date: Any,
    end_date: Any,
    addons: Optional[Mapping[Any, Any]] = None,
    client_name: Optional[str] = None,
) -> BookingResult:
    """
    The client picks a plan, add-ons and dates for a hunt.

    Everything is validated before anything is written. The hunt is saved
    first, then the contract is created (or reused) and moved to
    pending_admin_review with the selection frozen onto it. Repeating the
    call with the same input is harmless.
    """
    hunt = must_get_hunt(db, principal=principal, hunt_id=hunt_id)

    existing = find_live_contract(db, outfitter_id=hunt.outfitter_id, hunt_id=hunt.id)
    if existing is not None and not is_editable(existing.status):
        raise StateError(
            f"the contract for this hunt is locked (status '{existing.status}')",
            code="ContractLocked",
            details={"contract_id": existing.id, "status": existing.status},
        )

    plan = _check_plan_for_hunt(db, hunt, pricing_item_id)
    selections = _check_quantities(addons)

    window = resolve_season_window(db, hunt)
    required = derive_required_days(plan, selections.get(AddonKind.EXTRA_DAYS, 0))
    days = require_valid_span(start_date, end_date, window, required)

    breakdown = quote_for_selection(db, outfitter_id=hunt.outfitter_id, plan=plan, addons=selections)

    s = as_date(start_date)
    e = as_date(end_date)
    with unit_of_work(db):
        hunt.start_time = datetime.combine(s, _DAY_START)
        hunt.end_time = datetime.combine(e, _DAY_END)
        hunt.selected_pricing_item = plan
        hunt.selected_pricing_item_id = plan.id
        write_addons(hunt, selections)
        db.add(hunt)

    contract, created = ensure_contract_for_hunt(
        db,
        outfitter_id=hunt.outfitter_id,
        hunt_id=hunt.id,
        actor_user_id=principal.user_id,
    )
    if not is_editable(contract.status):
        raise StateError(
            f"the contract for this hunt is locked (status '{contract.status}')",
            code="ContractLocked",
            details={"contract_id": contract.id, "status": contract.status},
        )

    with unit_of_work(db):
        # a contract created just now was already frozen and advanced
        if not created or parse_status(contract.status) is ContractStatus.DRAFT:
            freeze_completion(contract, completion_data_for_hunt(hunt, breakdown))
            _advance_after_booking(db, contract, principal.user_id)
        if client_name:
            contract.client_name = client_name
        contract.content = render_content(db, contract)

    log.info(
        "booking_completed",
        extra={"hunt_id": hunt.id, "contract_id": contract.id, "outfitter_id": hunt.outfitter_id},
    )
    return BookingResult(hunt=hunt, contract=contract, breakdown=breakdown, days=days, contract_created=created)


def booking_options(db: Session, *, principal: Principal, hunt_id: int) -> dict[str, Any]:
    """Plans, add-ons and the season window a client can choose from for a hunt."""
    hunt = must_get_hunt(db, principal=principal, hunt_id=hunt_id)
    window = resolve_season_window(db, hunt)
    if window is not None:
        with unit_of_work(db):
            db.add(hunt)

    catalog = outfitter_catalog(db, outfitter_id=hunt.outfitter_id)
    return {
        "hunt": hunt,
        "window": window,
        "plans": pricing_match.guide_fee_plans(catalog, hunt.species, hunt.weapon),
        "addons": pricing_match.addon_items(catalog, hunt.species, hunt.weapon),
    }
