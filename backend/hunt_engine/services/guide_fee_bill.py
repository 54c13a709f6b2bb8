# backend/hunt_engine/services/guide_fee_bill.py
"""
Guide-fee bill: what a client owes on an executed contract.

A contract has at most one live billing arrangement: either a single
full-amount `guide_fee` item or a set of `guide_fee_installment` items.
Partial unique indexes on payment_items back that up at the database.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..db import unit_of_work
from ..domain import installments as planner
from ..domain.audit import audit_write, payment_snapshot
from ..domain.contract_fsm import ContractStatus, parse_status
from ..domain.errors import StateError, ValidationError
from ..domain.fees import FeeBreakdown, normalize_addon_selections
from ..models import HuntContract, PaymentItem, PricingItem
from .contract_locks import lock_contract
from .hunt_booking import quote_for_selection, read_addons, read_completion, selected_plan
from .ownership import must_get_contract, must_get_payment_item

log = logging.getLogger(__name__)

FULL = "guide_fee"
INSTALLMENT = "guide_fee_installment"


@dataclass
class Bill:
    contract_id: int
    mode: str  # full | installments
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    amount_paid_cents: int
    items: list[PaymentItem] = field(default_factory=list)
    breakdown: Optional[FeeBreakdown] = None
    refreshed: bool = False

    @property
    def balance_cents(self) -> int:
        return max(0, self.total_cents - self.amount_paid_cents)

    def as_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "mode": self.mode,
            "subtotal_cents": self.subtotal_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_cents": self.balance_cents,
            "refreshed": self.refreshed,
            "lines": [x.as_dict() for x in self.breakdown.lines] if self.breakdown else [],
            "items": [item_view(x) for x in self.items],
        }


def item_view(p: PaymentItem) -> dict[str, Any]:
    return {
        "id": p.id,
        "item_type": p.item_type,
        "description": p.description,
        "installment_number": p.installment_number,
        "subtotal_cents": p.subtotal_cents,
        "platform_fee_cents": p.platform_fee_cents,
        "total_cents": p.total_cents,
        "amount_paid_cents": p.amount_paid_cents,
        "due_date": p.due_date,
        "status": p.status,
        "paid_at": p.paid_at,
    }


def _now() -> datetime:
    return datetime.utcnow()


# -----------------------------------------------------------------------------
# Pricing from the frozen selection
# -----------------------------------------------------------------------------
def compute_contract_fee(db: Session, contract: HuntContract) -> FeeBreakdown:
    """
    Prices the plan and add-on quantities captured at completion time
    against the current catalog. Contracts executed without a completion
    record fall back to the hunt's current selection.
    """
    data = read_completion(contract)
    plan: Optional[PricingItem] = None
    addons: dict = {}

    if data.get("pricing_item_id"):
        plan = db.scalar(
            select(PricingItem).where(
                PricingItem.id == int(data["pricing_item_id"]),
                PricingItem.outfitter_id == contract.outfitter_id,
            )
        )
        if plan is None:
            raise ValidationError(
                "the guide-fee plan on this contract no longer exists in the catalog",
                code="PlanMissing",
                details={"pricing_item_id": data["pricing_item_id"]},
            )
        addons = normalize_addon_selections(data.get("addons") or {})
    elif contract.hunt is not None:
        plan = selected_plan(contract.hunt)
        addons = read_addons(contract.hunt)

    b = quote_for_selection(db, outfitter_id=contract.outfitter_id, plan=plan, addons=addons)
    if b.subtotal_cents <= 0:
        raise ValidationError("No guide fee is set for this contract; select a priced plan first", code="NoGuideFee")
    return b


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------
def _live_items(db: Session, contract_id: int, item_type: str) -> list[PaymentItem]:
    return list(
        db.scalars(
            select(PaymentItem)
            .where(
                PaymentItem.contract_id == int(contract_id),
                PaymentItem.item_type == item_type,
                PaymentItem.status != "cancelled",
            )
            .order_by(PaymentItem.installment_number, PaymentItem.id)
            .execution_options(populate_existing=True)
        ).all()
    )


def _require_executed(contract: HuntContract) -> None:
    if parse_status(contract.status) is not ContractStatus.FULLY_EXECUTED:
        raise StateError(
            f"bills are only available once the contract is fully executed (status is '{contract.status}')",
            code="ContractNotFullyExecuted",
            details={"status": contract.status, "required_status": ContractStatus.FULLY_EXECUTED.value},
        )


def _installment_bill(contract: HuntContract, items: list[PaymentItem]) -> Bill:
    return Bill(
        contract_id=contract.id,
        mode="installments",
        subtotal_cents=sum(x.subtotal_cents for x in items),
        platform_fee_cents=sum(x.platform_fee_cents for x in items),
        total_cents=sum(x.total_cents for x in items),
        amount_paid_cents=sum(x.amount_paid_cents for x in items),
        items=items,
    )


def _full_bill(contract: HuntContract, item: PaymentItem, breakdown: Optional[FeeBreakdown], refreshed: bool) -> Bill:
    return Bill(
        contract_id=contract.id,
        mode="full",
        subtotal_cents=item.subtotal_cents,
        platform_fee_cents=item.platform_fee_cents,
        total_cents=item.total_cents,
        amount_paid_cents=item.amount_paid_cents,
        items=[item],
        breakdown=breakdown,
        refreshed=refreshed,
    )


# -----------------------------------------------------------------------------
# Creation / refresh
# -----------------------------------------------------------------------------
def _new_full_item(contract: HuntContract, b: FeeBreakdown) -> PaymentItem:
    return PaymentItem(
        outfitter_id=contract.outfitter_id,
        contract_id=contract.id,
        hunt_id=contract.hunt_id,
        client_email=contract.client_email,
        item_type=FULL,
        description="Guide fee",
        subtotal_cents=b.subtotal_cents,
        platform_fee_cents=b.platform_fee_cents,
        total_cents=b.total_cents,
        amount_paid_cents=0,
        status="pending",
        created_at=_now(),
        updated_at=_now(),
    )


def create_bill_if_needed(
    db: Session,
    *,
    contract: HuntContract,
    actor_user_id: Optional[int] = None,
) -> Optional[PaymentItem]:
    """Creates the full-amount item unless a live arrangement already exists."""
    _require_executed(contract)
    if _live_items(db, contract.id, INSTALLMENT):
        return None
    full = _live_items(db, contract.id, FULL)
    if full:
        return full[0]

    b = compute_contract_fee(db, contract)
    try:
        with unit_of_work(db):
            c = lock_contract(db, contract_id=contract.id)
            # a plan or a bill may have been committed since the checks above
            _require_executed(c)
            if _live_items(db, c.id, INSTALLMENT):
                return None
            full = _live_items(db, c.id, FULL)
            if full:
                return full[0]

            item = _new_full_item(c, b)
            db.add(item)
            db.flush()
            audit_write(
                db,
                outfitter_id=c.outfitter_id,
                actor_user_id=actor_user_id,
                action="bill.created",
                entity_type="payment_item",
                entity_id=item.id,
                after=payment_snapshot(item),
            )
    except IntegrityError:
        full = _live_items(db, contract.id, FULL)
        if not full:
            raise
        return full[0]

    log.info(
        "guide_fee_bill_created",
        extra={"contract_id": contract.id, "outfitter_id": contract.outfitter_id, "payment_item_id": item.id},
    )
    return item


def _is_settled(item: PaymentItem) -> bool:
    return item.amount_paid_cents != 0 or item.status != "pending"


def _refresh_if_drifted(
    db: Session, contract: HuntContract, item: PaymentItem, actor_user_id: Optional[int]
) -> tuple[Optional[FeeBreakdown], bool]:
    # once money has changed hands the stored amounts are final
    if _is_settled(item):
        return None, False

    b = compute_contract_fee(db, contract)
    if (item.subtotal_cents, item.platform_fee_cents, item.total_cents) == (
        b.subtotal_cents,
        b.platform_fee_cents,
        b.total_cents,
    ):
        return b, False

    with unit_of_work(db):
        lock_contract(db, contract_id=contract.id)
        db.refresh(item)
        if _is_settled(item):
            return None, False

        before = payment_snapshot(item)
        item.subtotal_cents = b.subtotal_cents
        item.platform_fee_cents = b.platform_fee_cents
        item.total_cents = b.total_cents
        item.updated_at = _now()
        db.add(item)
        audit_write(
            db,
            outfitter_id=contract.outfitter_id,
            actor_user_id=actor_user_id,
            action="bill.refreshed",
            entity_type="payment_item",
            entity_id=item.id,
            before=before,
            after=payment_snapshot(item),
        )
    log.info(
        "guide_fee_bill_refreshed",
        extra={"contract_id": contract.id, "payment_item_id": item.id},
    )
    return b, True


def get_or_create_bill(db: Session, *, principal: Principal, contract_id: int) -> Bill:
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    _require_executed(c)

    plan_items = _live_items(db, c.id, INSTALLMENT)
    if plan_items:
        return _installment_bill(c, plan_items)

    full = _live_items(db, c.id, FULL)
    if full:
        b, refreshed = _refresh_if_drifted(db, c, full[0], principal.user_id)
        return _full_bill(c, full[0], b, refreshed)

    item = create_bill_if_needed(db, contract=c, actor_user_id=principal.user_id)
    if item is None:
        return _installment_bill(c, _live_items(db, c.id, INSTALLMENT))
    return _full_bill(c, item, compute_contract_fee(db, c), False)


# -----------------------------------------------------------------------------
# Payment plan
# -----------------------------------------------------------------------------
def _plan_allowed(db: Session, contract_id: int) -> list[PaymentItem]:
    """Live full-amount items to replace; raises if a plan can't be created."""
    if _live_items(db, contract_id, INSTALLMENT):
        raise StateError("this contract already has a payment plan", code="PaymentPlanExists")

    full = _live_items(db, contract_id, FULL)
    paid_full = [x for x in full if x.amount_paid_cents > 0 or x.status == "paid"]
    if paid_full:
        raise StateError(
            "payments were already recorded against the full amount",
            code="PaymentsRecorded",
            details={"amount_paid_cents": sum(x.amount_paid_cents for x in paid_full)},
        )
    return full


def create_payment_plan(
    db: Session,
    *,
    principal: Principal,
    contract_id: int,
    installments: int,
    first_due_date: date,
) -> Bill:
    """
    Replaces the full-amount item with N installments in one commit.

    The checks run again under the contract lock, so a payment or another
    plan committed in the meantime makes this call fail instead of being
    overwritten.
    """
    c = must_get_contract(db, principal=principal, contract_id=contract_id)
    _require_executed(c)
    _plan_allowed(db, c.id)

    b = compute_contract_fee(db, c)
    schedule = planner.split(b.total_cents, installments, first_due_date, settings.platform_fee_percent)
    n = len(schedule)

    rows: list[PaymentItem] = []
    try:
        with unit_of_work(db):
            c = lock_contract(db, contract_id=c.id)
            _require_executed(c)
            full = _plan_allowed(db, c.id)

            for it in full:
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

            for inst in schedule:
                row = PaymentItem(
                    outfitter_id=c.outfitter_id,
                    contract_id=c.id,
                    hunt_id=c.hunt_id,
                    client_email=c.client_email,
                    item_type=INSTALLMENT,
                    description=f"Guide fee installment {inst.number} of {n}",
                    installment_number=inst.number,
                    subtotal_cents=inst.subtotal_cents,
                    platform_fee_cents=inst.platform_fee_cents,
                    total_cents=inst.amount_cents,
                    amount_paid_cents=0,
                    due_date=inst.due_date,
                    status="pending",
                    created_at=_now(),
                    updated_at=_now(),
                )
                db.add(row)
                rows.append(row)

            db.flush()
            audit_write(
                db,
                outfitter_id=c.outfitter_id,
                actor_user_id=principal.user_id,
                action="bill.payment_plan_created",
                entity_type="hunt_contract",
                entity_id=c.id,
                after={
                    "installments": n,
                    "total_cents": b.total_cents,
                    "payment_item_ids": [r.id for r in rows],
                },
            )
    except IntegrityError:
        raise StateError("this contract already has a payment plan", code="PaymentPlanExists")

    log.info("payment_plan_created", extra={"contract_id": c.id, "outfitter_id": c.outfitter_id})
    bill = _installment_bill(c, rows)
    bill.breakdown = b
    return bill


# -----------------------------------------------------------------------------
# Offline payments
# -----------------------------------------------------------------------------
def _check_payable(item: PaymentItem, amount: int) -> None:
    if item.status == "cancelled":
        raise StateError("cannot record a payment on a cancelled item", code="ItemCancelled")
    if item.status == "paid":
        raise StateError("this item is already paid in full", code="AlreadyPaid")
    if amount <= 0:
        raise ValidationError("payment amount must be positive", code="InvalidAmount")

    remaining = item.total_cents - item.amount_paid_cents
    if amount > remaining:
        raise ValidationError(
            f"payment of {amount} cents exceeds the remaining balance of {remaining} cents",
            code="Overpayment",
            details={"remaining_cents": remaining},
        )


def record_payment(db: Session, *, principal: Principal, payment_item_id: int, amount_cents: int) -> PaymentItem:
    item = must_get_payment_item(db, principal=principal, payment_item_id=payment_item_id)
    amount = int(amount_cents)
    _check_payable(item, amount)

    with unit_of_work(db):
        lock_contract(db, contract_id=item.contract_id)
        # the item may have been cancelled by a payment plan or paid meanwhile
        db.refresh(item)
        _check_payable(item, amount)

        before = payment_snapshot(item)
        item.amount_paid_cents += amount
        if item.amount_paid_cents >= item.total_cents:
            item.status = "paid"
            item.paid_at = _now()
        item.updated_at = _now()
        db.add(item)
        audit_write(
            db,
            outfitter_id=item.outfitter_id,
            actor_user_id=principal.user_id,
            action="payment_item.payment_recorded",
            entity_type="payment_item",
            entity_id=item.id,
            before=before,
            after=payment_snapshot(item),
        )
    log.info("payment_recorded", extra={"payment_item_id": item.id, "outfitter_id": item.outfitter_id})
    return item
