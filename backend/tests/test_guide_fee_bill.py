# backend/tests/test_guide_fee_bill.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from hunt_engine.db import SessionLocal
from hunt_engine.domain.errors import StateError, ValidationError
from hunt_engine.models import PaymentItem
from hunt_engine.services import guide_fee_bill

from helpers import Scenario


def test_bill_requires_fully_executed_contract():
    db = SessionLocal()
    try:
        s = Scenario(db)
        res = s.book()
        with pytest.raises(StateError) as ei:
            guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=res.contract.id)
        assert ei.value.code == "ContractNotFullyExecuted"
        assert ei.value.details == {"status": "pending_admin_review", "required_status": "fully_executed"}
    finally:
        db.close()


def test_executed_contract_has_full_amount_bill():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()

        bill = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id)
        assert bill.mode == "full"
        assert (bill.subtotal_cents, bill.platform_fee_cents, bill.total_cents) == (450000, 22500, 472500)
        assert bill.balance_cents == 472500
        assert bill.refreshed is False
        assert [ln.kind for ln in bill.breakdown.lines] == ["plan", "extra_days"]

        # fetching again does not add a second item
        guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id)
        assert len(db.scalars(select(PaymentItem)).all()) == 1
    finally:
        db.close()


def test_catalog_price_change_refreshes_unpaid_bill():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()

        s.extra_day.amount_usd = Decimal("600.00")
        db.commit()

        bill = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id)
        assert bill.refreshed is True
        assert bill.total_cents == 483000
        assert bill.items[0].total_cents == 483000
    finally:
        db.close()


def test_paid_bill_keeps_its_amounts():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()
        item = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id).items[0]
        guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=100000)

        s.extra_day.amount_usd = Decimal("600.00")
        db.commit()

        bill = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id)
        assert bill.refreshed is False
        assert bill.total_cents == 472500
        assert bill.balance_cents == 372500
    finally:
        db.close()


def test_missing_plan_blocks_pricing():
    db = SessionLocal()
    try:
        s = Scenario(db)
        res = s.book()
        res.contract.client_completion_json = '{"pricing_item_id": 999999, "addons": {}}'
        db.commit()
        with pytest.raises(ValidationError) as ei:
            guide_fee_bill.compute_contract_fee(db, res.contract)
        assert ei.value.code == "PlanMissing"
    finally:
        db.close()


def test_payment_plan_replaces_full_item():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()

        bill = guide_fee_bill.create_payment_plan(
            db, principal=s.client, contract_id=c.id, installments=4, first_due_date=date(2025, 3, 1)
        )
        assert bill.mode == "installments"
        assert bill.total_cents == 472500
        assert [x.total_cents for x in bill.items] == [118125] * 4
        assert [x.due_date for x in bill.items] == [
            date(2025, 3, 1),
            date(2025, 4, 1),
            date(2025, 5, 1),
            date(2025, 6, 1),
        ]
        assert bill.items[0].description == "Guide fee installment 1 of 4"

        full = db.scalars(select(PaymentItem).where(PaymentItem.item_type == "guide_fee")).all()
        assert [x.status for x in full] == ["cancelled"]

        fetched = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id)
        assert fetched.mode == "installments"
        assert len(fetched.items) == 4
    finally:
        db.close()


def test_second_payment_plan_is_refused():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()
        guide_fee_bill.create_payment_plan(db, principal=s.client, contract_id=c.id, installments=3, first_due_date=date(2025, 3, 1))
        with pytest.raises(StateError) as ei:
            guide_fee_bill.create_payment_plan(db, principal=s.client, contract_id=c.id, installments=2, first_due_date=date(2025, 3, 1))
        assert ei.value.code == "PaymentPlanExists"
    finally:
        db.close()


def test_payment_plan_after_a_payment_is_refused():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()
        item = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id).items[0]
        guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=5000)
        with pytest.raises(StateError) as ei:
            guide_fee_bill.create_payment_plan(db, principal=s.client, contract_id=c.id, installments=2, first_due_date=date(2025, 3, 1))
        assert ei.value.code == "PaymentsRecorded"
    finally:
        db.close()


def test_record_payment_until_paid():
    db = SessionLocal()
    try:
        s = Scenario(db)
        c = s.execute()
        item = guide_fee_bill.get_or_create_bill(db, principal=s.client, contract_id=c.id).items[0]

        with pytest.raises(ValidationError) as ei:
            guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=472501)
        assert ei.value.code == "Overpayment"
        assert ei.value.details == {"remaining_cents": 472500}

        with pytest.raises(ValidationError):
            guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=0)

        guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=400000)
        item = guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=72500)
        assert item.status == "paid"
        assert item.paid_at is not None

        with pytest.raises(StateError) as ei:
            guide_fee_bill.record_payment(db, principal=s.admin, payment_item_id=item.id, amount_cents=1)
        assert ei.value.code == "AlreadyPaid"
    finally:
        db.close()
