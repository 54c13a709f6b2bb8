# backend/tests/test_complete_booking.py
from __future__ import annotations

import json
from datetime import date

import pytest

from hunt_engine.db import SessionLocal
from hunt_engine.domain.errors import AuthorizationError, StateError, ValidationError
from hunt_engine.models import AuditEvent, HuntCode, HuntContract
from hunt_engine.services import contract_lifecycle as lifecycle
from hunt_engine.services.booking_service import complete_booking
from hunt_engine.services.hunt_codes import resolve_season_window

from helpers import Scenario, mk_hunt, mk_item, mk_principal


def test_booking_creates_contract_pending_admin_review():
    db = SessionLocal()
    try:
        s = Scenario(db)
        res = s.book(extra_days=1)

        assert res.contract_created is True
        assert res.days == 6
        assert res.breakdown.total_cents == 472500
        assert res.contract.status == "pending_admin_review"
        assert res.hunt.start_time.isoformat() == "2025-10-01T00:00:00"
        assert res.hunt.end_time.isoformat() == "2025-10-06T23:59:59"
        assert json.loads(res.hunt.client_addon_json) == {"extra_days": 1}

        frozen = json.loads(res.contract.client_completion_json)
        assert frozen["pricing_item_id"] == s.plan.id
        assert frozen["addons"] == {"extra_days": 1}
        assert "BILL" in res.contract.content
        assert "Total: $4725.00" in res.contract.content

        actions = [a.action for a in db.query(AuditEvent).order_by(AuditEvent.id).all()]
        assert actions == ["contract.created", "contract.booking_completed"]
    finally:
        db.close()


def test_rebooking_refreshes_the_same_contract():
    db = SessionLocal()
    try:
        s = Scenario(db)
        first = s.book(extra_days=1)
        second = s.book(extra_days=2)

        assert second.contract.id == first.contract.id
        assert second.contract_created is False
        assert second.contract.status == "pending_admin_review"
        assert json.loads(second.contract.client_completion_json)["addons"] == {"extra_days": 2}
        assert db.query(HuntContract).count() == 1
    finally:
        db.close()


def test_wrong_span_is_rejected_before_anything_is_saved():
    db = SessionLocal()
    try:
        s = Scenario(db)
        with pytest.raises(ValidationError) as ei:
            complete_booking(
                db,
                principal=s.client,
                hunt_id=s.hunt.id,
                pricing_item_id=s.plan.id,
                start_date=date(2025, 10, 1),
                end_date=date(2025, 10, 5),
                addons={"extra_days": 1},
            )
        assert ei.value.code == "WrongDuration"
        assert ei.value.details == {"required_days": 6, "selected_days": 5}

        db.refresh(s.hunt)
        assert s.hunt.start_time is None
        assert db.query(HuntContract).count() == 0
    finally:
        db.close()


def test_negative_quantity_is_rejected():
    db = SessionLocal()
    try:
        s = Scenario(db)
        with pytest.raises(ValidationError) as ei:
            complete_booking(
                db,
                principal=s.client,
                hunt_id=s.hunt.id,
                pricing_item_id=s.plan.id,
                start_date=date(2025, 10, 1),
                end_date=date(2025, 10, 5),
                addons={"spotter": -1},
            )
        assert ei.value.code == "InvalidQuantity"
    finally:
        db.close()


def test_plan_for_another_weapon_is_rejected():
    db = SessionLocal()
    try:
        s = Scenario(db)
        bow_plan = mk_item(db, s.outfitter, "Elk Archery 7-Day", "4500.00", included_days=7, species="Elk", weapons="Archery")
        with pytest.raises(ValidationError) as ei:
            complete_booking(
                db,
                principal=s.client,
                hunt_id=s.hunt.id,
                pricing_item_id=bow_plan.id,
                start_date=date(2025, 10, 1),
                end_date=date(2025, 10, 7),
            )
        assert ei.value.code == "PlanNotForHunt"
        assert ei.value.details["legal_pricing_item_ids"] == [s.plan.id]
    finally:
        db.close()


def test_other_clients_hunt_is_not_yours():
    db = SessionLocal()
    try:
        s = Scenario(db)
        stranger = mk_principal(db, s.outfitter, "other@alpha.test", "client")
        with pytest.raises(AuthorizationError):
            complete_booking(
                db,
                principal=stranger,
                hunt_id=s.hunt.id,
                pricing_item_id=s.plan.id,
                start_date=date(2025, 10, 1),
                end_date=date(2025, 10, 5),
            )
    finally:
        db.close()


def test_approved_contract_locks_the_booking():
    db = SessionLocal()
    try:
        s = Scenario(db)
        res = s.book()
        lifecycle.review_contract(db, principal=s.admin, contract_id=res.contract.id, action="approve")

        with pytest.raises(StateError) as ei:
            s.book(extra_days=2)
        assert ei.value.code == "ContractLocked"
    finally:
        db.close()


def test_hunt_code_supplies_window_and_weapon():
    db = SessionLocal()
    try:
        s = Scenario(db)
        db.add(HuntCode(code="ELK-2-101", species="ELK", start_date=date(2025, 9, 1), end_date=date(2025, 9, 24)))
        db.commit()
        hunt = mk_hunt(db, s.outfitter, s.client.email, weapon=None, hunt_code="ELK-2-101", window=None)

        win = resolve_season_window(db, hunt)
        db.commit()

        assert (win.start, win.end) == (date(2025, 9, 1), date(2025, 9, 24))
        db.refresh(hunt)
        assert hunt.weapon == "Bow"
        assert hunt.season_window_end == date(2025, 9, 24)
    finally:
        db.close()
