# backend/tests/test_contract_document.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from hunt_engine.domain.contract_document import render_contract
from hunt_engine.domain.fees import price

HUNT = SimpleNamespace(
    title="Elk - Unit 34",
    hunt_code="ELK-1-100",
    species="Elk",
    unit="34",
    weapon="Rifle",
    camp_name=None,
    start_time=datetime(2025, 10, 1, 0, 0),
    end_time=datetime(2025, 10, 6, 23, 59, 59),
)
PLAN = SimpleNamespace(title="Elk Rifle 5-Day", amount_usd=Decimal("4000.00"), included_days=5)


def test_template_placeholders_and_bill_section():
    out = render_contract(
        template_content="{{client_name}} hunts {{species}} in unit {{unit}} from {{start_date}} to {{end_date}} at {{camp_name}}.",
        hunt=HUNT,
        client_name="Pat Hunter",
        client_email="pat@example.test",
        outfitter_name="Alpha Outfitters",
        breakdown=price(PLAN, {}, [], 5.0),
    )
    body, bill = out.split("\n\n---\n\n")
    assert body == "Pat Hunter hunts Elk in unit 34 from 2025-10-01 to 2025-10-06 at Not specified."
    assert bill.splitlines()[0] == "BILL"
    assert "Total: $4200.00" in bill


def test_fallback_body_without_template_or_bill():
    out = render_contract(
        template_content=None,
        hunt=SimpleNamespace(species="Oryx"),
        client_name="",
        client_email="pat@example.test",
        outfitter_name="Alpha Outfitters",
        breakdown=None,
        generated_on=date(2025, 2, 1),
    )
    assert out.startswith("HUNT CONTRACT")
    assert "Client: pat@example.test" in out
    assert "- Hunt: Oryx Hunt" in out
    assert "- Start Date: TBD" in out
    assert "---" not in out
    assert out.endswith("Generated: 2025-02-01")
