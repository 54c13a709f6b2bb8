# backend/tests/test_fee_calculator.py
from __future__ import annotations

import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest

from hunt_engine.domain.errors import ValidationError
from hunt_engine.domain.fees import (
    AddonKind,
    normalize_addon_selections,
    platform_fee_cents,
    price,
    render_bill_lines,
    resolve_addon_item,
    usd_to_cents,
)


def _item(id, title, amount, category="Add-ons", addon_type=None, included_days=None):
    return SimpleNamespace(
        id=id,
        title=title,
        amount_usd=Decimal(amount),
        category=category,
        addon_type=addon_type,
        included_days=included_days,
    )


PLAN = _item(1, "Elk Rifle 5-Day", "4000.00", category="General", included_days=5)
EXTRA_DAY = _item(2, "Extra Day", "500.00", addon_type="extra_days")
SPOTTER = _item(3, "Spotter", "400.00", addon_type="spotter")


def test_elk_plan_with_one_extra_day():
    b = price(PLAN, {"extra_days": 1}, [EXTRA_DAY, SPOTTER], 5.0)
    assert b.subtotal_cents == 450000
    assert b.platform_fee_cents == 22500
    assert b.total_cents == 472500
    assert [ln.kind for ln in b.lines] == ["plan", "extra_days"]


def test_fee_floor_applies_to_small_subtotals():
    assert platform_fee_cents(1, 5.0) == 50
    assert platform_fee_cents(999, 5.0) == 50
    assert platform_fee_cents(1001, 5.0) == 51  # ceil(50.05)
    assert platform_fee_cents(0, 5.0) == 0


def test_usd_to_cents_rounds_half_up():
    assert usd_to_cents(Decimal("19.995")) == 2000
    assert usd_to_cents("0.10") == 10
    assert usd_to_cents(None) == 0


def test_explicit_addon_type_wins_over_titles():
    decoy = _item(9, "Extra Day Special", "1.00")
    item, by_title = resolve_addon_item(AddonKind.EXTRA_DAYS, [decoy, EXTRA_DAY])
    assert item is EXTRA_DAY
    assert by_title is False


def test_title_fallback_only_for_untyped_addons_and_is_logged(caplog):
    plan_like = _item(10, "5-Day Hunt", "3000.00", category="General")
    untyped = _item(11, "Additional hunting day", "450.00")
    caplog.set_level(logging.WARNING, logger="hunt_engine.domain.fees")

    item, by_title = resolve_addon_item(AddonKind.EXTRA_DAYS, [plan_like, untyped])

    assert item is untyped and by_title is True
    assert any(r.getMessage() == "addon_resolved_by_title" for r in caplog.records)


def test_unpriced_addon_is_rejected():
    with pytest.raises(ValidationError) as ei:
        price(PLAN, {"rifle_rental": 1}, [EXTRA_DAY], 5.0)
    assert ei.value.code == "UnpricedAddon"


def test_unknown_addon_lists_legal_values():
    with pytest.raises(ValidationError) as ei:
        normalize_addon_selections({"horse": 1})
    assert ei.value.code == "UnknownAddon"
    assert "extra_days" in ei.value.message


def test_legacy_plural_keys_and_zero_quantities():
    sel = normalize_addon_selections({"extra_non_hunters": 2, "spotter": 0})
    assert sel == {AddonKind.NON_HUNTER: 2}


def test_bill_lines_show_the_same_numbers():
    b = price(PLAN, {"extra_days": 2}, [EXTRA_DAY], 5.0)
    lines = render_bill_lines(b)
    assert lines[0] == "BILL"
    assert "Elk Rifle 5-Day: $4000.00" in lines
    assert "Extra Day (2 × $500.00/day): $1000.00" in lines
    assert lines[-1] == "Total: $5250.00"
