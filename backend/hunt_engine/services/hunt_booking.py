# backend/hunt_engine/services/hunt_booking.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..domain import pricing_match
from ..domain.booking_dates import as_date, derive_required_days, validate_span
from ..domain.fees import AddonKind, FeeBreakdown, normalize_addon_selections, price
from ..models import Hunt, HuntContract, PricingItem
from .hunt_codes import resolve_season_window
from .ownership import outfitter_catalog


def _loads(v: Optional[str]) -> dict[str, Any]:
    if not v:
        return {}
    try:
        out = json.loads(v)
    except (TypeError, ValueError):
        return {}
    return out if isinstance(out, dict) else {}


def read_addons(hunt: Hunt) -> dict[AddonKind, int]:
    return normalize_addon_selections(_loads(hunt.client_addon_json))


def write_addons(hunt: Hunt, addons: dict[AddonKind, int]) -> None:
    hunt.client_addon_json = json.dumps({k.value: int(v) for k, v in addons.items()}, sort_keys=True)


def selected_plan(hunt: Hunt) -> Optional[PricingItem]:
    plan = hunt.selected_pricing_item
    if plan is None or plan.outfitter_id != hunt.outfitter_id:
        return None
    return plan


def hunt_booking_is_complete(db: Session, hunt: Hunt) -> bool:
    """A plan is selected and the booked span passes date validation."""
    plan = selected_plan(hunt)
    if plan is None or hunt.start_time is None or hunt.end_time is None:
        return False
    window = resolve_season_window(db, hunt)
    required = derive_required_days(plan, read_addons(hunt).get(AddonKind.EXTRA_DAYS, 0))
    return validate_span(hunt.start_time, hunt.end_time, window, required).ok


def quote_for_selection(
    db: Session,
    *,
    outfitter_id: int,
    plan: Optional[PricingItem],
    addons: dict[AddonKind, int],
    platform_fee_percent: Optional[float] = None,
) -> FeeBreakdown:
    catalog = outfitter_catalog(db, outfitter_id=outfitter_id)
    addon_catalog = [x for x in catalog if pricing_match.is_addon(x)]
    pct = settings.platform_fee_percent if platform_fee_percent is None else platform_fee_percent
    return price(plan, addons, addon_catalog, pct)


def quote_for_hunt(db: Session, hunt: Hunt) -> FeeBreakdown:
    return quote_for_selection(db, outfitter_id=hunt.outfitter_id, plan=selected_plan(hunt), addons=read_addons(hunt))


# -----------------------------------------------------------------------------
# Frozen completion data
# -----------------------------------------------------------------------------
def completion_data_for_hunt(hunt: Hunt, breakdown: Optional[FeeBreakdown] = None) -> dict[str, Any]:
    plan = selected_plan(hunt)
    s = as_date(hunt.start_time)
    e = as_date(hunt.end_time)
    out: dict[str, Any] = {
        "pricing_item_id": plan.id if plan else None,
        "plan_title": plan.title if plan else None,
        "included_days": plan.included_days if plan else None,
        "addons": {k.value: v for k, v in read_addons(hunt).items()},
        "start_date": s.isoformat() if s else None,
        "end_date": e.isoformat() if e else None,
        "captured_at": datetime.utcnow().isoformat(),
    }
    if breakdown is not None:
        out["quoted_total_cents"] = breakdown.total_cents
    return out


def freeze_completion(contract: HuntContract, data: dict[str, Any]) -> None:
    contract.client_completion_json = json.dumps(data, sort_keys=True, default=str)
    contract.client_completed_at = datetime.utcnow()


def read_completion(contract: HuntContract) -> dict[str, Any]:
    return _loads(contract.client_completion_json)


def completion_has_plan(contract: HuntContract) -> bool:
    return bool(read_completion(contract).get("pricing_item_id"))
