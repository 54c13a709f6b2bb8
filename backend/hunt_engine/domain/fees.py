# backend/hunt_engine/domain/fees.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from ..config import settings
from .errors import ValidationError
from .pricing_match import is_addon

log = logging.getLogger(__name__)


class AddonKind(str, Enum):
    EXTRA_DAYS = "extra_days"
    NON_HUNTER = "non_hunter"
    SPOTTER = "spotter"
    RIFLE_RENTAL = "rifle_rental"


# older booking payloads used plural keys
_LEGACY_KEYS = {
    "extra_non_hunters": AddonKind.NON_HUNTER,
    "extra_spotters": AddonKind.SPOTTER,
    "non_hunters": AddonKind.NON_HUNTER,
    "spotters": AddonKind.SPOTTER,
}

_UNIT_LABEL = {
    AddonKind.EXTRA_DAYS: "day",
    AddonKind.NON_HUNTER: "person",
    AddonKind.SPOTTER: "person",
    AddonKind.RIFLE_RENTAL: "rental",
}


@dataclass(frozen=True)
class BillLine:
    kind: str  # "plan" or an AddonKind value
    title: str
    quantity: int
    unit_cents: int
    line_cents: int
    resolved_by_title: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "quantity": self.quantity,
            "unit_cents": self.unit_cents,
            "line_cents": self.line_cents,
            "resolved_by_title": self.resolved_by_title,
        }


@dataclass(frozen=True)
class FeeBreakdown:
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    platform_fee_percent: float
    lines: list[BillLine] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "subtotal_cents": self.subtotal_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "total_cents": self.total_cents,
            "platform_fee_percent": self.platform_fee_percent,
            "lines": [x.as_dict() for x in self.lines],
        }


def usd_to_cents(amount: Any) -> int:
    """Decimal USD -> integer cents, half-up. The only place money is non-integer."""
    if amount is None:
        return 0
    d = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((d * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_usd(cents: int) -> str:
    return f"{Decimal(int(cents)) / 100:.2f}"


def percent_of(cents: int, percent: float) -> int:
    """ceil(cents * percent / 100) without float error in the multiplication."""
    return int(math.ceil(Decimal(int(cents)) * Decimal(str(percent)) / Decimal(100)))


def platform_fee_cents(subtotal_cents: int, percent: float, floor_cents: Optional[int] = None) -> int:
    if subtotal_cents <= 0:
        return 0
    floor = settings.platform_fee_floor_cents if floor_cents is None else int(floor_cents)
    return max(floor, percent_of(subtotal_cents, percent))


# -----------------------------------------------------------------------------
# Add-on resolution
# -----------------------------------------------------------------------------
def parse_addon_kind(key: Any) -> AddonKind:
    if isinstance(key, AddonKind):
        return key
    k = str(key or "").strip().lower()
    if k in _LEGACY_KEYS:
        return _LEGACY_KEYS[k]
    try:
        return AddonKind(k)
    except ValueError:
        legal = ", ".join(x.value for x in AddonKind)
        raise ValidationError(
            f"unknown add-on '{key}'; expected one of: {legal}",
            code="UnknownAddon",
            details={"legal_addons": [x.value for x in AddonKind]},
        )


def normalize_addon_selections(raw: Optional[Mapping[Any, Any]]) -> dict[AddonKind, int]:
    """Unknown kinds are rejected; negative or zero quantities are dropped."""
    out: dict[AddonKind, int] = {}
    for k, v in (raw or {}).items():
        kind = parse_addon_kind(k)
        try:
            qty = int(v or 0)
        except (TypeError, ValueError):
            raise ValidationError(f"quantity for '{kind.value}' must be a whole number", code="InvalidQuantity")
        if qty > 0:
            out[kind] = out.get(kind, 0) + qty
    return out


def _title_suggests(kind: AddonKind, title: str) -> bool:
    t = (title or "").lower()
    if kind is AddonKind.EXTRA_DAYS:
        return "day" in t and "non" not in t
    if kind is AddonKind.NON_HUNTER:
        return "non-hunter" in t or "non hunter" in t or ("non" in t and "hunter" in t)
    if kind is AddonKind.SPOTTER:
        return "spotter" in t
    if kind is AddonKind.RIFLE_RENTAL:
        return "rifle" in t
    return False


def resolve_addon_item(kind: AddonKind, catalog: Iterable[Any]) -> tuple[Optional[Any], bool]:
    """
    Returns (item, resolved_by_title).

    The explicit addon_type column always wins. Title guessing is a last
    resort: it only looks at add-on items with no addon_type at all, so a
    guide-fee plan like "5-Day Hunt" can never be billed as an extra day.
    """
    items = list(catalog)
    for it in items:
        if (getattr(it, "addon_type", None) or "") == kind.value:
            return it, False

    for it in items:
        if getattr(it, "addon_type", None):
            continue
        if not is_addon(it):
            continue
        if _title_suggests(kind, getattr(it, "title", "")):
            log.warning(
                "addon_resolved_by_title",
                extra={"addon_kind": kind.value, "pricing_item_id": getattr(it, "id", None)},
            )
            return it, True

    return None, False


# -----------------------------------------------------------------------------
# Pricing
# -----------------------------------------------------------------------------
def price(
    plan: Any,
    addon_selections: Optional[Mapping[Any, Any]],
    addon_catalog: Iterable[Any],
    platform_fee_percent: float,
) -> FeeBreakdown:
    lines: list[BillLine] = []

    if plan is not None:
        cents = usd_to_cents(getattr(plan, "amount_usd", 0))
        lines.append(
            BillLine(
                kind="plan",
                title=str(getattr(plan, "title", None) or "Guide fee"),
                quantity=1,
                unit_cents=cents,
                line_cents=cents,
            )
        )

    catalog = list(addon_catalog)
    for kind, qty in normalize_addon_selections(addon_selections).items():
        item, by_title = resolve_addon_item(kind, catalog)
        if item is None:
            raise ValidationError(
                f"no add-on priced for '{kind.value}' in this outfitter's catalog",
                code="UnpricedAddon",
                details={"addon": kind.value},
            )
        unit = usd_to_cents(getattr(item, "amount_usd", 0))
        lines.append(
            BillLine(
                kind=kind.value,
                title=str(getattr(item, "title", None) or kind.value),
                quantity=int(qty),
                unit_cents=unit,
                line_cents=unit * int(qty),
                resolved_by_title=by_title,
            )
        )

    subtotal = sum(x.line_cents for x in lines)
    fee = platform_fee_cents(subtotal, platform_fee_percent)
    return FeeBreakdown(
        subtotal_cents=subtotal,
        platform_fee_cents=fee,
        total_cents=subtotal + fee,
        platform_fee_percent=float(platform_fee_percent),
        lines=lines,
    )


def render_bill_lines(b: FeeBreakdown) -> list[str]:
    out = ["BILL", ""]
    for ln in b.lines:
        if ln.kind == "plan":
            out.append(f"{ln.title}: ${cents_to_usd(ln.line_cents)}")
            continue
        unit = _UNIT_LABEL.get(AddonKind(ln.kind), "each")
        out.append(f"{ln.title} ({ln.quantity} × ${cents_to_usd(ln.unit_cents)}/{unit}): ${cents_to_usd(ln.line_cents)}")
    out.append("")
    out.append(f"Subtotal: ${cents_to_usd(b.subtotal_cents)}")
    out.append(f"Platform fee: ${cents_to_usd(b.platform_fee_cents)}")
    out.append(f"Total: ${cents_to_usd(b.total_cents)}")
    return out
