# backend/hunt_engine/domain/contract_document.py
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from .booking_dates import as_date
from .fees import FeeBreakdown, render_bill_lines

NOT_SPECIFIED = "Not specified"

PLACEHOLDERS = (
    "client_name",
    "client_email",
    "hunt_title",
    "hunt_code",
    "species",
    "unit",
    "weapon",
    "start_date",
    "end_date",
    "camp_name",
    "outfitter_name",
)


def _date_or_tbd(v: Any) -> str:
    d = as_date(v)
    return d.isoformat() if d else "TBD"


def placeholder_values(hunt: Any, *, client_name: str, client_email: str, outfitter_name: str) -> dict[str, str]:
    species = getattr(hunt, "species", None)
    return {
        "client_name": client_name or client_email,
        "client_email": client_email,
        "hunt_title": getattr(hunt, "title", None) or f"{species or 'Hunt'} Hunt",
        "hunt_code": getattr(hunt, "hunt_code", None) or NOT_SPECIFIED,
        "species": species or NOT_SPECIFIED,
        "unit": getattr(hunt, "unit", None) or NOT_SPECIFIED,
        "weapon": getattr(hunt, "weapon", None) or NOT_SPECIFIED,
        "start_date": _date_or_tbd(getattr(hunt, "start_time", None)),
        "end_date": _date_or_tbd(getattr(hunt, "end_time", None)),
        "camp_name": getattr(hunt, "camp_name", None) or NOT_SPECIFIED,
        "outfitter_name": outfitter_name or "Outfitter",
    }


def fill_template(content: str, values: dict[str, str]) -> str:
    out = content
    for key in PLACEHOLDERS:
        out = out.replace("{{" + key + "}}", values.get(key, NOT_SPECIFIED))
    return out


def fallback_body(values: dict[str, str], generated_on: Optional[date] = None) -> str:
    lines = [
        "HUNT CONTRACT",
        "",
        f"Client: {values['client_name']}",
        f"Email: {values['client_email']}",
        "",
        "Hunt Details:",
        f"- Hunt: {values['hunt_title']}",
        f"- Hunt Code: {values['hunt_code']}",
        f"- Species: {values['species']}",
        f"- Unit: {values['unit']}",
        f"- Weapon: {values['weapon']}",
        f"- Start Date: {values['start_date']}",
        f"- End Date: {values['end_date']}",
        "",
        f"This contract confirms your hunt booking with {values['outfitter_name']}.",
    ]
    if generated_on is not None:
        lines += ["", f"Generated: {generated_on.isoformat()}"]
    return "\n".join(lines)


def render_contract(
    *,
    template_content: Optional[str],
    hunt: Any,
    client_name: str,
    client_email: str,
    outfitter_name: str,
    breakdown: Optional[FeeBreakdown],
    generated_on: Optional[date] = None,
) -> str:
    values = placeholder_values(hunt, client_name=client_name, client_email=client_email, outfitter_name=outfitter_name)
    body = fill_template(template_content, values) if template_content else fallback_body(values, generated_on)
    if breakdown is None or not breakdown.lines:
        return body
    return body + "\n\n---\n\n" + "\n".join(render_bill_lines(breakdown))
