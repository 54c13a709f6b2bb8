# backend/hunt_engine/services/hunt_codes.py
"""
Season reference data.

Codes look like ELK-1-100: the middle segment is the weapon
(1 = any legal weapon / rifle, 2 = archery, 3 = muzzleloader).
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.booking_dates import SeasonWindow, window_for
from ..models import Hunt, HuntCode

WEAPON_DIGITS = {"1": "Rifle", "2": "Archery", "3": "Muzzleloader"}

# calendar labels use "Bow" for archery
_CALENDAR_WEAPON = {"Archery": "Bow"}


def weapon_from_code(code: Optional[str]) -> Optional[str]:
    parts = (code or "").strip().split("-")
    if len(parts) < 2 or not parts[1]:
        return None
    return WEAPON_DIGITS.get(parts[1], "Rifle")


def get_hunt_code(db: Session, code: Optional[str]) -> Optional[HuntCode]:
    c = (code or "").strip().upper()
    if not c:
        return None
    return db.scalar(select(HuntCode).where(HuntCode.code == c))


def list_hunt_codes(db: Session, *, species: Optional[str] = None, weapon: Optional[str] = None) -> list[HuntCode]:
    rows = list(db.scalars(select(HuntCode).order_by(HuntCode.code)).all())
    if species:
        sp = species.strip().upper()
        narrowed = [r for r in rows if sp in (r.species or "").upper()]
        rows = narrowed or rows
    if weapon:
        w = "Archery" if weapon.strip().lower() == "bow" else weapon.strip().title()
        narrowed = [r for r in rows if weapon_from_code(r.code) == w]
        rows = narrowed or rows
    return rows


def resolve_season_window(db: Session, hunt: Hunt) -> Optional[SeasonWindow]:
    """
    The hunt's own window wins. Otherwise the window comes from its hunt
    code and is written back onto the hunt (along with the weapon when the
    hunt has none). Caller commits.
    """
    explicit = window_for(hunt.season_window_start, hunt.season_window_end)
    if explicit is not None:
        return explicit

    row = get_hunt_code(db, hunt.hunt_code)
    if row is None:
        return None

    if not hunt.weapon:
        w = weapon_from_code(row.code)
        if w:
            hunt.weapon = _CALENDAR_WEAPON.get(w, w)

    win = window_for(row.start_date, row.end_date)
    if win is None:
        return None

    hunt.season_window_start = win.start
    hunt.season_window_end = win.end
    db.add(hunt)
    return win
