# backend/hunt_engine/domain/pricing_match.py
"""
Match catalog pricing items to a hunt by species and weapon.

Items are duck-typed: anything with `category`, `species` and `weapons`
attributes works (ORM rows, dataclasses in tests). Filter columns hold
comma-separated values; an empty filter applies to every hunt.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional, TypeVar

ADDONS_CATEGORY = "add-ons"

WEAPON_SYNONYMS = {"bow": "Archery"}

T = TypeVar("T")


def _split_csv(v: Optional[str]) -> set[str]:
    if not v:
        return set()
    return {x.strip().lower() for x in str(v).split(",") if x.strip()}


def species_filter(item: Any) -> set[str]:
    return _split_csv(getattr(item, "species", None))


def weapon_filter(item: Any) -> set[str]:
    return _split_csv(getattr(item, "weapons", None))


def normalize_weapon(weapon: Optional[str]) -> Optional[str]:
    """Calendar weapon labels -> tag-type labels ("Bow" is sold as "Archery")."""
    if weapon is None or not str(weapon).strip():
        return None
    w = str(weapon).strip()
    return WEAPON_SYNONYMS.get(w.lower(), w)


def is_addon(item: Any) -> bool:
    return (getattr(item, "category", "") or "").strip().lower() == ADDONS_CATEGORY


def item_matches(item: Any, species: Optional[str], weapon: Optional[str]) -> bool:
    sp = species_filter(item)
    if sp and species and species.strip():
        if species.strip().lower() not in sp:
            return False

    wf = weapon_filter(item)
    w = normalize_weapon(weapon)
    if wf and w:
        if w.lower() not in wf:
            return False

    return True


def match(
    items: Iterable[T],
    species: Optional[str],
    weapon: Optional[str],
    category: Optional[str] = None,
) -> list[T]:
    """
    Items applicable to a hunt, in catalog order.

    category=None   -> whole catalog
    category="Add-ons" (any case/spacing) -> add-on items only
    any other value -> guide-fee plans only

    Several matching plans are all returned; choosing one is the caller's job.
    """
    want_addons: Optional[bool] = None
    if category is not None:
        want_addons = category.strip().lower() == ADDONS_CATEGORY

    out: list[T] = []
    for it in items:
        if want_addons is not None and is_addon(it) != want_addons:
            continue
        if item_matches(it, species, weapon):
            out.append(it)
    return out


def guide_fee_plans(items: Iterable[T], species: Optional[str], weapon: Optional[str]) -> list[T]:
    return match(items, species, weapon, category="General")


def addon_items(items: Iterable[T], species: Optional[str], weapon: Optional[str]) -> list[T]:
    return match(items, species, weapon, category="Add-ons")
