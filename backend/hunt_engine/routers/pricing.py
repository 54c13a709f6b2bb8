# backend/hunt_engine/routers/pricing.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain import pricing_match
from ..domain.fees import normalize_addon_selections
from ..schemas import FeeBreakdownOut, HuntCodeOut, PricingItemOut, QuoteIn
from ..services.hunt_booking import quote_for_selection
from ..services.hunt_codes import list_hunt_codes, weapon_from_code
from ..services.ownership import must_get_hunt, must_get_pricing_item, outfitter_catalog

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/items", response_model=list[PricingItemOut])
def list_matching_items(
    species: Optional[str] = Query(default=None),
    weapon: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    catalog = outfitter_catalog(db, outfitter_id=p.outfitter_id)
    return pricing_match.match(catalog, species, weapon, category)


@router.post("/hunts/{hunt_id}/quote", response_model=FeeBreakdownOut)
def quote_for_hunt(hunt_id: int, payload: QuoteIn, db: Session = Depends(get_db), p=Depends(get_principal)):
    hunt = must_get_hunt(db, principal=p, hunt_id=hunt_id)
    plan = None
    if payload.pricing_item_id is not None:
        plan = must_get_pricing_item(db, outfitter_id=p.outfitter_id, pricing_item_id=payload.pricing_item_id)
    b = quote_for_selection(
        db,
        outfitter_id=hunt.outfitter_id,
        plan=plan,
        addons=normalize_addon_selections(payload.addons),
    )
    return b.as_dict()


@router.get("/hunt-codes", response_model=list[HuntCodeOut])
def hunt_codes(
    species: Optional[str] = Query(default=None),
    weapon: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    rows = list_hunt_codes(db, species=species, weapon=weapon)
    out = []
    for r in rows:
        item = HuntCodeOut.model_validate(r)
        item.weapon = weapon_from_code(r.code)
        out.append(item)
    return out
