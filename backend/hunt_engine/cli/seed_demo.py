# backend/hunt_engine/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from hunt_engine.db import Base, SessionLocal, engine
from hunt_engine.models import (
    AppUser,
    ContractTemplate,
    Hunt,
    HuntCode,
    Outfitter,
    OutfitterMembership,
    PricingItem,
)

DEMO_TEMPLATE = """HUNT CONTRACT

This agreement is between {{outfitter_name}} and {{client_name}} ({{client_email}}).

Hunt: {{hunt_title}}
Hunt code: {{hunt_code}}
Species: {{species}} / Weapon: {{weapon}} / Unit: {{unit}}
Dates: {{start_date}} through {{end_date}}
Camp: {{camp_name}}
"""

# (title, amount, category, addon_type, included_days, species, weapons)
DEMO_CATALOG = [
    ("Elk Rifle 5-Day Guided", "4000.00", "General", None, 5, "Elk", "Rifle"),
    ("Elk Archery 7-Day Guided", "4500.00", "General", None, 7, "Elk", "Archery"),
    ("Deer Any Weapon 4-Day", "2800.00", "General", None, 4, "Deer", None),
    ("Extra Day", "500.00", "Add-ons", "extra_days", None, None, None),
    ("Non-Hunter Guest", "750.00", "Add-ons", "non_hunter", None, None, None),
    ("Spotter", "400.00", "Add-ons", "spotter", None, None, None),
    ("Rifle Rental", "150.00", "Add-ons", "rifle_rental", None, None, "Rifle"),
]

# (code, species, unit, season text, start, end)
DEMO_HUNT_CODES = [
    ("ELK-1-100", "ELK", "Unit 34", "Oct 1 - Oct 31", date(2025, 10, 1), date(2025, 10, 31)),
    ("ELK-2-101", "ELK", "Unit 34", "Sep 1 - Sep 24", date(2025, 9, 1), date(2025, 9, 24)),
    ("DER-1-200", "DEER", "Unit 36", "Nov 1 - Nov 15", date(2025, 11, 1), date(2025, 11, 15)),
]


@dataclass(frozen=True)
class SeedResult:
    outfitter_slug: str
    admin_email: str
    client_email: str
    pricing_item_count: int
    hunt_id: Optional[int]


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def _get_or_create_outfitter(db: Session, slug: str, name: str) -> Outfitter:
    row = db.query(Outfitter).filter(Outfitter.slug == slug).one_or_none()
    if row:
        return row
    row = Outfitter(slug=slug, name=name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_user(db: Session, email: str) -> AppUser:
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, display_name=email.split("@")[0])
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _ensure_membership(db: Session, outfitter_id: int, user_id: int, role: str) -> None:
    existing = db.query(OutfitterMembership).filter(
        OutfitterMembership.outfitter_id == int(outfitter_id),
        OutfitterMembership.user_id == int(user_id),
    ).one_or_none()
    if existing:
        return
    db.add(OutfitterMembership(outfitter_id=int(outfitter_id), user_id=int(user_id), role=str(role)))
    db.commit()


def _seed_catalog(db: Session, outfitter_id: int) -> int:
    have = {r.title for r in db.query(PricingItem).filter(PricingItem.outfitter_id == int(outfitter_id)).all()}
    for title, amount, category, addon_type, days, species, weapons in DEMO_CATALOG:
        if title in have:
            continue
        db.add(
            PricingItem(
                outfitter_id=int(outfitter_id),
                title=title,
                amount_usd=Decimal(amount),
                category=category,
                addon_type=addon_type,
                included_days=days,
                species=species,
                weapons=weapons,
            )
        )
    db.commit()
    return db.query(PricingItem).filter(PricingItem.outfitter_id == int(outfitter_id)).count()


def _seed_hunt_codes(db: Session) -> None:
    for code, species, unit, text, start, end in DEMO_HUNT_CODES:
        if db.query(HuntCode).filter(HuntCode.code == code).one_or_none():
            continue
        db.add(
            HuntCode(
                code=code,
                species=species,
                unit_description=unit,
                season_text=text,
                start_date=start,
                end_date=end,
            )
        )
    db.commit()


def _ensure_template(db: Session, outfitter_id: int) -> None:
    existing = db.query(ContractTemplate).filter(
        ContractTemplate.outfitter_id == int(outfitter_id),
        ContractTemplate.template_type == "hunt_contract",
    ).first()
    if existing:
        return
    db.add(ContractTemplate(outfitter_id=int(outfitter_id), name="Standard hunt contract", content=DEMO_TEMPLATE))
    db.commit()


def seed_demo(
    *,
    outfitter_slug: str,
    outfitter_name: str,
    admin_email: str,
    client_email: str,
    create_sample_hunt: bool = True,
) -> SeedResult:
    db = SessionLocal()
    try:
        outfitter = _get_or_create_outfitter(db, outfitter_slug, outfitter_name)
        admin = _get_or_create_user(db, admin_email.strip().lower())
        client = _get_or_create_user(db, client_email.strip().lower())
        _ensure_membership(db, outfitter.id, admin.id, "owner")
        _ensure_membership(db, outfitter.id, client.id, "client")

        count = _seed_catalog(db, outfitter.id)
        _seed_hunt_codes(db)
        _ensure_template(db, outfitter.id)

        hunt_id: Optional[int] = None
        if create_sample_hunt:
            hunt = Hunt(
                outfitter_id=outfitter.id,
                client_email=client.email,
                title="Elk - Unit 34",
                species="Elk",
                unit="34",
                hunt_code="ELK-1-100",
            )
            db.add(hunt)
            db.commit()
            hunt_id = hunt.id

        return SeedResult(
            outfitter_slug=outfitter.slug,
            admin_email=admin.email,
            client_email=client.email,
            pricing_item_count=count,
            hunt_id=hunt_id,
        )
    finally:
        db.close()
