# backend/tests/helpers.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from hunt_engine.auth import Principal
from hunt_engine.clients.signature_service import SignatureEnvelope, SignatureStatus
from hunt_engine.domain.errors import CollaboratorError
from hunt_engine.models import AppUser, ContractTemplate, Hunt, Outfitter, OutfitterMembership, PricingItem
from hunt_engine.services import contract_lifecycle as lifecycle
from hunt_engine.services.booking_service import complete_booking

TEMPLATE = "Contract for {{client_name}}: {{hunt_title}} ({{species}}, {{weapon}}) {{start_date}} to {{end_date}}"


def mk_outfitter(db: Session, slug: str = "alpha", name: str = "Alpha Outfitters") -> Outfitter:
    row = db.query(Outfitter).filter(Outfitter.slug == slug).one_or_none()
    if row:
        return row
    row = Outfitter(slug=slug, name=name)
    db.add(row)
    db.commit()
    return row


def mk_principal(db: Session, outfitter: Outfitter, email: str, role: str) -> Principal:
    user = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if user is None:
        user = AppUser(email=email, display_name=email.split("@")[0])
        db.add(user)
        db.commit()
    db.add(OutfitterMembership(outfitter_id=outfitter.id, user_id=user.id, role=role))
    db.commit()
    return Principal(
        outfitter_id=outfitter.id,
        outfitter_slug=outfitter.slug,
        user_id=user.id,
        email=email,
        role=role,
    )


def mk_item(
    db: Session,
    outfitter: Outfitter,
    title: str,
    amount: str,
    *,
    category: str = "General",
    addon_type: Optional[str] = None,
    included_days: Optional[int] = None,
    species: Optional[str] = None,
    weapons: Optional[str] = None,
) -> PricingItem:
    row = PricingItem(
        outfitter_id=outfitter.id,
        title=title,
        amount_usd=Decimal(amount),
        category=category,
        addon_type=addon_type,
        included_days=included_days,
        species=species,
        weapons=weapons,
    )
    db.add(row)
    db.commit()
    return row


def mk_template(db: Session, outfitter: Outfitter, content: str = TEMPLATE) -> ContractTemplate:
    row = ContractTemplate(outfitter_id=outfitter.id, name="Standard", content=content)
    db.add(row)
    db.commit()
    return row


def mk_hunt(
    db: Session,
    outfitter: Outfitter,
    client_email: str,
    *,
    species: str = "Elk",
    weapon: Optional[str] = "Rifle",
    hunt_code: Optional[str] = None,
    window: Optional[tuple[date, date]] = (date(2025, 10, 1), date(2025, 10, 31)),
) -> Hunt:
    row = Hunt(
        outfitter_id=outfitter.id,
        client_email=client_email,
        title=f"{species} hunt",
        species=species,
        weapon=weapon,
        hunt_code=hunt_code,
        season_window_start=window[0] if window else None,
        season_window_end=window[1] if window else None,
    )
    db.add(row)
    db.commit()
    return row


class FakeSigner:
    def __init__(self, status: Optional[SignatureStatus] = None) -> None:
        self.sent: list[int] = []
        self.status = status or SignatureStatus(client_signed=False, admin_signed=False)

    def send(self, contract_id: int) -> SignatureEnvelope:
        self.sent.append(contract_id)
        return SignatureEnvelope(tracking_ref=f"env-{contract_id}")

    def get_status(self, tracking_ref: str) -> SignatureStatus:
        return self.status


class DownSigner:
    def send(self, contract_id: int) -> SignatureEnvelope:
        raise CollaboratorError("signature service unavailable: ConnectError", collaborator="signature_service")

    def get_status(self, tracking_ref: str) -> SignatureStatus:
        raise CollaboratorError("signature service unavailable: ConnectError", collaborator="signature_service")


class Scenario:
    """Elk/Rifle outfitter with a 5-day $4,000 plan and a $500 extra-day add-on."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.outfitter = mk_outfitter(db)
        self.admin = mk_principal(db, self.outfitter, "owner@alpha.test", "owner")
        self.client = mk_principal(db, self.outfitter, "client@alpha.test", "client")
        self.template = mk_template(db, self.outfitter)
        self.plan = mk_item(
            db, self.outfitter, "Elk Rifle 5-Day", "4000.00", included_days=5, species="Elk", weapons="Rifle"
        )
        self.extra_day = mk_item(
            db, self.outfitter, "Extra Day", "500.00", category="Add-ons", addon_type="extra_days"
        )
        self.hunt = mk_hunt(db, self.outfitter, self.client.email)

    def book(self, *, extra_days: int = 1):
        days = 5 + extra_days
        return complete_booking(
            self.db,
            principal=self.client,
            hunt_id=self.hunt.id,
            pricing_item_id=self.plan.id,
            start_date=date(2025, 10, 1),
            end_date=date(2025, 10, days),
            addons={"extra_days": extra_days},
        )

    def execute(self):
        res = self.book()
        c = lifecycle.review_contract(self.db, principal=self.admin, contract_id=res.contract.id, action="approve")
        c = lifecycle.send_for_signature(self.db, principal=self.admin, contract_id=c.id, signer=FakeSigner())
        return lifecycle.apply_signature_status(self.db, c, SignatureStatus(client_signed=True, admin_signed=True))
