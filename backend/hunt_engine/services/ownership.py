# backend/hunt_engine/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..auth import Principal
from ..domain.errors import AuthorizationError
from ..models import Hunt, HuntContract, PaymentItem, PricingItem


def _same_email(a: str | None, b: str | None) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def _client_may_see(principal: Principal, client_email: str | None) -> bool:
    # outfitter staff see every row; clients only their own
    return principal.role != "client" or _same_email(client_email, principal.email)


def must_get_hunt(db: Session, *, principal: Principal, hunt_id: int) -> Hunt:
    row = db.scalar(select(Hunt).where(Hunt.id == int(hunt_id), Hunt.outfitter_id == principal.outfitter_id))
    if row is None or not _client_may_see(principal, row.client_email):
        raise AuthorizationError("hunt")
    return row


def must_get_contract(db: Session, *, principal: Principal, contract_id: int) -> HuntContract:
    row = db.scalar(
        select(HuntContract).where(
            HuntContract.id == int(contract_id),
            HuntContract.outfitter_id == principal.outfitter_id,
        )
    )
    if row is None or not _client_may_see(principal, row.client_email):
        raise AuthorizationError("contract")
    return row


def must_get_payment_item(db: Session, *, principal: Principal, payment_item_id: int) -> PaymentItem:
    row = db.scalar(
        select(PaymentItem).where(
            PaymentItem.id == int(payment_item_id),
            PaymentItem.outfitter_id == principal.outfitter_id,
        )
    )
    if row is None or not _client_may_see(principal, row.client_email):
        raise AuthorizationError("payment item")
    return row


def must_get_pricing_item(db: Session, *, outfitter_id: int, pricing_item_id: int) -> PricingItem:
    row = db.scalar(
        select(PricingItem).where(PricingItem.id == int(pricing_item_id), PricingItem.outfitter_id == int(outfitter_id))
    )
    if row is None:
        raise AuthorizationError("pricing item")
    return row


def outfitter_catalog(db: Session, *, outfitter_id: int) -> list[PricingItem]:
    return list(
        db.scalars(select(PricingItem).where(PricingItem.outfitter_id == int(outfitter_id)).order_by(PricingItem.id)).all()
    )
