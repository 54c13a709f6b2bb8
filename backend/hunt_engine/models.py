# backend/hunt_engine/models.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Multitenant tables
# -----------------------------
class Outfitter(Base):
    __tablename__ = "outfitters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class OutfitterMembership(Base):
    __tablename__ = "outfitter_memberships"
    __table_args__ = (UniqueConstraint("outfitter_id", "user_id", name="uq_outfitter_memberships_outfitter_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="client")  # client|guide|admin|owner
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Catalog / reference data
# -----------------------------
class PricingItem(Base):
    __tablename__ = "pricing_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount_usd: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    category: Mapped[str] = mapped_column(String(80), nullable=False, default="General")  # General|Add-ons|...
    addon_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)  # extra_days|non_hunter|spotter|rifle_rental

    # guide-fee plans only
    included_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # comma-separated; empty = any
    species: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    weapons: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class HuntCode(Base):
    """Season reference data, shared by every outfitter."""

    __tablename__ = "hunt_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True, index=True)
    species: Mapped[str] = mapped_column(String(80), nullable=False)
    unit_description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    season_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    template_type: Mapped[str] = mapped_column(String(40), nullable=False, default="hunt_contract")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Calendar projection
# -----------------------------
class Hunt(Base):
    __tablename__ = "hunts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    client_email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)

    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    species: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    weapon: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    camp_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    hunt_code: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    season_window_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    season_window_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    selected_pricing_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("pricing_items.id"), nullable=True
    )
    client_addon_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    selected_pricing_item: Mapped[Optional["PricingItem"]] = relationship()


# -----------------------------
# Contracts / billing
# -----------------------------
class HuntContract(Base):
    __tablename__ = "hunt_contracts"
    __table_args__ = (
        # at most one live contract per hunt; cancelled rows don't count
        Index(
            "uq_hunt_contracts_live_hunt",
            "hunt_id",
            unique=True,
            sqlite_where=text("status <> 'cancelled'"),
            postgresql_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    hunt_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("hunts.id"), nullable=True)
    template_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("contract_templates.id"), nullable=True)

    client_email: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    client_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(40), nullable=False, default="draft", index=True)

    client_completion_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    admin_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    admin_reviewed_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    admin_review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    signature_tracking_ref: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    signature_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    client_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    admin_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # bumped by services.contract_locks.lock_contract to claim the row
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    hunt: Mapped[Optional["Hunt"]] = relationship()
    payment_items: Mapped[List["PaymentItem"]] = relationship(back_populates="contract")


class PaymentItem(Base):
    __tablename__ = "payment_items"
    __table_args__ = (
        # one live full-amount item per contract
        Index(
            "uq_payment_items_live_full",
            "contract_id",
            unique=True,
            sqlite_where=text("item_type = 'guide_fee' AND status <> 'cancelled'"),
            postgresql_where=text("item_type = 'guide_fee' AND status <> 'cancelled'"),
        ),
        # one live plan per contract
        Index(
            "uq_payment_items_live_installment",
            "contract_id",
            "installment_number",
            unique=True,
            sqlite_where=text("item_type = 'guide_fee_installment' AND status <> 'cancelled'"),
            postgresql_where=text("item_type = 'guide_fee_installment' AND status <> 'cancelled'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    outfitter_id: Mapped[int] = mapped_column(Integer, ForeignKey("outfitters.id"), index=True, nullable=False)
    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("hunt_contracts.id"), index=True, nullable=False)
    hunt_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("hunts.id"), nullable=True)
    client_email: Mapped[str] = mapped_column(String(200), nullable=False)

    item_type: Mapped[str] = mapped_column(String(40), nullable=False)  # guide_fee|guide_fee_installment
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    installment_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending|paid|cancelled
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    contract: Mapped["HuntContract"] = relationship(back_populates="payment_items")
