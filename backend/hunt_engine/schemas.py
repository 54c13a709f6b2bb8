# backend/hunt_engine/schemas.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------- Catalog --------------------

class PricingItemOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    amount_usd: Decimal
    category: str
    addon_type: Optional[str] = None
    included_days: Optional[int] = None
    species: Optional[str] = None
    weapons: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class HuntCodeOut(BaseModel):
    code: str
    species: str
    unit_description: Optional[str] = None
    season_text: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    weapon: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class QuoteIn(BaseModel):
    pricing_item_id: Optional[int] = None
    addons: dict[str, int] = Field(default_factory=dict)


class BillLineOut(BaseModel):
    kind: str
    title: str
    quantity: int
    unit_cents: int
    line_cents: int
    resolved_by_title: bool = False


class FeeBreakdownOut(BaseModel):
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    platform_fee_percent: float
    lines: List[BillLineOut] = Field(default_factory=list)


# -------------------- Booking --------------------

class HuntOut(BaseModel):
    id: int
    title: Optional[str] = None
    client_email: Optional[str] = None
    species: Optional[str] = None
    weapon: Optional[str] = None
    unit: Optional[str] = None
    hunt_code: Optional[str] = None
    season_window_start: Optional[date] = None
    season_window_end: Optional[date] = None
    selected_pricing_item_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BookingOptionsOut(BaseModel):
    hunt: HuntOut
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    plans: List[PricingItemOut]
    addons: List[PricingItemOut]


class CompleteBookingIn(BaseModel):
    pricing_item_id: int
    start_date: date
    end_date: date
    addons: dict[str, int] = Field(default_factory=dict)
    client_name: Optional[str] = None


class CompleteBookingOut(BaseModel):
    hunt_id: int
    contract_id: int
    contract_status: str
    contract_created: bool
    days: int
    quote: FeeBreakdownOut


# -------------------- Contracts --------------------

class ContractOut(BaseModel):
    id: int
    hunt_id: Optional[int] = None
    client_email: str
    client_name: Optional[str] = None
    status: str
    content: Optional[str] = None
    client_completion: Optional[dict[str, Any]] = None
    signature_tracking_ref: Optional[str] = None
    created_at: datetime
    client_signed_at: Optional[datetime] = None
    admin_signed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class ContractCreateIn(BaseModel):
    client_email: str
    hunt_id: Optional[int] = None
    client_name: Optional[str] = None


class EnsureContractIn(BaseModel):
    hunt_id: int


class LinkHuntIn(BaseModel):
    hunt_id: int


class SubmitCompletionIn(BaseModel):
    client_name: Optional[str] = None


class ReviewIn(BaseModel):
    action: str  # approve | reject
    notes: Optional[str] = None


class CancelIn(BaseModel):
    reason: Optional[str] = None


# -------------------- Bills --------------------

class PaymentItemOut(BaseModel):
    id: int
    item_type: str
    description: Optional[str] = None
    installment_number: Optional[int] = None
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    amount_paid_cents: int
    due_date: Optional[date] = None
    status: str
    paid_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class BillOut(BaseModel):
    contract_id: int
    mode: str
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    amount_paid_cents: int
    balance_cents: int
    refreshed: bool = False
    lines: List[BillLineOut] = Field(default_factory=list)
    items: List[PaymentItemOut]


class PaymentPlanIn(BaseModel):
    installments: int
    first_due_date: date


class RecordPaymentIn(BaseModel):
    amount_cents: int


# -------------------- Signature webhook --------------------

class SignatureWebhookIn(BaseModel):
    tracking_ref: str
    client_signed: bool = False
    admin_signed: bool = False


class SignatureWebhookOut(BaseModel):
    ok: bool
    contract_id: Optional[int] = None
    status: Optional[str] = None
