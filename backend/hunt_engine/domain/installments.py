# backend/hunt_engine/domain/installments.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..config import settings
from .errors import ValidationError
from .fees import percent_of


@dataclass(frozen=True)
class Installment:
    number: int
    amount_cents: int  # what the client pays for this installment
    platform_fee_cents: int
    subtotal_cents: int
    due_date: date

    def as_dict(self) -> dict:
        return {
            "number": self.number,
            "amount_cents": self.amount_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "subtotal_cents": self.subtotal_cents,
            "due_date": self.due_date.isoformat(),
        }


def add_months(anchor: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the end of a shorter month."""
    idx = anchor.month - 1 + int(months)
    y = anchor.year + idx // 12
    m = idx % 12 + 1
    last = calendar.monthrange(y, m)[1]
    return date(y, m, min(anchor.day, last))


def installment_fee_cents(slice_cents: int, percent: float) -> int:
    if slice_cents <= 0:
        return 0
    return min(slice_cents, max(1, percent_of(slice_cents, percent)))


def split(
    total_cents: int,
    n: int,
    first_due_date: date,
    platform_fee_percent: Optional[float] = None,
) -> list[Installment]:
    """
    Split a total into n installments that sum to the total exactly.

    The first (total % n) installments carry the extra cent. Fees are
    recomputed per slice, so installment subtotals can drift a few cents
    from the parent subtotal while totals stay exact.
    """
    lo, hi = settings.installments_min, settings.installments_max
    try:
        n = int(n)
    except (TypeError, ValueError):
        n = 0
    if n < lo or n > hi:
        raise ValidationError(
            f"number of installments must be between {lo} and {hi}",
            code="InvalidInstallmentCount",
            details={"min_installments": lo, "max_installments": hi},
        )

    total = int(total_cents)
    if total < 0:
        raise ValidationError("total must not be negative", code="InvalidAmount")

    pct = settings.platform_fee_percent if platform_fee_percent is None else float(platform_fee_percent)

    base = total // n
    remainder = total - base * n

    out: list[Installment] = []
    for i in range(n):
        amount = base + (1 if i < remainder else 0)
        fee = installment_fee_cents(amount, pct)
        out.append(
            Installment(
                number=i + 1,
                amount_cents=amount,
                platform_fee_cents=fee,
                subtotal_cents=amount - fee,
                due_date=add_months(first_due_date, i),
            )
        )
    return out
