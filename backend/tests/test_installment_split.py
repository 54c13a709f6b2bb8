# backend/tests/test_installment_split.py
from __future__ import annotations

from datetime import date

import pytest

from hunt_engine.domain.errors import ValidationError
from hunt_engine.domain.installments import add_months, split


def test_even_split_of_the_elk_booking():
    out = split(472500, 4, date(2025, 3, 1), 5.0)
    assert [x.amount_cents for x in out] == [118125] * 4
    assert [x.due_date for x in out] == [date(2025, 3, 1), date(2025, 4, 1), date(2025, 5, 1), date(2025, 6, 1)]
    assert all(x.platform_fee_cents == 5907 for x in out)
    assert all(x.subtotal_cents + x.platform_fee_cents == x.amount_cents for x in out)


@pytest.mark.parametrize("total", [0, 1, 99, 100001, 472501, 999999])
@pytest.mark.parametrize("n", [2, 3, 7, 12])
def test_installments_sum_to_total(total, n):
    out = split(total, n, date(2025, 1, 15), 5.0)
    amounts = [x.amount_cents for x in out]
    assert sum(amounts) == total
    assert max(amounts) - min(amounts) <= 1
    assert amounts == sorted(amounts, reverse=True)


def test_small_slices_pay_at_least_one_cent_fee():
    out = split(10, 2, date(2025, 1, 1), 5.0)
    assert [x.platform_fee_cents for x in out] == [1, 1]
    zero = split(1, 2, date(2025, 1, 1), 5.0)
    assert [x.platform_fee_cents for x in zero] == [1, 0]


def test_month_end_due_dates_clamp_and_keep_anchor():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2025, 1, 31), 2) == date(2025, 3, 31)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2025, 11, 30), 3) == date(2026, 2, 28)


@pytest.mark.parametrize("n", [0, 1, 13])
def test_installment_count_bounds(n):
    with pytest.raises(ValidationError) as ei:
        split(100000, n, date(2025, 1, 1))
    assert ei.value.code == "InvalidInstallmentCount"
    assert ei.value.details == {"min_installments": 2, "max_installments": 12}
