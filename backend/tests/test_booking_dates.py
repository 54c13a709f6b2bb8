# backend/tests/test_booking_dates.py
from __future__ import annotations

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from hunt_engine.domain.booking_dates import (
    INVALID_RANGE,
    OUTSIDE_SEASON_WINDOW,
    WRONG_DURATION,
    SeasonWindow,
    derive_required_days,
    inclusive_days,
    require_valid_span,
    validate_span,
)
from hunt_engine.domain.errors import ValidationError

PLAN = SimpleNamespace(included_days=5)
OCTOBER = SeasonWindow(date(2025, 10, 1), date(2025, 10, 31))


def test_required_days_adds_extra_days():
    assert derive_required_days(PLAN, 2) == 7
    assert derive_required_days(PLAN, -3) == 5
    assert derive_required_days(None, 0) == 0


def test_five_plus_two_accepts_seven_day_span_only():
    required = derive_required_days(PLAN, 2)
    assert validate_span(date(2025, 10, 1), date(2025, 10, 7), OCTOBER, required).ok

    short = validate_span(date(2025, 10, 1), date(2025, 10, 6), OCTOBER, required)
    long = validate_span(date(2025, 10, 1), date(2025, 10, 8), OCTOBER, required)
    assert short.error_code == WRONG_DURATION and short.days == 6
    assert long.error_code == WRONG_DURATION and long.days == 8
    assert "requires a 7-day span" in short.message


def test_end_before_start_is_invalid_range():
    chk = validate_span(date(2025, 10, 5), date(2025, 10, 4), OCTOBER, 0)
    assert chk.error_code == INVALID_RANGE


def test_either_endpoint_outside_window():
    chk = validate_span(date(2025, 10, 28), date(2025, 11, 2), OCTOBER, 6)
    assert chk.error_code == OUTSIDE_SEASON_WINDOW
    assert chk.details == {"window_start": "2025-10-01", "window_end": "2025-10-31"}


def test_no_required_days_accepts_any_span():
    assert validate_span(date(2025, 10, 1), date(2025, 10, 1), None, 0).days == 1
    assert validate_span(date(2025, 10, 1), date(2025, 10, 20), None, 0).ok


def test_day_count_ignores_time_of_day():
    # a booking saved as 00:00 .. 23:59:59 across the DST change still counts calendar days
    assert inclusive_days(datetime(2025, 11, 1, 0, 0), datetime(2025, 11, 3, 23, 59, 59)) == 3
    assert inclusive_days(date(2025, 3, 8), date(2025, 3, 10)) == 3


def test_require_valid_span_raises_with_legal_values():
    with pytest.raises(ValidationError) as ei:
        require_valid_span(date(2025, 10, 1), date(2025, 10, 3), OCTOBER, 7)
    assert ei.value.code == WRONG_DURATION
    assert ei.value.details["required_days"] == 7
    assert require_valid_span(date(2025, 10, 1), date(2025, 10, 7), OCTOBER, 7) == 7
