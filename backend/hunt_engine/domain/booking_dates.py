# backend/hunt_engine/domain/booking_dates.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional

from .errors import ValidationError

INVALID_RANGE = "InvalidRange"
OUTSIDE_SEASON_WINDOW = "OutsideSeasonWindow"
WRONG_DURATION = "WrongDuration"

_NOON = time(12, 0, tzinfo=timezone.utc)
_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class SeasonWindow:
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def label(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True)
class SpanCheck:
    ok: bool
    days: Optional[int]
    error_code: Optional[str] = None
    message: Optional[str] = None
    details: Optional[dict[str, Any]] = None

    def raise_for_error(self) -> None:
        if not self.ok:
            raise ValidationError(self.message or "invalid booking dates", code=self.error_code, details=self.details)


def as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def _at_noon(d: date) -> datetime:
    # Pin both ends to noon UTC; DST/timezone drift can't move a noon across midnight.
    return datetime.combine(d, _NOON)


def inclusive_days(start: Any, end: Any) -> int:
    s = as_date(start)
    e = as_date(end)
    if s is None or e is None:
        raise ValidationError("start and end dates are required", code=INVALID_RANGE)
    return (_at_noon(e) - _at_noon(s)) // _ONE_DAY + 1


def derive_required_days(plan: Any, extra_days: Any) -> int:
    """(plan.included_days or 0) + max(0, extra_days); 0 means any span is fine."""
    included = getattr(plan, "included_days", None) if plan is not None else None
    try:
        extra = int(extra_days or 0)
    except (TypeError, ValueError):
        extra = 0
    return int(included or 0) + max(0, extra)


def validate_span(
    start: Any,
    end: Any,
    window: Optional[SeasonWindow],
    required_days: int,
) -> SpanCheck:
    s = as_date(start)
    e = as_date(end)
    if s is None or e is None:
        return SpanCheck(ok=False, days=None, error_code=INVALID_RANGE, message="start and end dates are required")

    if e < s:
        return SpanCheck(
            ok=False,
            days=None,
            error_code=INVALID_RANGE,
            message="end date must be on or after start date",
            details={"start_date": s.isoformat(), "end_date": e.isoformat()},
        )

    days = inclusive_days(s, e)

    if window is not None and not (window.contains(s) and window.contains(e)):
        return SpanCheck(
            ok=False,
            days=days,
            error_code=OUTSIDE_SEASON_WINDOW,
            message=f"dates must be within the hunt season ({window.label()})",
            details={"window_start": window.start.isoformat(), "window_end": window.end.isoformat()},
        )

    if required_days > 0 and days != required_days:
        return SpanCheck(
            ok=False,
            days=days,
            error_code=WRONG_DURATION,
            message=f"requires a {required_days}-day span; selected dates span {days} days",
            details={"required_days": required_days, "selected_days": days},
        )

    return SpanCheck(ok=True, days=days)


def require_valid_span(start: Any, end: Any, window: Optional[SeasonWindow], required_days: int) -> int:
    chk = validate_span(start, end, window, required_days)
    chk.raise_for_error()
    return int(chk.days or 0)


def window_for(start: Any, end: Any) -> Optional[SeasonWindow]:
    s = as_date(start)
    e = as_date(end)
    if s is None or e is None:
        return None
    return SeasonWindow(start=s, end=e)
