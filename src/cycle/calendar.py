"""Per-day calendar state for the cycle views.

Every function is pure date arithmetic over the period history and the
predicted fertile window, so the two-week strip and the month view show
the same flags for the same day.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from src.cycle.calculator import FertileWindow, PeriodRecord
from src.cycle.config_loader import CycleConfig, get_cycle_config

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

GENDER_FEMALE = "female"
GENDER_MALE = "male"


@dataclass
class DayState:
    """Everything the calendar needs to render a single day.

    Attributes:
        day:                 Calendar date.
        is_today:            Date equals the reference "today".
        is_past:             Date is strictly before "today".
        is_period:           Inside a recorded period.
        is_predicted_period: Inside the next predicted period.
        is_fertile:          Inside the predicted fertile window.
        is_ovulation:        Predicted ovulation day.
        has_data:            A day log exists for this date.
        flow:                Logged flow intensity, if any.
    """

    day: date
    is_today: bool = False
    is_past: bool = False
    is_period: bool = False
    is_predicted_period: bool = False
    is_fertile: bool = False
    is_ovulation: bool = False
    has_data: bool = False
    flow: str | None = None


def period_end(record: PeriodRecord, period_length: int) -> date:
    """Last bleeding day; open entries span ``period_length`` days."""
    if record.end_date is not None:
        return record.end_date
    return record.start_date + timedelta(days=max(period_length, 1) - 1)


def is_period_day(day: date, history: Iterable[PeriodRecord], period_length: int) -> bool:
    return any(r.start_date <= day <= period_end(r, period_length) for r in history)


def is_predicted_period_day(day: date, window: FertileWindow | None) -> bool:
    if window is None:
        return False
    end = window.next_period_start + timedelta(days=max(window.period_length, 1) - 1)
    return window.next_period_start <= day <= end


def is_fertile_day(day: date, window: FertileWindow | None) -> bool:
    return window is not None and window.fertile_start <= day <= window.fertile_end


def is_ovulation_day(day: date, window: FertileWindow | None) -> bool:
    return window is not None and day == window.ovulation_date


def day_state(
    day: date,
    history: Iterable[PeriodRecord],
    window: FertileWindow | None,
    period_length: int,
    logged: Mapping[date, str | None] | None = None,
    today: date | None = None,
) -> DayState:
    """Build the DayState for ``day``.

    Args:
        day:           Date to describe.
        history:       Recorded periods.
        window:        Predicted fertile window (None hides predictions).
        period_length: Length used for open-ended recorded periods.
        logged:        Day logs present in the view, mapping date → flow
                       (``None`` when the log has no period flow).
        today:         Reference date (defaults to the current date).
    """
    ref = today or date.today()
    logged = logged or {}
    return DayState(
        day=day,
        is_today=day == ref,
        is_past=day < ref,
        is_period=is_period_day(day, history, period_length),
        is_predicted_period=is_predicted_period_day(day, window),
        is_fertile=is_fertile_day(day, window),
        is_ovulation=is_ovulation_day(day, window),
        has_data=day in logged,
        flow=logged.get(day),
    )


# ---------------------------------------------------------------------------
# Two-week strip and month grid
# ---------------------------------------------------------------------------


def two_week_dates(start: date, config: CycleConfig | None = None) -> list[date]:
    """Consecutive days of the strip; its length is ``calendar.window_days``."""
    window_days = (config or get_cycle_config()).calendar_window_days
    return [start + timedelta(days=i) for i in range(window_days)]


def shift_two_weeks(start: date, direction: str, config: CycleConfig | None = None) -> date:
    """Move the strip one page back ('prev') or forward ('next')."""
    page = timedelta(days=(config or get_cycle_config()).calendar_window_days)
    if direction == "prev":
        return start - page
    if direction == "next":
        return start + page
    raise ValueError(f"direction must be 'prev' or 'next', got {direction!r}")


def date_range_label(start: date, config: CycleConfig | None = None) -> str:
    """Header for the two-week strip, e.g. 'Feb 2026' or 'Feb - Mar 2026'.

    A strip crossing New Year names both years: 'Dec 2025 - Jan 2026'.
    """
    end = two_week_dates(start, config)[-1]
    start_month = MONTH_ABBR[start.month - 1]
    end_month = MONTH_ABBR[end.month - 1]
    if start.year != end.year:
        return f"{start_month} {start.year} - {end_month} {end.year}"
    if start.month == end.month:
        return f"{start_month} {start.year}"
    return f"{start_month} - {end_month} {start.year}"


def month_grid(year: int, month: int) -> list[date | None]:
    """Days of a month for a Sunday-first grid, padded with leading ``None``."""
    first = date(year, month, 1)
    following = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    days_in_month = (following - first).days
    # weekday() is Monday=0; shift so Sunday=0
    padding = (first.weekday() + 1) % 7
    days: list[date | None] = [None] * padding
    days.extend(date(year, month, d) for d in range(1, days_in_month + 1))
    return days


# ---------------------------------------------------------------------------
# Access rules
# ---------------------------------------------------------------------------


def can_view_cycle_data(gender: str | None, partner_id: str | None) -> bool:
    """Women see their own cycle; men see it once linked to a partner."""
    if gender == GENDER_FEMALE:
        return True
    return gender == GENDER_MALE and bool(partner_id)


def can_edit_cycle_data(gender: str | None) -> bool:
    return gender == GENDER_FEMALE


def target_user_id(user_id: str, gender: str | None, partner_id: str | None) -> str:
    """Whose cycle data to read: the partner's for a linked man, else the user's own."""
    if gender == GENDER_MALE and partner_id:
        return partner_id
    return user_id
