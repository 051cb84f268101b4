"""Rules applied before a period start is recorded.

Future starts and same-day duplicates are rejected.  A start that comes
sooner than the minimum cycle length after the previous one is accepted
with a warning, since short cycles are worth flagging but are real data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta

from src.cycle.calculator import PeriodRecord, sort_history
from src.cycle.config_loader import CycleConfig, get_cycle_config

logger = logging.getLogger("healthpath.cycle.validation")

FUTURE_START_MESSAGE = (
    "You cannot record a period for a future date. Please select today or a past date."
)
DUPLICATE_START_MESSAGE = "A period starting on {day} is already recorded."
END_BEFORE_START_MESSAGE = "Period end date cannot be before the start date."


@dataclass
class PeriodValidation:
    """Outcome of validating a period start.

    Attributes:
        is_valid:               False when the entry must not be stored.
        message:                Reason for rejection (empty when valid).
        warnings:               Non-blocking notices to show the user.
        days_since_last_period: Gap to the closest earlier recorded start.
        reason:                 "future", "duplicate" or "range" when rejected.
    """

    is_valid: bool
    message: str = ""
    reason: str = ""
    warnings: list[str] = field(default_factory=list)
    days_since_last_period: int | None = None


def short_cycle_warning(days: int) -> str:
    return (
        f"Your last period was only {days} day{'s' if days != 1 else ''} ago. "
        "Cycles shorter than 21 days may indicate a medical condition. "
        "Consider consulting a healthcare provider if this happens regularly."
    )


def validate_period_start(
    start: date,
    history: Iterable[PeriodRecord],
    as_of: date | None = None,
    config: CycleConfig | None = None,
) -> PeriodValidation:
    """Check a proposed period start against today and the existing history.

    Args:
        start:   Proposed first day of bleeding.
        history: Already recorded periods, any order.
        as_of:   Reference "today" (defaults to the current date).
        config:  Cycle configuration.

    Returns:
        PeriodValidation; callers store the entry only when ``is_valid``.
    """
    cfg = config or get_cycle_config()
    today = as_of or date.today()

    if start > today:
        return PeriodValidation(is_valid=False, message=FUTURE_START_MESSAGE, reason="future")

    ordered = sort_history(history)
    if any(r.start_date == start for r in ordered):
        return PeriodValidation(
            is_valid=False,
            message=DUPLICATE_START_MESSAGE.format(day=start.isoformat()),
            reason="duplicate",
        )

    previous = next((r for r in ordered if r.start_date < start), None)
    if previous is None:
        return PeriodValidation(is_valid=True)

    gap = (start - previous.start_date).days
    result = PeriodValidation(is_valid=True, days_since_last_period=gap)
    if gap < cfg.cycle.min_days:
        logger.info("Short cycle gap of %d days before %s", gap, start)
        result.warnings.append(short_cycle_warning(gap))
    return result


def validate_period_range(start: date, end: date | None) -> PeriodValidation:
    if end is not None and end < start:
        return PeriodValidation(is_valid=False, message=END_BEFORE_START_MESSAGE, reason="range")
    return PeriodValidation(is_valid=True)


def adjust_period_start(
    selected: date,
    symptoms_by_date: Mapping[date, Iterable[str]],
    lookback_days: int | None = None,
    config: CycleConfig | None = None,
) -> date:
    """Move a period start back to the earliest recent day with period symptoms.

    Users often log cramps or bloating a few days before marking a period
    start.  Any day within the lookback window whose day log carries a
    configured period symptom becomes the effective start.

    Args:
        selected:         Date the user picked as the start.
        symptoms_by_date: Logged symptoms keyed by date.
        lookback_days:    Days to scan before ``selected`` (config default 7).
        config:           Cycle configuration.

    Returns:
        The earliest matching date, or ``selected`` when none match.
    """
    cfg = config or get_cycle_config()
    window = cfg.period.symptom_lookback_days if lookback_days is None else lookback_days

    for offset in range(window, 0, -1):
        candidate = selected - timedelta(days=offset)
        if any(cfg.is_known_symptom(s) for s in symptoms_by_date.get(candidate, ())):
            logger.debug("Adjusted period start %s → %s from symptoms", selected, candidate)
            return candidate
    return selected
