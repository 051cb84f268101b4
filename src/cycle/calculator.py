"""Menstrual cycle prediction from logged period history.

Calendar averaging only:

- the mean gap between consecutive period starts predicts the next start
- ovulation sits one luteal phase (14 days) before the predicted start
- the fertile window runs from 5 days before to 1 day after ovulation

Until two starts are logged every prediction falls back to the configured
28-day default.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta

from src.cycle.config_loader import CycleConfig, get_cycle_config

logger = logging.getLogger("healthpath.cycle.calculator")

PHASE_MENSTRUAL = "menstrual"
PHASE_FOLLICULAR = "follicular"
PHASE_OVULATORY = "ovulatory"
PHASE_LUTEAL = "luteal"
PHASE_UNKNOWN = "unknown"


@dataclass
class PeriodRecord:
    """One logged period.

    Attributes:
        start_date: First day of bleeding.
        end_date:   Last day of bleeding, if the user recorded it.
        symptoms:   Symptoms captured with the entry.
        entry_id:   Document id in the period history collection.
    """

    start_date: date
    end_date: date | None = None
    symptoms: list[str] = field(default_factory=list)
    entry_id: str | None = None

    @property
    def length_days(self) -> int | None:
        if self.end_date is None:
            return None
        return (self.end_date - self.start_date).days + 1


@dataclass
class CycleInfo:
    """Where the user is in the current cycle.

    Attributes:
        days_until_next_period: Negative when the predicted start has passed.
        next_period_date:       Predicted first day of the next period.
        average_cycle_length:   Rounded average (default when no data).
        last_period_date:       Most recent logged start.
        cycle_phase:            One of the PHASE_* constants.
        days_since_last_period: Days elapsed since ``last_period_date``.
        current_cycle_day:      1-indexed day within the current cycle.
        is_data_available:      False when no period has been logged.
        is_irregular:           True when a gap falls outside the normal range
                                or the gaps vary widely.
        warnings:               Human-readable flags for irregular gaps.
    """

    days_until_next_period: int
    next_period_date: date
    average_cycle_length: int
    last_period_date: date | None = None
    cycle_phase: str = PHASE_UNKNOWN
    days_since_last_period: int = 0
    current_cycle_day: int | None = None
    is_data_available: bool = False
    is_irregular: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class FertileWindow:
    ovulation_date: date
    fertile_start: date
    fertile_end: date
    next_period_start: date
    cycle_length: int
    period_length: int
    is_default: bool = False


def sort_history(history: Iterable[PeriodRecord]) -> list[PeriodRecord]:
    """Return period records newest first."""
    return sorted(history, key=lambda r: r.start_date, reverse=True)


def cycle_lengths(history: Iterable[PeriodRecord]) -> list[int]:
    """Day gaps between consecutive period starts, newest gap first."""
    ordered = sort_history(history)
    return [
        (newer.start_date - older.start_date).days
        for newer, older in zip(ordered, ordered[1:])
    ]


def average_cycle_length(history: Iterable[PeriodRecord]) -> float | None:
    """Arithmetic mean of consecutive start-date gaps.

    Returns:
        The mean in days, or None when fewer than two starts are logged.
    """
    lengths = cycle_lengths(history)
    if not lengths:
        return None
    return statistics.mean(lengths)


def predicted_cycle_length(
    history: Iterable[PeriodRecord], config: CycleConfig | None = None
) -> int:
    """Rounded average cycle length, or the configured default."""
    cfg = config or get_cycle_config()
    avg = average_cycle_length(history)
    return round(avg) if avg is not None else cfg.cycle.default_days


def average_period_length(
    history: Iterable[PeriodRecord], config: CycleConfig | None = None
) -> int:
    """Rounded mean bleeding length over entries that have an end date."""
    cfg = config or get_cycle_config()
    lengths = [r.length_days for r in history if r.length_days is not None]
    if not lengths:
        return cfg.period.default_length_days
    return round(statistics.mean(lengths))


def classify_cycle(cycle_length: int, config: CycleConfig | None = None) -> str:
    """Classify a cycle length as 'short', 'long', or 'normal'."""
    cfg = config or get_cycle_config()
    if cycle_length < cfg.cycle.min_days:
        return "short"
    if cycle_length > cfg.cycle.max_days:
        return "long"
    return "normal"


def irregularity_warnings(
    history: Iterable[PeriodRecord], config: CycleConfig | None = None
) -> list[str]:
    """One warning per gap outside the configured [min, max] range."""
    cfg = config or get_cycle_config()
    warnings: list[str] = []
    for length in cycle_lengths(history):
        kind = classify_cycle(length, cfg)
        if kind == "short":
            warnings.append(
                f"Short cycle detected: {length} days (below {cfg.cycle.min_days} day minimum)"
            )
        elif kind == "long":
            warnings.append(
                f"Long cycle detected: {length} days (above {cfg.cycle.max_days} day maximum)"
            )
    return warnings


def is_irregular(history: Iterable[PeriodRecord], config: CycleConfig | None = None) -> bool:
    cfg = config or get_cycle_config()
    lengths = cycle_lengths(history)
    if any(classify_cycle(n, cfg) != "normal" for n in lengths):
        return True
    return len(lengths) > 1 and statistics.stdev(lengths) > cfg.cycle.irregular_std_days


def cycle_day_from_start(period_start: date, query_date: date) -> int:
    """Cycle day for ``query_date``; day 1 is the first day of the period."""
    return (query_date - period_start).days + 1


def infer_phase(
    cycle_day: int | None,
    ovulation_day: int | None,
    period_length: int,
    margin: int = 1,
) -> str:
    """Infer the cycle phase from the current cycle day.

    Args:
        cycle_day:     1-indexed day within the current cycle.
        ovulation_day: Cycle day of predicted ovulation.
        period_length: Expected bleeding length in days.
        margin:        Days either side of ovulation counted as ovulatory.

    Returns:
        One of 'menstrual', 'follicular', 'ovulatory', 'luteal', 'unknown'.
    """
    if cycle_day is None or cycle_day < 1:
        return PHASE_UNKNOWN
    if cycle_day <= period_length:
        return PHASE_MENSTRUAL
    if ovulation_day is None:
        return PHASE_UNKNOWN
    days_to_ov = ovulation_day - cycle_day
    if days_to_ov > margin:
        return PHASE_FOLLICULAR
    if days_to_ov >= -margin:
        return PHASE_OVULATORY
    return PHASE_LUTEAL


def calculate_cycle_info(
    history: Iterable[PeriodRecord],
    as_of: date | None = None,
    config: CycleConfig | None = None,
) -> CycleInfo:
    """Compute the current cycle position from period history.

    Args:
        history: Logged periods in any order.
        as_of:   Reference date (defaults to today).
        config:  Cycle configuration (defaults to the global singleton).
    """
    cfg = config or get_cycle_config()
    today = as_of or date.today()
    ordered = sort_history(history)

    if not ordered:
        default = cfg.cycle.default_days
        return CycleInfo(
            days_until_next_period=default,
            next_period_date=today + timedelta(days=default),
            average_cycle_length=default,
        )

    last_start = ordered[0].start_date
    cycle_length = predicted_cycle_length(ordered, cfg)
    period_length = average_period_length(ordered, cfg)
    next_start = last_start + timedelta(days=cycle_length)
    days_since = (today - last_start).days
    cycle_day = max(1, cycle_day_from_start(last_start, today))
    ovulation_day = cycle_length - cfg.ovulation.luteal_phase_days + 1

    warnings = irregularity_warnings(ordered, cfg)
    info = CycleInfo(
        days_until_next_period=(next_start - today).days,
        next_period_date=next_start,
        average_cycle_length=cycle_length,
        last_period_date=last_start,
        cycle_phase=infer_phase(
            cycle_day, ovulation_day, period_length, cfg.ovulation.ovulatory_margin_days
        ),
        days_since_last_period=days_since,
        current_cycle_day=cycle_day,
        is_data_available=True,
        is_irregular=is_irregular(ordered, cfg),
        warnings=warnings,
    )
    logger.debug(
        "Cycle info: day %d of %d, phase=%s, next=%s",
        cycle_day,
        cycle_length,
        info.cycle_phase,
        next_start,
    )
    return info


def calculate_fertile_window(
    history: Iterable[PeriodRecord],
    as_of: date | None = None,
    config: CycleConfig | None = None,
) -> FertileWindow:
    """Predict the next ovulation and the fertile window around it.

    With no history the window is anchored on ``as_of``: ovulation in one
    luteal phase, next period in one default cycle.
    """
    cfg = config or get_cycle_config()
    today = as_of or date.today()
    ordered = sort_history(history)
    luteal = timedelta(days=cfg.ovulation.luteal_phase_days)
    before = timedelta(days=cfg.fertile_window.days_before)
    after = timedelta(days=cfg.fertile_window.days_after)
    period_length = average_period_length(ordered, cfg)

    if not ordered:
        ovulation = today + luteal
        return FertileWindow(
            ovulation_date=ovulation,
            fertile_start=ovulation - before,
            fertile_end=ovulation + after,
            next_period_start=today + timedelta(days=cfg.cycle.default_days),
            cycle_length=cfg.cycle.default_days,
            period_length=period_length,
            is_default=True,
        )

    cycle_length = predicted_cycle_length(ordered, cfg)
    next_start = ordered[0].start_date + timedelta(days=cycle_length)
    ovulation = next_start - luteal
    return FertileWindow(
        ovulation_date=ovulation,
        fertile_start=ovulation - before,
        fertile_end=ovulation + after,
        next_period_start=next_start,
        cycle_length=cycle_length,
        period_length=period_length,
    )


def days_to_ovulation(window: FertileWindow, as_of: date | None = None) -> int:
    """Signed days from ``as_of`` to predicted ovulation (negative once past)."""
    return (window.ovulation_date - (as_of or date.today())).days
