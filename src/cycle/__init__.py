"""HealthPath cycle engine.

Pure date arithmetic over logged period history:

    - calculator: average cycle length, next period, ovulation, fertile window, phase
    - validation: rules applied before a period start is stored
    - calendar:   per-day flags for the calendar views and cycle-data access rules
    - countdown:  headline event for the cycle card
"""

from src.cycle.calculator import (
    CycleInfo,
    FertileWindow,
    PeriodRecord,
    average_cycle_length,
    average_period_length,
    calculate_cycle_info,
    calculate_fertile_window,
    cycle_lengths,
    days_to_ovulation,
    infer_phase,
)
from src.cycle.config_loader import CycleConfig, get_cycle_config, reload_cycle_config
from src.cycle.countdown import NextEvent, next_event
from src.cycle.validation import (
    PeriodValidation,
    adjust_period_start,
    validate_period_range,
    validate_period_start,
)

__all__ = [
    "CycleConfig",
    "CycleInfo",
    "FertileWindow",
    "NextEvent",
    "PeriodRecord",
    "PeriodValidation",
    "adjust_period_start",
    "average_cycle_length",
    "average_period_length",
    "calculate_cycle_info",
    "calculate_fertile_window",
    "cycle_lengths",
    "days_to_ovulation",
    "get_cycle_config",
    "infer_phase",
    "next_event",
    "reload_cycle_config",
    "validate_period_range",
    "validate_period_start",
]
