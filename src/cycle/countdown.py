"""Headline countdown for the cycle card: the next thing the user should expect."""

from __future__ import annotations

from dataclasses import dataclass

from src.cycle.calculator import CycleInfo
from src.cycle.config_loader import CycleConfig, get_cycle_config

EVENT_PERIOD = "period"
EVENT_OVULATION = "ovulation"


@dataclass
class NextEvent:
    """The upcoming (or overdue) cycle event.

    Attributes:
        event_type:  'period' or 'ovulation'.
        countdown:   Absolute number of days to (or since) the event.
        is_today:    The event falls on the reference date.
        is_past:     The event date has already passed.
        message:     Headline text.
        sub_message: Supporting line under the headline.
    """

    event_type: str
    countdown: int
    is_today: bool
    is_past: bool
    message: str
    sub_message: str


def _ovulation_event(days: int) -> NextEvent:
    if days == 0:
        return NextEvent(EVENT_OVULATION, 0, True, False,
                         "Ovulation predicted today", "Peak fertility window")
    if days > 0:
        message = ("Ovulation predicted tomorrow" if days == 1
                   else f"Ovulation predicted in {days} days")
        return NextEvent(EVENT_OVULATION, days, False, False,
                         message, "You are in your ovulation window")
    ago = abs(days)
    message = "Ovulated yesterday" if ago == 1 else f"Ovulated {ago} days ago"
    return NextEvent(EVENT_OVULATION, ago, False, True,
                     message, "Still in your ovulation window")


def next_event(
    cycle_info: CycleInfo,
    days_to_ovulation: int | None,
    fertile_days_before: int | None = None,
    fertile_days_after: int | None = None,
    config: CycleConfig | None = None,
) -> NextEvent:
    """Pick the event to headline.

    Priority: no data, then the ovulation window, then period today,
    then an overdue period, then the upcoming period.

    Args:
        cycle_info:          Current cycle position.
        days_to_ovulation:   Signed days to predicted ovulation.
        fertile_days_before: Window size before ovulation (config default 5).
        fertile_days_after:  Window size after ovulation (config default 1).
        config:              Cycle configuration.
    """
    cfg = config or get_cycle_config()
    before = cfg.fertile_window.days_before if fertile_days_before is None else fertile_days_before
    after = cfg.fertile_window.days_after if fertile_days_after is None else fertile_days_after

    if not cycle_info.is_data_available:
        return NextEvent(
            EVENT_PERIOD,
            cfg.cycle.default_days,
            False,
            False,
            "Start tracking your cycle",
            "Log your period flow to get personalised predictions",
        )

    if days_to_ovulation is not None and -after <= days_to_ovulation <= before:
        return _ovulation_event(days_to_ovulation)

    days = cycle_info.days_until_next_period
    if days == 0:
        return NextEvent(EVENT_PERIOD, 0, True, False,
                         "Next period expected today", "Track your flow today")
    if days < 0:
        overdue = abs(days)
        message = ("Your period was expected 1 day ago" if overdue == 1
                   else f"Your period was expected {overdue} days ago")
        return NextEvent(EVENT_PERIOD, overdue, False, True,
                         message, "Log your period data when it starts")

    message = "Next period expected tomorrow" if days == 1 else f"Next period in {days} days"
    return NextEvent(EVENT_PERIOD, days, False, False,
                     message, f"{cycle_info.average_cycle_length} day average cycle")
