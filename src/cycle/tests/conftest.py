"""Shared fixtures for cycle engine tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.cycle.calculator import PeriodRecord
from src.cycle.config_loader import CycleConfig, load_cycle_config

# Fixed "today" so predictions are deterministic
TEST_DATE = date(2026, 2, 23)


def make_history(last_start: date, gaps: list[int], period_days: int | None = 5) -> list[PeriodRecord]:
    """Build period records walking back from ``last_start`` by each gap (newest first)."""
    records = []
    start = last_start
    for gap in [0, *gaps]:
        start = start - timedelta(days=gap)
        end = start + timedelta(days=period_days - 1) if period_days else None
        records.append(PeriodRecord(start_date=start, end_date=end))
    return records


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Load the bundled cycle config for tests."""
    return load_cycle_config()


@pytest.fixture
def regular_history() -> list[PeriodRecord]:
    """Four periods exactly 28 days apart, the latest starting 2026-02-10."""
    return make_history(date(2026, 2, 10), [28, 28, 28])
