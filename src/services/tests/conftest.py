"""Shared fixtures for service tests: in-memory store, memory-only storage
and a tracker pinned to a fixed date."""

from __future__ import annotations

from datetime import date

import pytest

from src.config import Settings
from src.cycle.config_loader import load_cycle_config
from src.models.tracking import PeriodEntryCreate
from src.services.documents import MemoryDocumentStore
from src.services.tracker import TrackerService
from src.storage.backends import MemoryBackend
from src.storage.service import StorageService

TODAY = date(2026, 2, 23)
USER_ID = "user_alice"
PARTNER_ID = "user_bob"

# Four starts 28 days apart, oldest first
REGULAR_STARTS = [date(2025, 11, 18), date(2025, 12, 16), date(2026, 1, 13), date(2026, 2, 10)]


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def storage() -> StorageService:
    return StorageService([MemoryBackend])


@pytest.fixture
def tracker(store: MemoryDocumentStore, storage: StorageService) -> TrackerService:
    return TrackerService(
        store,
        storage,
        config=load_cycle_config(),
        settings=Settings(),
        clock=lambda: TODAY,
    )


async def seed_periods(tracker: TrackerService, starts: list[date], user_id: str = USER_ID) -> None:
    for start in starts:
        await tracker.log_period(user_id, PeriodEntryCreate(start_date=start))
