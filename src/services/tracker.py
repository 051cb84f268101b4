"""Tracker service: period history, day logs, and the mood / sleep /
nutrition / activity trackers.

Period history and tracker entries live in the document store under
``users/{user_id}/tracker_*``.  Day logs are small per-date records kept in
the tiered local storage (``day_log:{user_id}:{YYYY-MM-DD}``).  Cycle
predictions are computed on demand by ``src.cycle`` from the stored history.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from src.config import Settings, get_settings
from src.cycle.calculator import (
    CycleInfo,
    FertileWindow,
    PeriodRecord,
    average_period_length,
    calculate_cycle_info,
    calculate_fertile_window,
    days_to_ovulation,
)
from src.cycle.calendar import DayState, day_state, month_grid, two_week_dates
from src.cycle.config_loader import CycleConfig, get_cycle_config
from src.cycle.countdown import NextEvent, next_event
from src.cycle.validation import (
    PeriodValidation,
    adjust_period_start,
    validate_period_range,
    validate_period_start,
)
from src.models.base import utc_now
from src.models.tracking import (
    SLEEP_QUALITY_SCORES,
    TRACKER_COLLECTIONS,
    ActivityEntryCreate,
    ActivityEntryRead,
    ActivitySummary,
    ActivityType,
    DayLogRead,
    DayLogWrite,
    MoodEntryCreate,
    MoodEntryRead,
    NutritionEntryCreate,
    NutritionEntryRead,
    PeriodDayData,
    PeriodEntryCreate,
    PeriodEntryRead,
    SleepEntryCreate,
    SleepEntryRead,
    TrackerType,
)
from src.services.documents import DocumentStore, Filter, get_document_store, user_collection
from src.storage.service import StorageService, get_storage

logger = logging.getLogger("healthpath.tracker")

DAY_LOG_PREFIX = "day_log"
EMPTY_DAY_LOG_MESSAGE = "Please fill in at least one field before saving."
FUTURE_PERIOD_LOG_MESSAGE = "Period data cannot be logged for a future date."


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TrackerError(ValueError):
    """Base class for tracker rule violations."""


class PeriodValidationError(TrackerError):
    def __init__(self, message: str, validation: PeriodValidation | None = None) -> None:
        super().__init__(message)
        self.validation = validation


class DuplicatePeriodError(PeriodValidationError):
    """A period starting on the same day is already recorded."""


class DayLogValidationError(TrackerError):
    pass


class TrackerInputError(TrackerError):
    """Malformed tracker input: bad ranges, missing measurements, unknown types."""


class EntryNotFoundError(TrackerError):
    pass


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class PeriodLogResult:
    entry: PeriodEntryRead
    warnings: list[str] = field(default_factory=list)


@dataclass
class DayLogSaveResult:
    """A saved day log plus the period entry it created, if it marked a start."""

    day_log: DayLogRead
    period_entry: PeriodEntryRead | None = None
    warnings: list[str] = field(default_factory=list)


def day_log_key(user_id: str, day: date) -> str:
    return f"{DAY_LOG_PREFIX}:{user_id}:{day.isoformat()}"


def _date_field(tracker_type: TrackerType) -> str:
    return "start_date" if tracker_type is TrackerType.period else "date"


def _to_record(entry: PeriodEntryRead) -> PeriodRecord:
    return PeriodRecord(
        start_date=entry.start_date,
        end_date=entry.end_date,
        symptoms=list(entry.symptoms),
        entry_id=entry.id,
    )


class TrackerService:
    """All tracker reads and writes for one process.

    Holds a short-lived period-history cache per user.  Every period write
    or delete clears that user's cache entry.
    """

    def __init__(
        self,
        store: DocumentStore,
        storage: StorageService,
        config: CycleConfig | None = None,
        settings: Settings | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._storage = storage
        self._config = config or get_cycle_config()
        self._settings = settings or get_settings()
        self._clock = clock
        self._history_cache: dict[str, tuple[float, int, list[PeriodEntryRead]]] = {}

    @property
    def config(self) -> CycleConfig:
        return self._config

    def today(self) -> date:
        return self._clock()

    def _today(self, as_of: date | None = None) -> date:
        return as_of or self._clock()

    def _collection(self, user_id: str, tracker_type: TrackerType) -> str:
        return user_collection(user_id, TRACKER_COLLECTIONS[tracker_type])

    # ------------------------------------------------------------------
    # Period history
    # ------------------------------------------------------------------

    def clear_period_cache(self, user_id: str | None = None) -> None:
        if user_id is None:
            self._history_cache.clear()
        else:
            self._history_cache.pop(user_id, None)

    async def get_period_history(
        self, user_id: str, limit: int | None = None
    ) -> list[PeriodEntryRead]:
        """Period entries newest first, served from cache when fresh."""
        limit = limit or self._config.cycle.history_limit
        cached = self._history_cache.get(user_id)
        ttl = self._settings.period_history_cache_seconds
        if cached is not None:
            fetched_at, fetched_limit, entries = cached
            # a short result is the complete history and satisfies any limit
            complete = len(entries) < fetched_limit
            if time.monotonic() - fetched_at < ttl and (fetched_limit >= limit or complete):
                return entries[:limit]

        rows = await self._store.query(
            self._collection(user_id, TrackerType.period),
            order_by="start_date",
            descending=True,
            limit=limit,
        )
        entries = [PeriodEntryRead.model_validate(r) for r in rows]
        self._history_cache[user_id] = (time.monotonic(), limit, entries)
        return entries

    async def _history_records(self, user_id: str) -> list[PeriodRecord]:
        return [_to_record(e) for e in await self.get_period_history(user_id)]

    async def validate_period(
        self, user_id: str, start: date, as_of: date | None = None
    ) -> PeriodValidation:
        records = await self._history_records(user_id)
        return validate_period_start(start, records, self._today(as_of), self._config)

    async def log_period(
        self,
        user_id: str,
        body: PeriodEntryCreate,
        as_of: date | None = None,
    ) -> PeriodLogResult:
        """Validate and store a period entry.

        Raises:
            PeriodValidationError: Future start, end before start.
            DuplicatePeriodError:  A period already starts on that day.
        """
        today = self._today(as_of)
        start = body.start_date
        if body.adjust_from_symptoms:
            start = adjust_period_start(
                start, await self._symptoms_before(user_id, start), config=self._config
            )

        range_check = validate_period_range(start, body.end_date)
        if not range_check.is_valid:
            raise PeriodValidationError(range_check.message, range_check)

        check = await self.validate_period(user_id, start, today)
        if not check.is_valid:
            if check.reason == "duplicate":
                raise DuplicatePeriodError(check.message, check)
            raise PeriodValidationError(check.message, check)

        data = {
            "start_date": start.isoformat(),
            "end_date": body.end_date.isoformat() if body.end_date else None,
            "symptoms": list(body.symptoms),
            "created_at": utc_now().isoformat(),
        }
        doc_id = await self._store.add(self._collection(user_id, TrackerType.period), data)
        self.clear_period_cache(user_id)
        await self._mark_day_log_start(user_id, start)
        logger.info("Logged period for user %s starting %s", user_id, start)

        entry = PeriodEntryRead.model_validate({**data, "id": doc_id})
        return PeriodLogResult(entry=entry, warnings=list(check.warnings))

    async def delete_period_entry(self, user_id: str, entry_id: str) -> None:
        deleted = await self._store.delete(self._collection(user_id, TrackerType.period), entry_id)
        self.clear_period_cache(user_id)
        if not deleted:
            raise EntryNotFoundError(f"Period entry {entry_id} not found")
        logger.info("Deleted period entry %s for user %s", entry_id, user_id)

    async def migrate_day_log_periods(self, user_id: str) -> tuple[int, int]:
        """Copy period starts recorded only in day logs into period history.

        Returns:
            (migrated, skipped) counts.
        """
        known = {e.start_date for e in await self.get_period_history(user_id, limit=10_000)}
        migrated = skipped = 0
        for day, log in await self._load_day_logs(user_id):
            if log.period is None or not log.period.is_start:
                continue
            if day in known:
                skipped += 1
                continue
            await self._store.add(
                self._collection(user_id, TrackerType.period),
                {
                    "start_date": day.isoformat(),
                    "end_date": None,
                    "symptoms": list(log.period.symptoms),
                    "created_at": utc_now().isoformat(),
                },
            )
            known.add(day)
            migrated += 1
        if migrated:
            self.clear_period_cache(user_id)
        logger.info(
            "Migrated %d day-log period starts for user %s (%d already present)",
            migrated,
            user_id,
            skipped,
        )
        return migrated, skipped

    # ------------------------------------------------------------------
    # Cycle views
    # ------------------------------------------------------------------

    async def get_cycle_info(self, user_id: str, as_of: date | None = None) -> CycleInfo:
        records = await self._history_records(user_id)
        return calculate_cycle_info(records, self._today(as_of), self._config)

    async def get_fertile_window(
        self, user_id: str, as_of: date | None = None
    ) -> FertileWindow:
        records = await self._history_records(user_id)
        return calculate_fertile_window(records, self._today(as_of), self._config)

    async def get_next_event(self, user_id: str, as_of: date | None = None) -> NextEvent:
        today = self._today(as_of)
        records = await self._history_records(user_id)
        info = calculate_cycle_info(records, today, self._config)
        window = calculate_fertile_window(records, today, self._config)
        return next_event(
            info, days_to_ovulation(window, today) if records else None, config=self._config
        )

    async def _day_states(
        self, user_id: str, days: list[date], as_of: date | None
    ) -> dict[date, DayState]:
        today = self._today(as_of)
        records = await self._history_records(user_id)
        window = calculate_fertile_window(records, today, self._config) if records else None
        period_length = average_period_length(records, self._config)
        logged = {
            d: (log.period.flow.value if log.period and log.period.flow else None)
            for d, log in await self._load_day_logs(user_id)
        }
        return {
            d: day_state(d, records, window, period_length, logged, today) for d in days
        }

    async def get_calendar(
        self, user_id: str, start: date | None = None, as_of: date | None = None
    ) -> list[DayState]:
        """Two-week strip of day states beginning at ``start`` (default today)."""
        days = two_week_dates(start or self._today(as_of), self._config)
        states = await self._day_states(user_id, days, as_of)
        return [states[d] for d in days]

    async def get_month(
        self, user_id: str, year: int, month: int, as_of: date | None = None
    ) -> list[DayState | None]:
        grid = month_grid(year, month)
        states = await self._day_states(user_id, [d for d in grid if d is not None], as_of)
        return [states[d] if d is not None else None for d in grid]

    # ------------------------------------------------------------------
    # Day logs
    # ------------------------------------------------------------------

    # Local storage tiers are blocking sqlite calls, so every access below
    # runs in a worker thread.

    async def _read_day_log(self, user_id: str, day: date) -> DayLogRead | None:
        raw = await asyncio.to_thread(self._storage.get_json, day_log_key(user_id, day))
        return DayLogRead.model_validate(raw) if raw else None

    async def _write_day_log(self, log: DayLogRead) -> DayLogRead:
        await asyncio.to_thread(
            self._storage.set_json,
            day_log_key(log.user_id, log.date),
            log.model_dump(mode="json"),
        )
        return log

    def _collect_day_logs(self, user_id: str) -> list[tuple[date, DayLogRead]]:
        prefix = f"{DAY_LOG_PREFIX}:{user_id}:"
        found = []
        for key in self._storage.keys(prefix):
            try:
                day = date.fromisoformat(key[len(prefix):])
            except ValueError:
                logger.warning("Ignoring malformed day-log key %s", key)
                continue
            raw = self._storage.get_json(key)
            if raw:
                found.append((day, DayLogRead.model_validate(raw)))
        return found

    async def _load_day_logs(self, user_id: str) -> list[tuple[date, DayLogRead]]:
        """Every stored day log of ``user_id`` with its date, oldest first."""
        return await asyncio.to_thread(self._collect_day_logs, user_id)

    async def _mark_day_log_start(self, user_id: str, day: date) -> None:
        existing = await self._read_day_log(user_id, day)
        if existing is None:
            log = DayLogRead(date=day, user_id=user_id, period=PeriodDayData(is_start=True))
        else:
            period = existing.period or PeriodDayData()
            log = existing.model_copy(
                update={
                    "period": period.model_copy(update={"is_start": True, "is_end": False}),
                    "updated_at": utc_now(),
                }
            )
        await self._write_day_log(log)

    async def _symptoms_before(self, user_id: str, day: date) -> dict[date, list[str]]:
        lookback = self._config.period.symptom_lookback_days
        symptoms: dict[date, list[str]] = {}
        for offset in range(1, lookback + 1):
            candidate = day - timedelta(days=offset)
            log = await self._read_day_log(user_id, candidate)
            if log is not None and log.period is not None and log.period.symptoms:
                symptoms[candidate] = list(log.period.symptoms)
        return symptoms

    async def get_day_log(self, user_id: str, day: date) -> DayLogRead | None:
        return await self._read_day_log(user_id, day)

    async def save_day_log(
        self,
        user_id: str,
        day: date,
        body: DayLogWrite,
        as_of: date | None = None,
    ) -> DayLogSaveResult:
        """Create or replace the day log for ``day``.

        A log that marks a period start also records the period in history
        unless one already starts that day.

        Raises:
            DayLogValidationError: Nothing filled in, or period data on a future date.
        """
        today = self._today(as_of)
        if not body.has_content():
            raise DayLogValidationError(EMPTY_DAY_LOG_MESSAGE)
        if body.period is not None and not body.period.is_empty() and day > today:
            raise DayLogValidationError(FUTURE_PERIOD_LOG_MESSAGE)

        existing = await self._read_day_log(user_id, day)
        log = DayLogRead(
            **body.model_dump(),
            date=day,
            user_id=user_id,
            created_at=existing.created_at if existing else utc_now(),
            updated_at=utc_now(),
        )
        await self._write_day_log(log)
        logger.debug("Saved day log %s for user %s", day, user_id)

        result = DayLogSaveResult(day_log=log)
        if body.period is not None and body.period.is_start:
            history = await self.get_period_history(user_id)
            if not any(e.start_date == day for e in history):
                logged = await self.log_period(
                    user_id,
                    PeriodEntryCreate(start_date=day, symptoms=body.period.symptoms),
                    as_of=today,
                )
                result.period_entry = logged.entry
                result.warnings = logged.warnings
        return result

    async def delete_day_log(self, user_id: str, day: date) -> bool:
        """Delete the day log and any period entry starting that day.

        Returns:
            True if a day log or a period entry starting that day was removed.
        """
        existed = await self._read_day_log(user_id, day) is not None
        await asyncio.to_thread(self._storage.delete, day_log_key(user_id, day))

        collection = self._collection(user_id, TrackerType.period)
        starting = await self._store.query(
            collection, filters=[Filter("start_date", "==", day.isoformat())]
        )
        for doc in starting:
            await self._store.delete(collection, doc["id"])
        if starting:
            self.clear_period_cache(user_id)
            logger.info("Removed %d period entries starting %s with day log", len(starting), day)
        return existed or bool(starting)

    async def get_day_logs(self, user_id: str, start: date, end: date) -> list[DayLogRead]:
        """Day logs in ``[start, end]``, oldest first.

        Raises:
            TrackerInputError: ``end`` before ``start`` or span over the range limit.
        """
        if end < start:
            raise TrackerInputError("End date cannot be before start date")
        max_days = self._settings.day_log_max_range_days
        if (end - start).days + 1 > max_days:
            raise TrackerInputError(f"Date range cannot exceed {max_days} days")
        return [log for day, log in await self._load_day_logs(user_id) if start <= day <= end]

    # ------------------------------------------------------------------
    # Mood / sleep / nutrition / activity
    # ------------------------------------------------------------------

    async def _add_entry(
        self, user_id: str, tracker_type: TrackerType, data: dict[str, Any]
    ) -> dict[str, Any]:
        data = {**data, "created_at": utc_now().isoformat()}
        doc_id = await self._store.add(self._collection(user_id, tracker_type), data)
        logger.info("Logged %s entry %s for user %s", tracker_type.value, doc_id, user_id)
        return {**data, "id": doc_id}

    async def log_mood(self, user_id: str, body: MoodEntryCreate) -> MoodEntryRead:
        doc = await self._add_entry(user_id, TrackerType.mood, body.model_dump(mode="json"))
        return MoodEntryRead.model_validate(doc)

    async def log_sleep(self, user_id: str, body: SleepEntryCreate) -> SleepEntryRead:
        data = body.model_dump(mode="json")
        data["quality_score"] = SLEEP_QUALITY_SCORES[body.quality]
        doc = await self._add_entry(user_id, TrackerType.sleep, data)
        return SleepEntryRead.model_validate(doc)

    async def log_nutrition(
        self, user_id: str, body: NutritionEntryCreate
    ) -> NutritionEntryRead:
        doc = await self._add_entry(user_id, TrackerType.nutrition, body.model_dump(mode="json"))
        return NutritionEntryRead.model_validate(doc)

    async def log_activity(self, user_id: str, body: ActivityEntryCreate) -> ActivityEntryRead:
        if body.type is ActivityType.steps and body.steps is None:
            raise TrackerInputError("Step entries require a step count")
        if body.type is not ActivityType.steps and body.distance is None and body.duration is None:
            raise TrackerInputError(f"{body.type.value.title()} entries require distance or duration")
        doc = await self._add_entry(user_id, TrackerType.activity, body.model_dump(mode="json"))
        return ActivityEntryRead.model_validate(doc)

    async def get_tracker_history(
        self,
        user_id: str,
        tracker_type: TrackerType,
        start: date | None = None,
        end: date | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Entries of one tracker type, newest first, optionally bounded by date."""
        if start and end and end < start:
            raise TrackerInputError("End date cannot be before start date")
        date_field = _date_field(tracker_type)
        filters = []
        if start:
            filters.append(Filter(date_field, ">=", start.isoformat()))
        if end:
            filters.append(Filter(date_field, "<=", end.isoformat()))
        return await self._store.query(
            self._collection(user_id, tracker_type),
            filters=filters,
            order_by=date_field,
            descending=True,
            limit=limit,
        )

    async def delete_tracker_entry(
        self, user_id: str, tracker_type: TrackerType, entry_id: str
    ) -> None:
        if tracker_type is TrackerType.period:
            await self.delete_period_entry(user_id, entry_id)
            return
        deleted = await self._store.delete(self._collection(user_id, tracker_type), entry_id)
        if not deleted:
            raise EntryNotFoundError(f"{tracker_type.value.title()} entry {entry_id} not found")

    async def get_daily_activity_summary(self, user_id: str, day: date) -> ActivitySummary:
        rows = await self._store.query(
            self._collection(user_id, TrackerType.activity),
            filters=[Filter("date", "==", day.isoformat())],
        )
        summary = ActivitySummary(date=day, entries=len(rows))
        for row in rows:
            entry = ActivityEntryRead.model_validate(row)
            if entry.type is ActivityType.steps:
                summary.total_steps += entry.steps or 0
            elif entry.type is ActivityType.cycling:
                summary.cycling_distance += entry.distance or 0
                summary.cycling_duration += entry.duration or 0
            elif entry.type is ActivityType.running:
                summary.running_distance += entry.distance or 0
                summary.running_duration += entry.duration or 0
        return summary


_service: TrackerService | None = None


def get_tracker_service() -> TrackerService:
    """Shared TrackerService over the configured store and storage."""
    global _service
    if _service is None:
        _service = TrackerService(get_document_store(), get_storage())
    return _service


def reset_tracker_service() -> None:
    global _service
    _service = None
