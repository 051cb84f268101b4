"""Tracker endpoints: period history, cycle predictions, calendar, day logs,
and the mood / sleep / nutrition / activity trackers.

Cycle routes resolve whose data to read through ``CycleViewer`` (a linked
male partner reads his partner's cycle) and refuse writes unless the caller
owns the cycle (``CycleEditor``).  The other trackers always act on the
caller's own data.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from src.cycle.calculator import days_to_ovulation
from src.cycle.calendar import date_range_label, shift_two_weeks
from src.dependencies import CurrentUser, CycleEditor, CycleViewer, Tracker
from src.models.tracking import (
    ActivityEntryCreate,
    ActivityEntryRead,
    ActivitySummary,
    CalendarRead,
    CycleInfoRead,
    DayLogRead,
    DayLogSaveResponse,
    DayLogWrite,
    DayStateRead,
    FertileWindowRead,
    MigrationResult,
    MonthCalendarRead,
    MoodEntryCreate,
    MoodEntryRead,
    NextEventRead,
    NutritionEntryCreate,
    NutritionEntryRead,
    PeriodEntryCreate,
    PeriodEntryRead,
    PeriodLogResponse,
    PeriodValidationRead,
    SleepEntryCreate,
    SleepEntryRead,
    TrackerType,
)
from src.services.tracker import DuplicatePeriodError, EntryNotFoundError, TrackerError
from src.storage.service import StorageError

router = APIRouter(prefix="/tracker", tags=["tracker"])
logger = logging.getLogger("healthpath.routers.tracker")


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, DuplicatePeriodError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, EntryNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StorageError):
        logger.error("Storage failure: %s", exc)
        return HTTPException(status_code=503, detail="Local storage unavailable")
    return HTTPException(status_code=400, detail=str(exc))


# ---------- Period history ----------


@router.get("/periods", response_model=list[PeriodEntryRead])
async def list_periods(
    access: CycleViewer,
    tracker: Tracker,
    limit: int | None = Query(default=None, ge=1, le=200),
) -> Any:
    return await tracker.get_period_history(access.target_user_id, limit=limit)


@router.post("/periods", response_model=PeriodLogResponse, status_code=201)
async def log_period(access: CycleEditor, tracker: Tracker, body: PeriodEntryCreate) -> Any:
    try:
        result = await tracker.log_period(access.target_user_id, body)
    except (TrackerError, StorageError) as exc:
        raise _http_error(exc) from exc
    return PeriodLogResponse(entry=result.entry, warnings=result.warnings)


@router.get("/periods/validate", response_model=PeriodValidationRead)
async def validate_period(
    access: CycleViewer,
    tracker: Tracker,
    start_date: date = Query(...),
) -> Any:
    return await tracker.validate_period(access.target_user_id, start_date)


@router.post("/periods/migrate", response_model=MigrationResult)
async def migrate_periods(access: CycleEditor, tracker: Tracker) -> Any:
    migrated, skipped = await tracker.migrate_day_log_periods(access.target_user_id)
    return MigrationResult(migrated=migrated, skipped=skipped)


@router.delete("/periods/{entry_id}", status_code=204)
async def delete_period(entry_id: str, access: CycleEditor, tracker: Tracker) -> Response:
    try:
        await tracker.delete_period_entry(access.target_user_id, entry_id)
    except TrackerError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


# ---------- Cycle predictions ----------


@router.get("/cycle-info", response_model=CycleInfoRead)
async def cycle_info(access: CycleViewer, tracker: Tracker) -> Any:
    return await tracker.get_cycle_info(access.target_user_id)


@router.get("/fertile-window", response_model=FertileWindowRead)
async def fertile_window(access: CycleViewer, tracker: Tracker) -> Any:
    window = await tracker.get_fertile_window(access.target_user_id)
    return FertileWindowRead(
        ovulation_date=window.ovulation_date,
        fertile_start=window.fertile_start,
        fertile_end=window.fertile_end,
        next_period_start=window.next_period_start,
        cycle_length=window.cycle_length,
        period_length=window.period_length,
        is_default=window.is_default,
        days_to_ovulation=days_to_ovulation(window, tracker.today()),
    )


@router.get("/countdown", response_model=NextEventRead)
async def countdown(access: CycleViewer, tracker: Tracker) -> Any:
    return await tracker.get_next_event(access.target_user_id)


# ---------- Calendar ----------


@router.get("/calendar", response_model=CalendarRead)
async def two_week_calendar(
    access: CycleViewer,
    tracker: Tracker,
    start: date | None = Query(default=None),
) -> Any:
    states = await tracker.get_calendar(access.target_user_id, start)
    first = states[0].day
    return CalendarRead(
        start_date=first,
        end_date=states[-1].day,
        label=date_range_label(first, tracker.config),
        days=[DayStateRead.model_validate(s) for s in states],
        can_edit=access.can_edit,
        previous_start=shift_two_weeks(first, "prev", tracker.config),
        next_start=shift_two_weeks(first, "next", tracker.config),
    )


@router.get("/calendar/month", response_model=MonthCalendarRead)
async def month_calendar(
    access: CycleViewer,
    tracker: Tracker,
    year: int = Query(..., ge=1900, le=2200),
    month: int = Query(..., ge=1, le=12),
) -> Any:
    grid = await tracker.get_month(access.target_user_id, year, month)
    return MonthCalendarRead(
        year=year,
        month=month,
        days=[DayStateRead.model_validate(s) if s is not None else None for s in grid],
        can_edit=access.can_edit,
    )


# ---------- Day logs ----------


@router.get("/day-logs", response_model=list[DayLogRead])
async def list_day_logs(
    access: CycleViewer,
    tracker: Tracker,
    start: date = Query(...),
    end: date = Query(...),
) -> Any:
    try:
        return await tracker.get_day_logs(access.target_user_id, start, end)
    except TrackerError as exc:
        raise _http_error(exc) from exc


@router.get("/day-logs/{day}", response_model=DayLogRead)
async def get_day_log(day: date, access: CycleViewer, tracker: Tracker) -> Any:
    log = await tracker.get_day_log(access.target_user_id, day)
    if log is None:
        raise HTTPException(status_code=404, detail="No data logged for this date")
    return log


@router.put("/day-logs/{day}", response_model=DayLogSaveResponse)
async def save_day_log(day: date, access: CycleEditor, tracker: Tracker, body: DayLogWrite) -> Any:
    try:
        result = await tracker.save_day_log(access.target_user_id, day, body)
    except (TrackerError, StorageError) as exc:
        raise _http_error(exc) from exc
    return DayLogSaveResponse(
        day_log=result.day_log,
        period_entry=result.period_entry,
        warnings=result.warnings,
    )


@router.delete("/day-logs/{day}", status_code=204)
async def delete_day_log(day: date, access: CycleEditor, tracker: Tracker) -> Response:
    try:
        existed = await tracker.delete_day_log(access.target_user_id, day)
    except StorageError as exc:
        raise _http_error(exc) from exc
    if not existed:
        raise HTTPException(status_code=404, detail="No data logged for this date")
    return Response(status_code=204)


# ---------- Mood / sleep / nutrition / activity ----------


@router.post("/moods", response_model=MoodEntryRead, status_code=201)
async def log_mood(user: CurrentUser, tracker: Tracker, body: MoodEntryCreate) -> Any:
    return await tracker.log_mood(user.user_id, body)


@router.post("/sleep", response_model=SleepEntryRead, status_code=201)
async def log_sleep(user: CurrentUser, tracker: Tracker, body: SleepEntryCreate) -> Any:
    return await tracker.log_sleep(user.user_id, body)


@router.post("/nutrition", response_model=NutritionEntryRead, status_code=201)
async def log_nutrition(user: CurrentUser, tracker: Tracker, body: NutritionEntryCreate) -> Any:
    return await tracker.log_nutrition(user.user_id, body)


@router.post("/activities", response_model=ActivityEntryRead, status_code=201)
async def log_activity(user: CurrentUser, tracker: Tracker, body: ActivityEntryCreate) -> Any:
    try:
        return await tracker.log_activity(user.user_id, body)
    except TrackerError as exc:
        raise _http_error(exc) from exc


@router.get("/activities/summary", response_model=ActivitySummary)
async def activity_summary(
    user: CurrentUser,
    tracker: Tracker,
    day: date | None = Query(default=None),
) -> Any:
    return await tracker.get_daily_activity_summary(user.user_id, day or tracker.today())


@router.get("/history/{tracker_type}")
async def tracker_history(
    tracker_type: TrackerType,
    user: CurrentUser,
    tracker: Tracker,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=366),
) -> list[dict]:
    if tracker_type is TrackerType.period:
        raise HTTPException(status_code=400, detail="Use /tracker/periods for period history")
    try:
        return await tracker.get_tracker_history(user.user_id, tracker_type, start, end, limit)
    except TrackerError as exc:
        raise _http_error(exc) from exc


@router.delete("/history/{tracker_type}/{entry_id}", status_code=204)
async def delete_tracker_entry(
    tracker_type: TrackerType,
    entry_id: str,
    user: CurrentUser,
    tracker: Tracker,
) -> Response:
    if tracker_type is TrackerType.period:
        raise HTTPException(status_code=400, detail="Use /tracker/periods/{entry_id}")
    try:
        await tracker.delete_tracker_entry(user.user_id, tracker_type, entry_id)
    except TrackerError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)
