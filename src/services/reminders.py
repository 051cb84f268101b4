"""Reminders: scheduled pill / patch / ring / injection / appointment prompts.

Reminders live under ``users/{user_id}/reminders`` and completions under
``users/{user_id}/reminder_logs``.  Each reminder carries a precomputed
``next_due`` (UTC) that moves forward whenever the schedule changes or the
reminder is completed.  Delivering notifications is left to the client.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from src.models.base import utc_now
from src.models.reminders import (
    ReminderBase,
    ReminderCompletionCreate,
    ReminderCreate,
    ReminderFrequency,
    ReminderLogRead,
    ReminderRead,
    ReminderUpdate,
)
from src.services.documents import DocumentStore, Filter, user_collection
from src.services.users import require_profile

logger = logging.getLogger("healthpath.reminders")

REMINDERS = "reminders"
REMINDER_LOGS = "reminder_logs"

# Changing any of these moves next_due
SCHEDULE_FIELDS = frozenset(
    {"frequency", "start_date", "end_date", "time", "days", "day_of_month"}
)
NULLABLE_FIELDS = frozenset({"time", "end_date", "day_of_month", "notes", "sound_id"})


class ReminderError(ValueError):
    """Base class for reminder failures."""


class ReminderNotFoundError(ReminderError):
    pass


class ReminderShareError(ReminderError):
    """Sharing needs a linked partner."""


# ---------------------------------------------------------------------------
# Due-date arithmetic
# ---------------------------------------------------------------------------


def _at_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _with_time(moment: datetime, time_of_day: str | None) -> datetime:
    if not time_of_day:
        return moment
    hours, minutes = (int(part) for part in time_of_day.split(":"))
    return moment.replace(hour=hours, minute=minutes, second=0, microsecond=0)


def add_months(moment: datetime, months: int, day: int) -> datetime:
    """Move ``months`` forward and land on ``day``, clamped to the month's length."""
    index = moment.month - 1 + months
    year, month = moment.year + index // 12, index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(day, last_day))


def _next_selected_weekday(moment: datetime, days: list[int]) -> datetime:
    current = (moment.weekday() + 1) % 7  # 0 = Sunday
    selected = sorted(set(days))
    later = [d for d in selected if d > current]
    ahead = later[0] - current if later else 7 - current + selected[0]
    return moment + timedelta(days=ahead)


def _step(schedule: ReminderBase) -> Callable[[datetime], datetime]:
    """Return the function mapping one occurrence to the next."""
    frequency = schedule.frequency
    if frequency is ReminderFrequency.weekly:
        if schedule.days:
            days = list(schedule.days)
            return lambda moment: _next_selected_weekday(moment, days)
        return lambda moment: moment + timedelta(days=7)
    if frequency is ReminderFrequency.monthly:
        anchor = schedule.day_of_month or schedule.start_date.day
        return lambda moment: add_months(moment, 1, anchor)
    if frequency is ReminderFrequency.quarterly:
        anchor = schedule.start_date.day
        return lambda moment: add_months(moment, 3, anchor)
    # daily and custom
    return lambda moment: moment + timedelta(days=1)


def calculate_next_due(
    schedule: ReminderBase,
    now: datetime,
    last_completed: datetime | None = None,
) -> datetime | None:
    """Next occurrence strictly after ``now``.

    Occurrences are counted from the last completion, or from the start date
    when the reminder has never been completed; the anchor itself is not an
    occurrence.  Daily and custom reminders repeat every day, weekly ones on
    the selected weekdays (every 7 days when none are selected), monthly ones
    on ``day_of_month`` and quarterly ones every three months.  Days past the
    end of a short month clamp to its last day.

    Returns:
        The due time in UTC, or None when it would fall after ``end_date``.
    """
    step = _step(schedule)
    anchor = last_completed or _at_midnight(schedule.start_date)
    if schedule.frequency in (
        ReminderFrequency.daily,
        ReminderFrequency.custom,
        ReminderFrequency.weekly,
    ) and anchor < now:
        # these schedules repeat every 7 days, so skip whole weeks at once
        anchor += timedelta(days=7 * ((now - anchor).days // 7))

    due = _with_time(step(anchor), schedule.time)
    while due <= now:
        due = _with_time(step(due), schedule.time)

    if schedule.end_date is not None and due.date() > schedule.end_date:
        return None
    return due


# ---------------------------------------------------------------------------
# Reminder records
# ---------------------------------------------------------------------------


def _reminders(user_id: str) -> str:
    return user_collection(user_id, REMINDERS)


def _check_dates(schedule: ReminderBase) -> None:
    if schedule.end_date is not None and schedule.end_date < schedule.start_date:
        raise ReminderError("End date cannot be before start date")


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


async def list_reminders(store: DocumentStore, user_id: str) -> list[ReminderRead]:
    """The user's reminders, newest first."""
    rows = await store.query(_reminders(user_id), order_by="created_at", descending=True)
    return [ReminderRead.model_validate(r) for r in rows]


async def get_reminder(
    store: DocumentStore, user_id: str, reminder_id: str
) -> ReminderRead | None:
    doc = await store.get(_reminders(user_id), reminder_id)
    return ReminderRead.model_validate(doc) if doc else None


async def require_reminder(
    store: DocumentStore, user_id: str, reminder_id: str
) -> ReminderRead:
    reminder = await get_reminder(store, user_id, reminder_id)
    if reminder is None:
        raise ReminderNotFoundError("Reminder not found")
    return reminder


async def create_reminder(
    store: DocumentStore,
    user_id: str,
    body: ReminderCreate,
    now: datetime | None = None,
) -> ReminderRead:
    now = now or utc_now()
    _check_dates(body)
    data = {
        **body.model_dump(mode="json"),
        "user_id": user_id,
        "next_due": _iso(calculate_next_due(body, now)),
        "last_completed": None,
        "shared_from": None,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    doc_id = await store.add(_reminders(user_id), data)
    logger.info("Created %s reminder %s for user %s", body.frequency.value, doc_id, user_id)
    return ReminderRead.model_validate({**data, "id": doc_id})


async def update_reminder(
    store: DocumentStore,
    user_id: str,
    reminder_id: str,
    body: ReminderUpdate,
    now: datetime | None = None,
) -> ReminderRead:
    """Merge the fields the client sent; reschedule when timing fields change.

    Raises:
        ReminderNotFoundError: No such reminder.
        ReminderError:         The merged dates are inverted.
    """
    now = now or utc_now()
    current = await require_reminder(store, user_id, reminder_id)
    updates = {
        key: value
        for key, value in body.model_dump(mode="json", exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    merged = ReminderRead.model_validate(
        {**current.model_dump(mode="json"), **updates}
    )
    _check_dates(merged)
    if SCHEDULE_FIELDS & updates.keys():
        updates["next_due"] = _iso(calculate_next_due(merged, now, merged.last_completed))
    doc = await store.set(
        _reminders(user_id),
        reminder_id,
        {**updates, "updated_at": now.isoformat()},
        merge=True,
    )
    return ReminderRead.model_validate(doc)


async def delete_reminder(store: DocumentStore, user_id: str, reminder_id: str) -> None:
    if not await store.delete(_reminders(user_id), reminder_id):
        raise ReminderNotFoundError("Reminder not found")
    logger.info("Deleted reminder %s for user %s", reminder_id, user_id)


# ---------------------------------------------------------------------------
# Completions and sharing
# ---------------------------------------------------------------------------


async def log_reminder_completion(
    store: DocumentStore,
    user_id: str,
    reminder_id: str,
    body: ReminderCompletionCreate,
    now: datetime | None = None,
) -> ReminderLogRead:
    """Record a completion and move the reminder's ``next_due`` past it."""
    now = now or utc_now()
    reminder = await require_reminder(store, user_id, reminder_id)
    data = {
        "reminder_id": reminder_id,
        "completed": body.completed,
        "notes": body.notes,
        "timestamp": now.isoformat(),
    }
    log_id = await store.add(user_collection(user_id, REMINDER_LOGS), data)
    await store.set(
        _reminders(user_id),
        reminder_id,
        {
            "last_completed": now.isoformat(),
            "next_due": _iso(calculate_next_due(reminder, now, last_completed=now)),
            "updated_at": now.isoformat(),
        },
        merge=True,
    )
    logger.info("Logged completion of reminder %s for user %s", reminder_id, user_id)
    return ReminderLogRead.model_validate({**data, "id": log_id})


async def list_reminder_logs(
    store: DocumentStore, user_id: str, reminder_id: str, limit: int | None = None
) -> list[ReminderLogRead]:
    """Completions of one reminder, newest first."""
    rows = await store.query(
        user_collection(user_id, REMINDER_LOGS),
        filters=[Filter("reminder_id", "==", reminder_id)],
        order_by="timestamp",
        descending=True,
        limit=limit,
    )
    return [ReminderLogRead.model_validate(r) for r in rows]


async def share_reminder(
    store: DocumentStore,
    user_id: str,
    reminder_id: str,
    now: datetime | None = None,
) -> ReminderRead:
    """Copy a reminder into the linked partner's reminders.

    The copy starts with no completions and records who shared it.

    Raises:
        ProfileNotFoundError:  The user has no profile.
        ReminderShareError:    The user is not linked to a partner.
        ReminderNotFoundError: No such reminder.
    """
    now = now or utc_now()
    profile = await require_profile(store, user_id)
    if not profile.partner_id:
        raise ReminderShareError("Link a partner before sharing reminders")
    reminder = await require_reminder(store, user_id, reminder_id)

    partner_id = profile.partner_id
    schedule = ReminderBase.model_validate(reminder.model_dump())
    data = {
        **schedule.model_dump(mode="json"),
        "user_id": partner_id,
        "next_due": _iso(calculate_next_due(schedule, now)),
        "last_completed": None,
        "shared_from": user_id,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    doc_id = await store.add(_reminders(partner_id), data)
    logger.info("User %s shared reminder %s with %s", user_id, reminder_id, partner_id)
    return ReminderRead.model_validate({**data, "id": doc_id})
