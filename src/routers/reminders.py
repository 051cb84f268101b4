"""Reminder endpoints for the signed-in user, plus completions and
sharing with a linked partner."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from src.dependencies import CurrentUser, Store
from src.models.reminders import (
    ReminderCompletionCreate,
    ReminderCreate,
    ReminderLogRead,
    ReminderRead,
    ReminderUpdate,
)
from src.services import reminders as reminder_service
from src.services.reminders import ReminderError, ReminderNotFoundError, ReminderShareError
from src.services.users import ProfileError, ProfileNotFoundError

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _http_error(exc: ReminderError | ProfileError) -> HTTPException:
    if isinstance(exc, (ReminderNotFoundError, ProfileNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ReminderShareError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("", response_model=list[ReminderRead])
async def list_reminders(user: CurrentUser, store: Store) -> Any:
    return await reminder_service.list_reminders(store, user.user_id)


@router.post("", response_model=ReminderRead, status_code=201)
async def create_reminder(user: CurrentUser, store: Store, body: ReminderCreate) -> Any:
    try:
        return await reminder_service.create_reminder(store, user.user_id, body)
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.get("/{reminder_id}", response_model=ReminderRead)
async def get_reminder(reminder_id: str, user: CurrentUser, store: Store) -> Any:
    reminder = await reminder_service.get_reminder(store, user.user_id, reminder_id)
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.patch("/{reminder_id}", response_model=ReminderRead)
async def update_reminder(
    reminder_id: str, user: CurrentUser, store: Store, body: ReminderUpdate
) -> Any:
    try:
        return await reminder_service.update_reminder(store, user.user_id, reminder_id, body)
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.delete("/{reminder_id}", status_code=204)
async def delete_reminder(reminder_id: str, user: CurrentUser, store: Store) -> Response:
    try:
        await reminder_service.delete_reminder(store, user.user_id, reminder_id)
    except ReminderError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


# ---------- Completions ----------


@router.post("/{reminder_id}/complete", response_model=ReminderLogRead, status_code=201)
async def complete_reminder(
    reminder_id: str,
    user: CurrentUser,
    store: Store,
    body: ReminderCompletionCreate | None = None,
) -> Any:
    try:
        return await reminder_service.log_reminder_completion(
            store, user.user_id, reminder_id, body or ReminderCompletionCreate()
        )
    except ReminderError as exc:
        raise _http_error(exc) from exc


@router.get("/{reminder_id}/logs", response_model=list[ReminderLogRead])
async def reminder_logs(
    reminder_id: str,
    user: CurrentUser,
    store: Store,
    limit: int = Query(default=50, ge=1, le=366),
) -> Any:
    return await reminder_service.list_reminder_logs(store, user.user_id, reminder_id, limit)


# ---------- Sharing ----------


@router.post("/{reminder_id}/share", response_model=ReminderRead, status_code=201)
async def share_reminder(reminder_id: str, user: CurrentUser, store: Store) -> Any:
    """Copy the reminder to the linked partner; returns the partner's copy."""
    try:
        return await reminder_service.share_reminder(store, user.user_id, reminder_id)
    except (ReminderError, ProfileError) as exc:
        raise _http_error(exc) from exc
