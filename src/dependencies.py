"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.cycle.calendar import can_edit_cycle_data, can_view_cycle_data, target_user_id
from src.services.documents import DocumentStore, get_document_store
from src.services.tracker import TrackerService, get_tracker_service
from src.services.users import get_profile


@dataclass(frozen=True)
class AuthContext:
    """Authenticated user context extracted from the bearer JWT."""

    user_id: str  # token subject; also the profile document id
    email: str | None = None
    session_id: str | None = None


async def get_current_user(request: Request) -> AuthContext:
    """Extract the authenticated user from the request state.

    The auth middleware sets ``request.state.auth`` before routes run.
    """
    auth: AuthContext | None = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return auth


# Annotated shortcuts for route signatures
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
Store = Annotated[DocumentStore, Depends(get_document_store)]
Tracker = Annotated[TrackerService, Depends(get_tracker_service)]


@dataclass(frozen=True)
class CycleAccess:
    """Whose cycle data the caller works with, and whether they may change it."""

    user_id: str
    target_user_id: str
    can_edit: bool


async def get_cycle_access(user: CurrentUser, store: Store) -> CycleAccess:
    profile = await get_profile(store, user.user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")

    gender = profile.gender.value if profile.gender else None
    if not can_view_cycle_data(gender, profile.partner_id):
        detail = (
            "Connect with your partner to view their cycle data"
            if gender == "male"
            else "Cycle tracking is available for female users"
        )
        raise HTTPException(status_code=403, detail=detail)

    return CycleAccess(
        user_id=user.user_id,
        target_user_id=target_user_id(user.user_id, gender, profile.partner_id),
        can_edit=can_edit_cycle_data(gender),
    )


async def require_cycle_editor(
    access: Annotated[CycleAccess, Depends(get_cycle_access)],
) -> CycleAccess:
    if not access.can_edit:
        raise HTTPException(status_code=403, detail="Only the cycle owner can change cycle data")
    return access


CycleViewer = Annotated[CycleAccess, Depends(get_cycle_access)]
CycleEditor = Annotated[CycleAccess, Depends(require_cycle_editor)]
