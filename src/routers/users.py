"""Profile and partner-linking endpoints for the signed-in user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Response

from src.dependencies import CurrentUser, Store
from src.models.users import (
    PartnerCodeRead,
    PartnerJoin,
    PartnerRead,
    ProfileCreate,
    ProfileRead,
    ProfileUpdate,
)
from src.services import users as user_service
from src.services.users import (
    InvalidPartnerCodeError,
    ProfileConflictError,
    ProfileError,
    ProfileNotFoundError,
)

router = APIRouter(prefix="/users", tags=["users"])


def _http_error(exc: ProfileError) -> HTTPException:
    if isinstance(exc, (ProfileNotFoundError, InvalidPartnerCodeError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ProfileConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@router.get("/me", response_model=ProfileRead)
async def get_me(user: CurrentUser, store: Store) -> Any:
    profile = await user_service.get_profile(store, user.user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.post("/me", response_model=ProfileRead, status_code=201)
async def create_me(user: CurrentUser, store: Store, body: ProfileCreate) -> Any:
    try:
        return await user_service.create_profile(store, user.user_id, body)
    except ProfileError as exc:
        raise _http_error(exc) from exc


@router.patch("/me", response_model=ProfileRead)
async def update_me(user: CurrentUser, store: Store, body: ProfileUpdate) -> Any:
    try:
        return await user_service.update_profile(store, user.user_id, body)
    except ProfileError as exc:
        raise _http_error(exc) from exc


# ---------- Partner linking ----------


@router.get("/me/partner", response_model=PartnerRead)
async def get_partner(user: CurrentUser, store: Store) -> Any:
    try:
        profile = await user_service.require_profile(store, user.user_id)
    except ProfileError as exc:
        raise _http_error(exc) from exc
    if not profile.partner_id:
        return PartnerRead()
    partner = await user_service.get_profile(store, profile.partner_id)
    return PartnerRead(
        partner_id=profile.partner_id,
        display_name=partner.display_name if partner else None,
    )


@router.post("/me/partner-code", response_model=PartnerCodeRead, status_code=201)
async def create_partner_code(user: CurrentUser, store: Store) -> Any:
    try:
        code = await user_service.create_partner_code(store, user.user_id)
    except ProfileError as exc:
        raise _http_error(exc) from exc
    return PartnerCodeRead(code=code)


@router.post("/me/partner", response_model=PartnerRead)
async def join_partner(user: CurrentUser, store: Store, body: PartnerJoin) -> Any:
    try:
        partner_id = await user_service.join_partner(store, user.user_id, body.code)
    except ProfileError as exc:
        raise _http_error(exc) from exc
    partner = await user_service.get_profile(store, partner_id)
    return PartnerRead(partner_id=partner_id, display_name=partner.display_name if partner else None)


@router.delete("/me/partner", status_code=204)
async def disconnect_partner(user: CurrentUser, store: Store) -> Response:
    try:
        await user_service.disconnect_partner(store, user.user_id)
    except ProfileError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)
