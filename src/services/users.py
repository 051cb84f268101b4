"""User profiles and partner linking.

Profiles live in the ``profiles`` collection keyed by the auth subject.
Two profiles are linked when each one's ``partner_id`` names the other; a
man linked to a partner reads (but cannot edit) her cycle data.
"""

from __future__ import annotations

import logging
import secrets
import string

from src.models.base import utc_now
from src.models.users import ProfileCreate, ProfileRead, ProfileUpdate
from src.services.documents import PROFILES, DocumentStore, Filter

logger = logging.getLogger("healthpath.users")

PARTNER_CODE_ALPHABET = string.ascii_uppercase + string.digits
PARTNER_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 10


class ProfileError(ValueError):
    """Base class for profile and partner-linking failures."""


class ProfileNotFoundError(ProfileError):
    pass


class ProfileConflictError(ProfileError):
    """Profile already exists, or a partner link is already in place."""


class InvalidPartnerCodeError(ProfileError):
    pass


def generate_partner_code() -> str:
    return "".join(secrets.choice(PARTNER_CODE_ALPHABET) for _ in range(PARTNER_CODE_LENGTH))


async def get_profile(store: DocumentStore, user_id: str) -> ProfileRead | None:
    doc = await store.get(PROFILES, user_id)
    return ProfileRead.model_validate(doc) if doc else None


async def require_profile(store: DocumentStore, user_id: str) -> ProfileRead:
    profile = await get_profile(store, user_id)
    if profile is None:
        raise ProfileNotFoundError("Profile not found")
    return profile


async def create_profile(store: DocumentStore, user_id: str, body: ProfileCreate) -> ProfileRead:
    if await store.get(PROFILES, user_id) is not None:
        raise ProfileConflictError("Profile already exists")
    now = utc_now().isoformat()
    data = {
        **body.model_dump(mode="json"),
        "partner_id": None,
        "partner_code": None,
        "created_at": now,
        "updated_at": now,
    }
    doc = await store.set(PROFILES, user_id, data)
    logger.info("Created profile for user %s", user_id)
    return ProfileRead.model_validate(doc)


async def update_profile(store: DocumentStore, user_id: str, body: ProfileUpdate) -> ProfileRead:
    """Merge the fields the client actually sent into the stored profile."""
    await require_profile(store, user_id)
    updates = body.model_dump(mode="json", exclude_unset=True)
    return await _merge(store, user_id, updates)


async def _merge(store: DocumentStore, user_id: str, fields: dict) -> ProfileRead:
    doc = await store.set(
        PROFILES, user_id, {**fields, "updated_at": utc_now().isoformat()}, merge=True
    )
    return ProfileRead.model_validate(doc)


async def create_partner_code(store: DocumentStore, user_id: str) -> str:
    """Issue a fresh, unused 6-character partner code for the user.

    Raises:
        ProfileConflictError: The user is already linked to a partner.
        ProfileError:         No unused code found after 10 attempts.
    """
    profile = await require_profile(store, user_id)
    if profile.partner_id:
        raise ProfileConflictError(
            "You are already linked to a partner. Cannot generate a new partner code."
        )

    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_partner_code()
        taken = await store.query(PROFILES, filters=[Filter("partner_code", "==", code)], limit=1)
        if not taken:
            await _merge(store, user_id, {"partner_code": code})
            logger.info("Issued partner code for user %s", user_id)
            return code

    logger.error("Could not find an unused partner code after %d attempts", MAX_CODE_ATTEMPTS)
    raise ProfileError("Failed to generate unique partner code")


async def join_partner(store: DocumentStore, user_id: str, code: str) -> str:
    """Link the user to the owner of ``code`` (case-insensitive).

    Returns:
        The partner's user id.
    """
    profile = await require_profile(store, user_id)
    if profile.partner_id:
        raise ProfileConflictError("You are already linked to a partner.")

    matches = await store.query(
        PROFILES, filters=[Filter("partner_code", "==", code.strip().upper())], limit=1
    )
    if not matches:
        raise InvalidPartnerCodeError("Invalid partner code")
    partner = ProfileRead.model_validate(matches[0])

    if partner.id == user_id:
        raise ProfileError("You cannot connect to yourself")
    if partner.partner_id and partner.partner_id != user_id:
        raise ProfileConflictError("That partner is already linked to someone else.")

    await _merge(store, user_id, {"partner_id": partner.id})
    await _merge(store, partner.id, {"partner_id": user_id})
    logger.info("Linked users %s and %s", user_id, partner.id)
    return partner.id


async def disconnect_partner(store: DocumentStore, user_id: str) -> None:
    """Clear the link (and partner codes) on both sides. No-op when unlinked."""
    profile = await require_profile(store, user_id)
    if not profile.partner_id:
        return
    partner_id = profile.partner_id
    cleared = {"partner_id": None, "partner_code": None}
    await _merge(store, user_id, cleared)
    if await store.get(PROFILES, partner_id) is not None:
        await _merge(store, partner_id, cleared)
    logger.info("Disconnected users %s and %s", user_id, partner_id)
