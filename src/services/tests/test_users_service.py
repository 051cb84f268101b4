"""Tests for profiles and partner linking."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from src.models.users import Gender, ProfileCreate, ProfileUpdate
from src.services import users
from src.services.documents import MemoryDocumentStore
from src.services.tests.conftest import PARTNER_ID, USER_ID
from src.services.users import (
    InvalidPartnerCodeError,
    ProfileConflictError,
    ProfileError,
    ProfileNotFoundError,
    create_partner_code,
    create_profile,
    disconnect_partner,
    generate_partner_code,
    get_profile,
    join_partner,
    require_profile,
    update_profile,
)


async def make_couple(store: MemoryDocumentStore) -> None:
    await create_profile(
        store,
        USER_ID,
        ProfileCreate(email="alice@example.com", display_name="Alice", gender=Gender.female),
    )
    await create_profile(
        store,
        PARTNER_ID,
        ProfileCreate(email="bob@example.com", display_name="Bob", gender=Gender.male),
    )


class TestProfiles:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: MemoryDocumentStore) -> None:
        created = await create_profile(
            store, USER_ID, ProfileCreate(email="alice@example.com", display_name="  Alice  ")
        )
        assert created.id == USER_ID
        assert created.display_name == "Alice"
        assert created.partner_id is None
        assert (await get_profile(store, USER_ID)).email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_create_twice_conflicts(self, store: MemoryDocumentStore) -> None:
        body = ProfileCreate(email="alice@example.com", display_name="Alice")
        await create_profile(store, USER_ID, body)
        with pytest.raises(ProfileConflictError):
            await create_profile(store, USER_ID, body)

    @pytest.mark.asyncio
    async def test_missing_profile(self, store: MemoryDocumentStore) -> None:
        assert await get_profile(store, USER_ID) is None
        with pytest.raises(ProfileNotFoundError):
            await require_profile(store, USER_ID)

    @pytest.mark.asyncio
    async def test_update_only_sent_fields(self, store: MemoryDocumentStore) -> None:
        await create_profile(
            store,
            USER_ID,
            ProfileCreate(email="alice@example.com", display_name="Alice", gender=Gender.female),
        )
        updated = await update_profile(store, USER_ID, ProfileUpdate(display_name="Alicia"))
        assert updated.display_name == "Alicia"
        assert updated.gender == Gender.female

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, store: MemoryDocumentStore) -> None:
        with pytest.raises(ProfileNotFoundError):
            await update_profile(store, USER_ID, ProfileUpdate(display_name="Alicia"))


class TestPartnerCodes:
    def test_code_shape(self) -> None:
        code = generate_partner_code()
        assert len(code) == 6
        assert set(code) <= set(users.PARTNER_CODE_ALPHABET)

    @pytest.mark.asyncio
    async def test_code_saved_on_profile(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        assert (await get_profile(store, USER_ID)).partner_code == code

    @pytest.mark.asyncio
    async def test_taken_code_is_regenerated(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        await store.set("profiles", PARTNER_ID, {"partner_code": "AAAAAA"}, merge=True)
        with patch.object(users, "generate_partner_code", side_effect=["AAAAAA", "BBBBBB"]):
            assert await create_partner_code(store, USER_ID) == "BBBBBB"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        await store.set("profiles", PARTNER_ID, {"partner_code": "AAAAAA"}, merge=True)
        with patch.object(users, "generate_partner_code", return_value="AAAAAA"):
            with pytest.raises(ProfileError, match="unique partner code"):
                await create_partner_code(store, USER_ID)

    @pytest.mark.asyncio
    async def test_linked_user_cannot_issue_code(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        await join_partner(store, PARTNER_ID, code)
        with pytest.raises(ProfileConflictError, match="already linked"):
            await create_partner_code(store, USER_ID)


class TestPartnerLinking:
    @pytest.mark.asyncio
    async def test_join_links_both_sides(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        assert await join_partner(store, PARTNER_ID, code.lower()) == USER_ID
        assert (await get_profile(store, USER_ID)).partner_id == PARTNER_ID
        assert (await get_profile(store, PARTNER_ID)).partner_id == USER_ID

    @pytest.mark.asyncio
    async def test_invalid_code(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        with pytest.raises(InvalidPartnerCodeError):
            await join_partner(store, PARTNER_ID, "ZZZZZZ")

    @pytest.mark.asyncio
    async def test_cannot_join_self(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        with pytest.raises(ProfileError, match="yourself"):
            await join_partner(store, USER_ID, code)

    @pytest.mark.asyncio
    async def test_already_linked_user_cannot_join(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        await join_partner(store, PARTNER_ID, code)
        with pytest.raises(ProfileConflictError):
            await join_partner(store, PARTNER_ID, code)

    @pytest.mark.asyncio
    async def test_partner_linked_elsewhere(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        await create_profile(
            store, "user_carol", ProfileCreate(email="carol@example.com", display_name="Carol")
        )
        code = await create_partner_code(store, USER_ID)
        await join_partner(store, PARTNER_ID, code)
        with pytest.raises(ProfileConflictError, match="someone else"):
            await join_partner(store, "user_carol", code)

    @pytest.mark.asyncio
    async def test_disconnect_clears_both_sides(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        code = await create_partner_code(store, USER_ID)
        await join_partner(store, PARTNER_ID, code)

        await disconnect_partner(store, PARTNER_ID)
        alice = await get_profile(store, USER_ID)
        bob = await get_profile(store, PARTNER_ID)
        assert alice.partner_id is None and alice.partner_code is None
        assert bob.partner_id is None

    @pytest.mark.asyncio
    async def test_disconnect_when_unlinked_is_noop(self, store: MemoryDocumentStore) -> None:
        await make_couple(store)
        await disconnect_partner(store, USER_ID)
        assert (await get_profile(store, USER_ID)).partner_id is None
