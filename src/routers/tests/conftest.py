"""Fixtures for API tests: an app wired to in-memory stores with the
signed-in user swappable per test."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.config import Settings
from src.cycle.config_loader import load_cycle_config
from src.dependencies import AuthContext, get_current_user
from src.main import create_app
from src.services.documents import MemoryDocumentStore, get_document_store, set_document_store
from src.services.tracker import TrackerService, get_tracker_service
from src.storage.backends import MemoryBackend
from src.storage.service import StorageService, reset_storage

API = "/api/v1"
TODAY = date(2026, 2, 23)

ALICE = {"email": "alice@example.com", "display_name": "Alice", "gender": "female"}
BOB = {"email": "bob@example.com", "display_name": "Bob", "gender": "male"}


class SignedIn:
    """Mutable holder for the user the overridden auth dependency returns."""

    def __init__(self) -> None:
        self.user_id = "user_alice"

    def as_context(self) -> AuthContext:
        return AuthContext(user_id=self.user_id, email=f"{self.user_id}@example.com")


@pytest.fixture
def signed_in() -> SignedIn:
    return SignedIn()


@pytest.fixture
def app(signed_in: SignedIn) -> Iterator[FastAPI]:
    store = MemoryDocumentStore()
    storage = StorageService([MemoryBackend])
    tracker = TrackerService(
        store, storage, config=load_cycle_config(), settings=Settings(), clock=lambda: TODAY
    )
    set_document_store(store)
    reset_storage(storage)

    application = create_app(Settings())
    application.dependency_overrides[get_current_user] = signed_in.as_context
    application.dependency_overrides[get_document_store] = lambda: store
    application.dependency_overrides[get_tracker_service] = lambda: tracker
    yield application

    set_document_store(None)
    reset_storage()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


def create_couple(client: TestClient, signed_in: SignedIn) -> None:
    """Create Alice and Bob's profiles and link Bob to Alice. Leaves Alice signed in."""
    signed_in.user_id = "user_bob"
    assert client.post(f"{API}/users/me", json=BOB).status_code == 201
    signed_in.user_id = "user_alice"
    assert client.post(f"{API}/users/me", json=ALICE).status_code == 201
    code = client.post(f"{API}/users/me/partner-code").json()["code"]

    signed_in.user_id = "user_bob"
    assert client.post(f"{API}/users/me/partner", json={"code": code}).status_code == 200
    signed_in.user_id = "user_alice"
