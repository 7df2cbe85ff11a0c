"""Shared pytest fixtures for the ticket-bridge test suite.

Provides:
  - FakeItemStore: records create_item / upload_file calls, configurable failures
  - FakeClock: manually advanced clock for TTL and purge tests
  - RecordingKeyValueStore: in-memory store that records every get/set
  - kv, link_store, credential_store, temp_files, registry: real components
    on in-memory storage and tmp_path
  - app / client: FastAPI app from create_app() reached through httpx's
    ASGITransport (the lifespan does not run, so no scheduler is started)
  - seeded_kv: link ABC123 on board 5001 owned by account 42, with a credential

All monday.com calls are faked in every test. No network access.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx
import pytest
import pytest_asyncio

from ticket_bridge.core.config import Settings
from ticket_bridge.db.kv import InMemoryKeyValueStore
from ticket_bridge.main import create_app
from ticket_bridge.schemas.credential import Credential
from ticket_bridge.schemas.link import (
    ColumnMapping,
    LinkConfig,
    LinkMetadata,
    StatusMapping,
    TargetConfig,
)
from ticket_bridge.services.files.temp_store import TempFileStore
from ticket_bridge.services.monday.client import ItemStore
from ticket_bridge.services.sessions.registry import SessionRegistry
from ticket_bridge.services.storage.codec import encode_credential, encode_link_config
from ticket_bridge.services.storage.credentials import CredentialStore
from ticket_bridge.services.storage.links import LinkConfigStore

LINK_CODE = "ABC123"
BOARD_ID = "5001"
OWNER_ACCOUNT_ID = "42"
OWNER_TOKEN = "tok-owner-secret"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeItemStore(ItemStore):
    """ItemStore double that never touches the network."""

    def __init__(
        self,
        item_id: str = "9001",
        create_error: Exception | None = None,
        upload_error: Exception | None = None,
    ) -> None:
        self.item_id = item_id
        self.create_error = create_error
        self.upload_error = upload_error
        self.create_calls: list[dict[str, Any]] = []
        self.upload_calls: list[dict[str, Any]] = []
        self.closed = False

    async def create_item(
        self,
        token: str,
        board_id: str,
        item_name: str,
        column_values: dict[str, Any],
    ) -> str:
        self.create_calls.append(
            {
                "token": token,
                "board_id": board_id,
                "item_name": item_name,
                "column_values": column_values,
            }
        )
        if self.create_error is not None:
            raise self.create_error
        return self.item_id

    async def upload_file(
        self,
        token: str,
        item_id: str,
        column_id: str,
        content: bytes,
        file_name: str,
    ) -> str:
        self.upload_calls.append(
            {
                "token": token,
                "item_id": item_id,
                "column_id": column_id,
                "content": content,
                "file_name": file_name,
            }
        )
        if self.upload_error is not None:
            raise self.upload_error
        return "asset-1"

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Callable clock; advance() moves virtual time forward."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingKeyValueStore(InMemoryKeyValueStore):
    """In-memory store that records the keys it was asked for."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        super().__init__(initial)
        self.get_calls: list[str] = []
        self.set_calls: list[str] = []

    async def get(self, key: str) -> Any | None:
        self.get_calls.append(key)
        return await super().get(key)

    async def set(self, key: str, value: Any) -> None:
        self.set_calls.append(key)
        await super().set(key, value)


async def no_sleep(delay: float) -> None:
    return None


def make_link_config(**mapping_overrides: Any) -> LinkConfig:
    mapping = {
        "description": "long_text",
        "video": "files",
        "requester_name": "text_requester",
        "account_name": "text_account",
        "source_board_name": "link_source",
        "user_email": "email_user",
        "status": StatusMapping(column_id="status", default_value="1"),
    }
    mapping.update(mapping_overrides)
    return LinkConfig(
        target_config=TargetConfig(
            board_id=BOARD_ID,
            board_name="Support",
            owner_account_id=OWNER_ACCOUNT_ID,
        ),
        column_mapping=ColumnMapping(**mapping),
        metadata=LinkMetadata(
            created_at=1_700_000_000_000,
            created_by_user_id=OWNER_ACCOUNT_ID,
            version=1,
        ),
    )


def make_credential() -> Credential:
    return Credential(
        access_token=OWNER_TOKEN,
        account_id=OWNER_ACCOUNT_ID,
        account_name="Acme",
        user_name="Dana Admin",
    )


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv() -> RecordingKeyValueStore:
    return RecordingKeyValueStore()


@pytest.fixture
def item_store() -> FakeItemStore:
    return FakeItemStore()


@pytest.fixture
def link_store(kv: RecordingKeyValueStore, clock: FakeClock) -> LinkConfigStore:
    return LinkConfigStore(kv, clock=clock, sleep=no_sleep)


@pytest.fixture
def credential_store(kv: RecordingKeyValueStore) -> CredentialStore:
    return CredentialStore(kv, sleep=no_sleep)


@pytest.fixture
def temp_files(tmp_path) -> TempFileStore:
    store = TempFileStore(directory=tmp_path / "temp", max_bytes=1024)
    store.ensure_directory()
    return store


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(ttl_seconds=3600, max_sessions=100, clock=clock)


@pytest.fixture
def seeded_kv(kv: RecordingKeyValueStore) -> RecordingKeyValueStore:
    """Link ABC123 and its owner's credential, written in the stored shape."""
    kv._data[f"link_{LINK_CODE}"] = encode_link_config(make_link_config())
    kv._data[f"token_{OWNER_ACCOUNT_ID}"] = encode_credential(make_credential())
    return kv


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        storage_backend="memory",
        temp_dir=str(tmp_path / "temp"),
        max_upload_bytes=1024 * 1024,
    )


@pytest.fixture
def app(test_settings, kv, item_store, registry, temp_files):
    return create_app(
        test_settings,
        kv=kv,
        item_store=item_store,
        session_registry=registry,
        temp_files=temp_files,
    )


@pytest_asyncio.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
