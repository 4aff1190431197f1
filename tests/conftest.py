"""Shared test fixtures for the specsync test suite."""

from __future__ import annotations

import asyncio
import copy

import pytest

from specsync.config import SyncConfig
from specsync.errors import SpecSyncError
from specsync.models import FetchResult, SourceConfig, SourceKind
from specsync.store import InMemoryCollectionStore, SnapshotStore
from specsync.sync import SourceRegistry

USERS_SPEC: dict = {
    "openapi": "3.0.0",
    "info": {"title": "Users", "version": "1.0.0"},
    "paths": {
        "/users": {
            "get": {
                "operationId": "listUsers",
                "summary": "List users",
                "tags": ["users"],
                "parameters": [
                    {"name": "limit", "in": "query", "required": False, "schema": {"type": "integer"}},
                ],
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/User"},
                            },
                        },
                    },
                },
            },
        },
        "/users/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
            ],
            "get": {
                "operationId": "getUser",
                "summary": "Get user",
                "tags": ["users"],
                "responses": {"200": {"description": "ok"}},
            },
        },
    },
    "components": {
        "schemas": {
            "User": {
                "type": "object",
                "required": ["id"],
                "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
            },
        },
    },
}


@pytest.fixture
def config() -> SyncConfig:
    """Configuration tuned for fast, deterministic tests."""
    return SyncConfig(
        poll_interval_ms=1_000,
        debounce_ms=10,
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
    )


@pytest.fixture
def users_spec() -> dict:
    """A small OpenAPI 3 document; each test gets its own copy."""
    return copy.deepcopy(USERS_SPEC)


@pytest.fixture
def store() -> InMemoryCollectionStore:
    """A collection store with an empty collection bound to ``"users"``."""
    s = InMemoryCollectionStore()
    s.create_collection("users", "Users API")
    return s


@pytest.fixture
def snapshots() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def registry() -> SourceRegistry:
    """A registry that knows the ``"users"`` URL source."""
    return SourceRegistry([
        SourceConfig(
            source_id="users",
            kind=SourceKind.URL,
            location="https://api.example.com/openapi.json",
            name="Users API",
        ),
    ])


class StubFetcher:
    """Serves a settable document (or error) and counts calls.

    Set ``gate`` to an :class:`asyncio.Event` to hold every fetch until the
    event is set.
    """

    def __init__(self, document: dict | None = None) -> None:
        self.document = document
        self.error: SpecSyncError | None = None
        self.gate: asyncio.Event | None = None
        self.calls = 0

    async def fetch(self, source: SourceConfig) -> FetchResult:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            return FetchResult(success=False, error=self.error)
        return FetchResult(success=True, content=copy.deepcopy(self.document), status_code=200)


@pytest.fixture
def fetcher(users_spec) -> StubFetcher:
    """A fetcher that serves ``users_spec`` until told otherwise."""
    return StubFetcher(users_spec)
