"""Tests for SyncEngine: one fetch -> diff -> apply pass."""

from __future__ import annotations

import copy
import dataclasses
from typing import Any
from unittest.mock import Mock

import pytest

from specsync.errors import (
    ErrorCode,
    SpecSyncApplyError,
    SpecSyncConfigurationError,
    SpecSyncHTTPStatusError,
    SpecSyncTransportError,
)
from specsync.models import Auth
from specsync.notify import (
    BREAKING_CHANGES,
    CONFLICTS,
    SYNC_COMPLETED,
    SYNC_FAILED,
    RecordingNotificationSink,
)
from specsync.sync import SyncEngine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class RecordingMetricsHook:
    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def engine(fetcher, store, registry, snapshots, config, sink) -> SyncEngine:
    return SyncEngine(fetcher, store, registry, snapshots=snapshots, config=config, sink=sink)


def _without_get_user(spec: dict) -> dict:
    new = copy.deepcopy(spec)
    del new["paths"]["/users/{id}"]
    return new


# ---------------------------------------------------------------------------
# Successful passes
# ---------------------------------------------------------------------------


class TestPerformSync:
    @pytest.mark.asyncio
    async def test_first_sync_builds_collection(self, engine, store, snapshots, sink):
        result = await engine.perform_sync("users")
        assert result.success is True
        assert result.has_changes is True
        assert result.errors == []
        assert result.finished_at is not None
        assert store.find_by_source("users").request_count() == 2
        assert snapshots.get("users").content_hash == result.diff.new_hash
        assert snapshots.get("users").origin == "https://api.example.com/openapi.json"
        (done,) = sink.of(SYNC_COMPLETED)
        assert done.message == "Synced Users API: 2 added, 0 modified, 0 removed"

    @pytest.mark.asyncio
    async def test_unchanged_short_circuits(self, engine, store, sink):
        await engine.perform_sync("users")
        engine.applier = Mock(wraps=engine.applier)
        result = await engine.perform_sync("users")
        assert result.success is True
        assert result.has_changes is False
        assert result.diff.has_changes is False
        engine.applier.apply.assert_not_called()
        assert sink.events[-1].message == "Users API is up to date"

    @pytest.mark.asyncio
    async def test_changed_document_applied(self, engine, fetcher, store, snapshots):
        first = await engine.perform_sync("users")
        fetcher.document = _without_get_user(fetcher.document)
        result = await engine.perform_sync("users")
        assert result.has_changes is True
        assert result.diff.old_hash == first.diff.new_hash
        assert store.find_by_source("users").request_count() == 1
        assert snapshots.get("users").content_hash == result.diff.new_hash

    @pytest.mark.asyncio
    async def test_breaking_changes_announced(self, engine, fetcher, sink):
        await engine.perform_sync("users")
        fetcher.document = _without_get_user(fetcher.document)
        await engine.perform_sync("users")
        (event,) = sink.of(BREAKING_CHANGES)
        assert event.data["paths"] == ["GET /users/{id}"]

    @pytest.mark.asyncio
    async def test_conflicts_announced(self, engine, fetcher, store, sink):
        await engine.perform_sync("users")
        folder = store.find_by_source("users").folders[0]
        get_user = next(r for r in folder.requests if r.endpoint.endswith("{id}"))
        get_user.auth = Auth(auth_type="bearer")
        fetcher.document = _without_get_user(fetcher.document)
        result = await engine.perform_sync("users")
        assert len(result.conflicts) == 1
        (event,) = sink.of(CONFLICTS)
        assert event.data["paths"] == ["GET /users/{id}"]

    @pytest.mark.asyncio
    async def test_integer_status_keys_from_custom_fetcher(self, engine, fetcher, snapshots):
        responses = fetcher.document["paths"]["/users"]["get"]["responses"]
        responses[200] = responses.pop("200")
        responses["default"] = {"description": "error"}
        result = await engine.perform_sync("users")
        assert result.success is True
        assert set(snapshots.get("users").content["paths"]["/users"]["get"]["responses"]) == {"200", "default"}

    @pytest.mark.asyncio
    async def test_metrics(self, fetcher, store, registry, config):
        hook = RecordingMetricsHook()
        engine = SyncEngine(fetcher, store, registry, config=dataclasses.replace(config, metrics=hook))
        await engine.perform_sync("users")
        await engine.perform_sync("users")
        outcomes = [m["tags"]["outcome"] for m in hook.increments if m["name"] == "specsync.sync_total"]
        assert outcomes == ["applied", "unchanged"]
        assert all(t["name"] == "specsync.sync_duration_ms" for t in hook.timings)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestPerformSyncFailures:
    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_snapshot(self, engine, fetcher, snapshots, sink):
        await engine.perform_sync("users")
        before = snapshots.get("users")
        fetcher.error = SpecSyncHTTPStatusError(
            message="GET returned 503", context={"status_code": 503},
        )
        result = await engine.perform_sync("users")
        assert result.success is False
        assert result.errors == [fetcher.error]
        assert snapshots.get("users") is before
        (failed,) = sink.of(SYNC_FAILED)
        assert failed.data["code"] == "HTTP_STATUS"

    @pytest.mark.asyncio
    async def test_fetcher_exception_wrapped(self, engine, fetcher):
        async def explode(source):
            raise RuntimeError("socket gone")

        fetcher.fetch = explode
        result = await engine.perform_sync("users")
        (error,) = result.errors
        assert isinstance(error, SpecSyncTransportError)
        assert isinstance(error.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_unknown_source(self, engine, fetcher):
        result = await engine.perform_sync("nope")
        assert isinstance(result.errors[0], SpecSyncConfigurationError)
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_missing_collection(self, engine, fetcher, store):
        store.delete_collection("users")
        result = await engine.perform_sync("users")
        (error,) = result.errors
        assert isinstance(error, SpecSyncConfigurationError)
        assert error.context["field"] == "collection"
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_snapshot_written_only_after_apply(self, engine, snapshots):
        engine.applier = Mock()
        engine.applier.apply.side_effect = SpecSyncApplyError(message="store offline")
        result = await engine.perform_sync("users")
        assert result.success is False
        assert snapshots.get("users") is None

    @pytest.mark.asyncio
    async def test_sink_errors_do_not_escape(self, fetcher, store, registry, config):
        class BrokenSink:
            def notify(self, event, message, data=None):
                raise RuntimeError("sink down")

        engine = SyncEngine(fetcher, store, registry, config=config, sink=BrokenSink())
        result = await engine.perform_sync("users")
        assert result.success is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_captured(self, engine, snapshots, sink):
        engine.diff_engine = Mock()
        engine.diff_engine.content_hash.side_effect = TypeError("unorderable keys")
        result = await engine.perform_sync("users")
        assert result.success is False
        (error,) = result.errors
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert isinstance(error.cause, TypeError)
        assert snapshots.get("users") is None
        (failed,) = sink.of(SYNC_FAILED)
        assert failed.data["code"] == "INTERNAL_ERROR"
