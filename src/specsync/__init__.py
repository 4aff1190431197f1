"""specsync: keep API request collections in step with a live specification.

Public re-exports
-----------------

* **Orchestration:** :class:`SyncOrchestrator`, :class:`SyncEngine`,
  :class:`SourceRegistry`
* **Core:** :class:`DiffEngine`, :class:`ChangeApplier`
* **Configuration:** :class:`SyncConfig`
* **Errors:** Every :class:`SpecSyncError` subclass and :class:`ErrorCode`
* **Models:** All result dataclasses, enums, and collection types

Usage::

    from specsync import SourceConfig, SourceKind, SyncConfig, SyncOrchestrator
    from specsync.store import InMemoryCollectionStore

    store = InMemoryCollectionStore()
    store.create_collection("petstore", "Petstore")

    orchestrator = SyncOrchestrator.from_config(SyncConfig(), store=store)
    orchestrator.engine.registry.register(SourceConfig(
        source_id="petstore",
        kind=SourceKind.URL,
        location="http://localhost:8000/openapi.json",
    ))
    result = await orchestrator.trigger_sync("petstore")
"""

from __future__ import annotations

# ── Core ───────────────────────────────────────────────────────────────
from specsync.apply import ApplyOutcome, ChangeApplier

# ── Configuration ───────────────────────────────────────────────────────
from specsync.config import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_POLL_INTERVAL_MS,
    MIN_POLL_INTERVAL_MS,
    SyncConfig,
)
from specsync.diff import DiffEngine

# ── Errors ──────────────────────────────────────────────────────────────
from specsync.errors import (
    ErrorCode,
    SpecSyncApplyError,
    SpecSyncConfigurationError,
    SpecSyncConflictPendingError,
    SpecSyncError,
    SpecSyncHTTPStatusError,
    SpecSyncParseError,
    SpecSyncSessionError,
    SpecSyncTimeoutError,
    SpecSyncTransportError,
)

# ── Models ──────────────────────────────────────────────────────────────
from specsync.models import (
    Auth,
    Change,
    ChangeKind,
    Collection,
    Conflict,
    ConflictPolicy,
    ConflictResolution,
    DiffResult,
    DiffSummary,
    FetchResult,
    Folder,
    KeyValue,
    RequestBody,
    RequestEntity,
    SavedResponse,
    SessionStatus,
    Severity,
    Snapshot,
    SourceConfig,
    SourceKind,
    SyncResult,
    SyncSession,
    SyncStats,
)

# ── Orchestration ───────────────────────────────────────────────────────
from specsync.sync import SourceRegistry, SyncEngine, SyncOrchestrator

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Orchestration
    "SyncOrchestrator",
    "SyncEngine",
    "SourceRegistry",
    # Core
    "DiffEngine",
    "ChangeApplier",
    "ApplyOutcome",
    # Configuration
    "SyncConfig",
    "DEFAULT_POLL_INTERVAL_MS",
    "MIN_POLL_INTERVAL_MS",
    "DEFAULT_DEBOUNCE_MS",
    # Error base + code enum
    "SpecSyncError",
    "ErrorCode",
    # Errors
    "SpecSyncConfigurationError",
    "SpecSyncTransportError",
    "SpecSyncTimeoutError",
    "SpecSyncHTTPStatusError",
    "SpecSyncParseError",
    "SpecSyncApplyError",
    "SpecSyncConflictPendingError",
    "SpecSyncSessionError",
    # Models: enums
    "ChangeKind",
    "Severity",
    "ConflictResolution",
    "ConflictPolicy",
    "SessionStatus",
    "SourceKind",
    # Models: diff and sync
    "Change",
    "DiffSummary",
    "DiffResult",
    "Conflict",
    "Snapshot",
    "SourceConfig",
    "SyncSession",
    "SyncStats",
    "FetchResult",
    "SyncResult",
    # Models: collection tree
    "Collection",
    "Folder",
    "RequestEntity",
    "KeyValue",
    "Auth",
    "RequestBody",
    "SavedResponse",
]
