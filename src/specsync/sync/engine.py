"""Sync engine: one fetch -> diff -> apply pass for one source.

:meth:`SyncEngine.perform_sync` never raises.  Transport and configuration
problems are captured in :attr:`SyncResult.errors`; anything unexpected is
wrapped as an ``INTERNAL_ERROR`` and captured the same way.
The snapshot for a source is replaced only after the apply pass finished,
so a failed sync retries against the same baseline next time.
"""

from __future__ import annotations

import time

from specsync.apply import ChangeApplier
from specsync.config import SyncConfig
from specsync.diff import DiffEngine
from specsync.errors import (
    ErrorCode,
    SpecSyncConfigurationError,
    SpecSyncError,
    SpecSyncTransportError,
)
from specsync.interfaces import CollectionStore, Fetcher, NotificationSink
from specsync.models import DiffResult, SourceConfig, SyncResult, utcnow
from specsync.notify import BREAKING_CHANGES, CONFLICTS, SYNC_COMPLETED, SYNC_FAILED, NoopNotificationSink
from specsync.observability import NoopMetricsHook, bind, get_logger
from specsync.store import SnapshotStore
from specsync.utils.hashing import stringify_keys

from .sources import SourceRegistry

log = get_logger("specsync.sync")


class SyncEngine:
    """Runs sync passes.  Holds no per-source state besides the snapshots.

    Parameters
    ----------
    fetcher:
        Retrieves documents; see :class:`~specsync.interfaces.Fetcher`.
    store:
        The collection store changes are applied to.
    registry:
        Known sources.
    snapshots:
        Last applied document per source.  Created from
        ``config.max_snapshots`` when omitted.
    config:
        Engine configuration.
    sink:
        Receives human-readable outcomes.  Defaults to a no-op sink.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        store: CollectionStore,
        registry: SourceRegistry,
        *,
        snapshots: SnapshotStore | None = None,
        config: SyncConfig | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self.config = config or SyncConfig()
        self.fetcher = fetcher
        self.store = store
        self.registry = registry
        self.snapshots = snapshots if snapshots is not None else SnapshotStore(self.config.max_snapshots)
        self.sink = sink or NoopNotificationSink()
        self.diff_engine = DiffEngine(self.config)
        self.applier = ChangeApplier(store, self.config)
        self._metrics = (
            self.config.metrics if self.config.metrics is not None else NoopMetricsHook()
        )

    async def perform_sync(self, source_id: str) -> SyncResult:
        """Fetch, compare and apply the latest document for *source_id*.

        Returns
        -------
        SyncResult
            ``success=False`` with a populated ``errors`` list when the
            source, its collection or the fetch failed.  Apply-time
            problems appear as ``conflicts`` on a successful result.
        """
        result = SyncResult(source_id=source_id, success=False)
        slog = bind(log, source_id=source_id)
        t0 = time.monotonic()

        source = self.registry.get(source_id)
        try:
            if source is None:
                raise SpecSyncConfigurationError(
                    message=f"Unknown source {source_id!r}",
                    context={"source_id": source_id, "field": "source_id"},
                )
            self._require_collection(source_id)
            await self._sync(source, result)
        except SpecSyncError as exc:
            result.success = False
            result.errors.append(exc)
            slog.warning(
                "sync failed",
                extra={"extra_fields": {"op": "sync", "code": exc.code, "error": exc.message}},
            )
        except Exception as exc:
            error = SpecSyncError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"Sync of {source_id!r} failed unexpectedly: {exc}",
                context={"source_id": source_id, "exception": type(exc).__name__},
                cause=exc,
            )
            result.success = False
            result.errors.append(error)
            slog.error(
                "sync raised unexpectedly",
                exc_info=True,
                extra={"extra_fields": {"op": "sync", "code": error.code}},
            )

        result.finished_at = utcnow()
        elapsed = (time.monotonic() - t0) * 1000
        outcome = "failed" if not result.success else ("applied" if result.has_changes else "unchanged")
        tags = {"source": source_id, "outcome": outcome}
        self._metrics.increment("specsync.sync_total", tags=tags)
        self._metrics.timing("specsync.sync_duration_ms", elapsed, tags=tags)
        self._announce(source, result)
        return result

    # -- internals ---------------------------------------------------------

    def _require_collection(self, source_id: str) -> None:
        if self.store.find_by_source(source_id) is None:
            raise SpecSyncConfigurationError(
                message=f"No collection is bound to source {source_id!r}",
                context={"source_id": source_id, "field": "collection"},
            )

    async def _sync(self, source: SourceConfig, result: SyncResult) -> None:
        slog = bind(log, source_id=source.source_id)
        try:
            fetched = await self.fetcher.fetch(source)
        except SpecSyncError:
            raise
        except Exception as exc:
            raise SpecSyncTransportError(
                message=f"Fetcher raised for source {source.source_id!r}: {exc}",
                context={"source_id": source.source_id, "location": source.location},
                cause=exc,
            ) from exc
        if not fetched.success or fetched.content is None:
            raise fetched.error or SpecSyncTransportError(
                message=f"Fetch for source {source.source_id!r} returned no content",
                context={"source_id": source.source_id, "location": source.location},
            )

        document = stringify_keys(fetched.content)
        new_hash = self.diff_engine.content_hash(document)
        snapshot = self.snapshots.get(source.source_id)
        if snapshot is not None and snapshot.content_hash == new_hash:
            result.success = True
            result.diff = DiffResult(
                has_changes=False, old_hash=snapshot.content_hash, new_hash=new_hash,
            )
            slog.debug("sync unchanged", extra={"extra_fields": {"op": "sync", "hash": new_hash}})
            return

        old_document = snapshot.content if snapshot is not None else None
        diff = self.diff_engine.compare(old_document, document)
        outcome = self.applier.apply(
            source.source_id, diff, document, old_document=old_document,
        )
        self.snapshots.put(source.source_id, document, new_hash, origin=source.location)

        result.success = True
        result.has_changes = diff.has_changes
        result.diff = diff
        result.conflicts = outcome.conflicts
        result.warnings = outcome.warnings
        slog.info(
            "sync complete",
            extra={"extra_fields": {
                "op": "sync",
                "changes": len(diff.changes),
                "breaking": diff.summary.breaking,
                "added": outcome.added,
                "updated": outcome.updated,
                "removed": outcome.removed,
                "conflicts": len(outcome.conflicts),
            }},
        )

    def _announce(self, source: SourceConfig | None, result: SyncResult) -> None:
        name = source.name if source is not None and source.name else result.source_id
        data = {"source_id": result.source_id}
        try:
            if not result.success:
                error = result.errors[0] if result.errors else None
                self.sink.notify(
                    SYNC_FAILED,
                    f"Sync of {name} failed: {error.message if error else 'unknown error'}",
                    {**data, "code": error.code if error else None},
                )
                return
            summary = result.diff.summary if result.diff is not None else None
            if not result.has_changes or summary is None:
                self.sink.notify(SYNC_COMPLETED, f"{name} is up to date", {**data, "has_changes": False})
                return
            self.sink.notify(
                SYNC_COMPLETED,
                f"Synced {name}: {summary.added} added, {summary.modified} modified, "
                f"{summary.removed} removed",
                {**data, "has_changes": True, **vars(summary)},
            )
            if summary.breaking:
                self.sink.notify(
                    BREAKING_CHANGES,
                    f"{name} has {summary.breaking} breaking change(s)",
                    {**data, "paths": [c.path for c in result.diff.breaking_changes]},
                )
            pending = result.unresolved_conflicts
            if pending:
                self.sink.notify(
                    CONFLICTS,
                    f"{name}: {len(pending)} change(s) need review",
                    {**data, "paths": [c.path for c in pending]},
                )
        except Exception:
            log.warning(
                "notification sink raised",
                exc_info=True,
                extra={"extra_fields": {"source_id": result.source_id}},
            )
