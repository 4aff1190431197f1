"""Sync orchestrator: per-source sessions, polling and single-flight syncs.

Session lifecycle::

    start -> ACTIVE <-> PAUSED
               |          |
               +-- stop --+--> (discarded)

Errors never change the status; they accumulate in
:attr:`SyncSession.error_count` and reset on the next successful sync.

Every lifecycle change is persisted before it takes effect: if saving the
session descriptors fails, the session is put back the way it was, no
poll timer is started or stopped, and the caller gets a
:class:`~specsync.errors.SpecSyncSessionError`.

One :class:`SyncOrchestrator` is created per process and passed to the
code that drives it.  All methods must be called from the event loop
that owns it.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections import deque

from specsync.config import MIN_POLL_INTERVAL_MS, SyncConfig
from specsync.errors import (
    SpecSyncConfigurationError,
    SpecSyncError,
    SpecSyncSessionError,
)
from specsync.fetch import SourceFetcher
from specsync.interfaces import CollectionStore, Fetcher, NotificationSink, SessionPersistence
from specsync.models import SessionStatus, SyncResult, SyncSession, SyncStats
from specsync.observability import NoopMetricsHook, bind, get_logger

from .debounce import Debouncer
from .engine import SyncEngine
from .sources import SourceRegistry

log = get_logger("specsync.orchestrator")


class SyncOrchestrator:
    """Owns every live-sync session of a process.

    Parameters
    ----------
    engine:
        Runs the individual sync passes; its ``registry`` resolves sources
        and its ``config`` supplies poll, debounce and history defaults.
    persistence:
        Where session descriptors are saved on every lifecycle change and
        after every sync.  ``None`` keeps sessions in memory only.
    """

    def __init__(self, engine: SyncEngine, persistence: SessionPersistence | None = None) -> None:
        self._engine = engine
        self._config = engine.config
        self._persistence = persistence
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._sessions: dict[str, SyncSession] = {}
        self._poll_tasks: dict[str, asyncio.Task[None]] = {}
        self._inflight: dict[str, asyncio.Task[SyncResult]] = {}
        self._history: dict[str, deque[SyncResult]] = {}
        self._stats: dict[str, SyncStats] = {}
        self._suspended: set[str] = set()
        self._debouncer = Debouncer(self._config.debounce_ms / 1000)

    @classmethod
    def from_config(
        cls,
        config: SyncConfig | None = None,
        *,
        store: CollectionStore,
        registry: SourceRegistry | None = None,
        fetcher: Fetcher | None = None,
        persistence: SessionPersistence | None = None,
        sink: NotificationSink | None = None,
    ) -> SyncOrchestrator:
        """Wire an orchestrator from the reference components.

        Only the collection store is required; the fetcher defaults to a
        :class:`~specsync.fetch.SourceFetcher` built from *config*.
        """
        config = config or SyncConfig()
        engine = SyncEngine(
            fetcher or SourceFetcher(config),
            store,
            registry if registry is not None else SourceRegistry(),
            config=config,
            sink=sink,
        )
        return cls(engine, persistence)

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, source_id: str) -> SyncSession | None:
        return self._sessions.get(source_id)

    def sessions(self) -> list[SyncSession]:
        return list(self._sessions.values())

    def last_result(self, source_id: str) -> SyncResult | None:
        """Return the outcome of the most recent finished sync for *source_id*."""
        history = self._history.get(source_id)
        return history[-1] if history else None

    def history(self, source_id: str) -> list[SyncResult]:
        """Return up to ``history_size`` recent results for *source_id*, oldest first."""
        return list(self._history.get(source_id, ()))

    def error_history(self, source_id: str) -> list[SpecSyncError]:
        """Return the errors of the recent results for *source_id*, oldest first."""
        return [e for r in self._history.get(source_id, ()) for e in r.errors]

    def clear_history(self, source_id: str) -> int:
        """Forget the recorded results for *source_id*.

        Returns the number of results dropped.  :meth:`stats` is kept.
        """
        history = self._history.pop(source_id, None)
        return len(history) if history else 0

    def stats(self, source_id: str) -> SyncStats:
        """Return lifetime sync counters for *source_id*."""
        return dataclasses.replace(self._stats.get(source_id) or SyncStats(source_id=source_id))

    def is_polling(self, source_id: str) -> bool:
        task = self._poll_tasks.get(source_id)
        return task is not None and not task.done()

    def is_syncing(self, source_id: str) -> bool:
        return source_id in self._inflight

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        source_id: str,
        poll_interval_ms: int | None = None,
        auto_sync: bool = True,
    ) -> SyncSession:
        """Create a session for a registered source and start polling it.

        Raises
        ------
        SpecSyncSessionError
            If the source already has a session, or the new session could
            not be persisted.
        SpecSyncConfigurationError
            If the source is unknown or the interval is too short.
        """
        if source_id in self._sessions:
            raise SpecSyncSessionError(
                message=f"Source {source_id!r} already has a sync session",
                context={"source_id": source_id, "status": self._sessions[source_id].status.value},
            )
        source = self._engine.registry.require(source_id)
        interval = poll_interval_ms or source.poll_interval_ms or self._config.poll_interval_ms
        self._check_interval(source_id, interval)

        session = SyncSession(source_id=source_id, poll_interval_ms=interval, auto_sync=auto_sync)
        self._sessions[source_id] = session
        try:
            await self._changed("start", source_id)
        except SpecSyncSessionError:
            self._sessions.pop(source_id, None)
            self._emit_gauge()
            raise
        if auto_sync:
            self._start_polling(source_id)
        bind(log, source_id=source_id).info(
            "session started",
            extra={"extra_fields": {"op": "start", "poll_interval_ms": interval, "auto_sync": auto_sync}},
        )
        return session

    async def pause(self, source_id: str) -> SyncSession:
        """Stop polling but keep the session.  A no-op for paused sessions."""
        session = self._require(source_id)
        if session.status == SessionStatus.PAUSED:
            return session
        await self._mutate("pause", session, status=SessionStatus.PAUSED)
        self._stop_polling(source_id)
        self._debouncer.cancel(source_id)
        bind(log, source_id=source_id).info("session paused", extra={"extra_fields": {"op": "pause"}})
        return session

    async def resume(self, source_id: str) -> SyncSession:
        """Resume polling of a paused session.  A no-op for active sessions."""
        session = self._require(source_id)
        self._suspended.discard(source_id)
        if session.status == SessionStatus.ACTIVE:
            return session
        await self._mutate("resume", session, status=SessionStatus.ACTIVE)
        if session.auto_sync:
            self._start_polling(source_id)
        bind(log, source_id=source_id).info("session resumed", extra={"extra_fields": {"op": "resume"}})
        return session

    async def stop(self, source_id: str) -> bool:
        """Cancel polling and discard the session.

        A sync already in flight is allowed to finish.  Returns ``False``
        when the source had no session.
        """
        session = self._sessions.pop(source_id, None)
        if session is None:
            return False
        try:
            await self._changed("stop", source_id)
        except SpecSyncSessionError:
            self._sessions[source_id] = session
            self._emit_gauge()
            raise
        self._stop_polling(source_id)
        self._debouncer.cancel(source_id)
        self._suspended.discard(source_id)
        session.status = SessionStatus.STOPPED
        bind(log, source_id=source_id).info("session stopped", extra={"extra_fields": {"op": "stop"}})
        return True

    async def suspend_all(self) -> list[str]:
        """Pause every active session, e.g. while the host is backgrounded.

        Returns the ids that were paused; :meth:`resume_all` resumes exactly
        those.
        """
        paused: list[str] = []
        for session in list(self._sessions.values()):
            if session.status == SessionStatus.ACTIVE:
                await self.pause(session.source_id)
                self._suspended.add(session.source_id)
                paused.append(session.source_id)
        return paused

    async def resume_all(self) -> list[str]:
        """Resume the sessions paused by :meth:`suspend_all`."""
        resumed: list[str] = []
        for source_id in sorted(self._suspended):
            if source_id in self._sessions:
                await self.resume(source_id)
                resumed.append(source_id)
        self._suspended.clear()
        return resumed

    async def update_poll_interval(self, source_id: str, poll_interval_ms: int) -> SyncSession:
        session = self._require(source_id)
        self._check_interval(source_id, poll_interval_ms)
        await self._mutate("update_poll_interval", session, poll_interval_ms=poll_interval_ms)
        if self.is_polling(source_id):
            self._start_polling(source_id)
        return session

    async def set_auto_sync(self, source_id: str, enabled: bool) -> SyncSession:
        """Turn the poll timer of a session on or off without pausing it."""
        session = self._require(source_id)
        await self._mutate("set_auto_sync", session, auto_sync=enabled)
        if not enabled:
            self._stop_polling(source_id)
        elif session.status == SessionStatus.ACTIVE and not self.is_polling(source_id):
            self._start_polling(source_id)
        return session

    async def shutdown(self) -> None:
        """Cancel every timer and wait for in-flight syncs to finish.

        Sessions are kept (and already persisted) so :meth:`restore` can
        bring them back in the next process.
        """
        for source_id in list(self._poll_tasks):
            self._stop_polling(source_id)
        self._debouncer.cancel_all()
        inflight = list(self._inflight.values())
        if inflight:
            await asyncio.gather(*inflight, return_exceptions=True)
        log.info("orchestrator shut down", extra={"extra_fields": {"sessions": len(self._sessions)}})

    async def restore(self) -> list[SyncSession]:
        """Reload persisted sessions; active ones resume polling.

        ``error_count`` and ``last_sync_at`` survive the restart.
        Descriptors for unknown sources, or that cannot be read, are
        skipped with a warning.
        """
        if self._persistence is None:
            return []
        descriptors = await self._persistence.load()
        restored: list[SyncSession] = []
        for descriptor in descriptors or []:
            try:
                session = SyncSession.from_descriptor(descriptor)
            except (KeyError, TypeError, ValueError) as exc:
                log.warning(
                    "skipping unreadable session descriptor",
                    extra={"extra_fields": {"op": "restore", "error": str(exc)}},
                )
                continue
            if session.source_id in self._sessions:
                continue
            if session.source_id not in self._engine.registry:
                log.warning(
                    "skipping session for unknown source",
                    extra={"extra_fields": {"op": "restore", "source_id": session.source_id}},
                )
                continue
            if session.status == SessionStatus.STOPPED:
                continue
            self._sessions[session.source_id] = session
            if session.status == SessionStatus.ACTIVE and session.auto_sync:
                self._start_polling(session.source_id)
            restored.append(session)
        log.info("sessions restored", extra={"extra_fields": {"op": "restore", "count": len(restored)}})
        self._emit_gauge()
        return restored

    # ------------------------------------------------------------------
    # Syncing
    # ------------------------------------------------------------------

    async def trigger_sync(self, source_id: str) -> SyncResult:
        """Sync *source_id* now, joining a sync that is already running.

        Concurrent callers for one source share a single fetch and apply
        pass and receive the same :class:`SyncResult`.  Cancelling a caller
        never cancels the shared pass.
        """
        task = self._inflight.get(source_id)
        if task is None:
            task = asyncio.create_task(self._run_sync(source_id), name=f"specsync-sync-{source_id}")
            self._inflight[source_id] = task
            task.add_done_callback(lambda t, sid=source_id: self._clear_inflight(sid, t))
        return await asyncio.shield(task)

    def notify_source_changed(self, source_id: str) -> bool:
        """Report a change event for *source_id* (e.g. from a file watcher).

        Bursts collapse into one sync ``debounce_ms`` after the last event.
        Returns ``False`` when the event is ignored because the source has
        no active session.
        """
        session = self._sessions.get(source_id)
        if session is None or session.status != SessionStatus.ACTIVE:
            return False
        self._debouncer.schedule(source_id, lambda: self.trigger_sync(source_id))
        return True

    async def _run_sync(self, source_id: str) -> SyncResult:
        result = await self._engine.perform_sync(source_id)
        self._record(source_id, result)
        session = self._sessions.get(source_id)
        if session is None:
            return result
        if result.success:
            session.error_count = 0
            session.last_sync_at = result.finished_at
        elif any(not isinstance(e, SpecSyncConfigurationError) for e in result.errors):
            session.error_count += 1
            bind(log, source_id=source_id).warning(
                "sync attempt failed",
                extra={"extra_fields": {"op": "sync", "error_count": session.error_count}},
            )
        else:
            return result
        try:
            await self._changed("sync", source_id)
        except SpecSyncSessionError as exc:
            # The sync itself finished; the counters are saved with the next change.
            bind(log, source_id=source_id).warning(
                "could not persist sync counters",
                extra={"extra_fields": {"op": "sync", "error": exc.message}},
            )
        return result

    def _record(self, source_id: str, result: SyncResult) -> None:
        history = self._history.get(source_id)
        if history is None:
            history = self._history[source_id] = deque(maxlen=self._config.history_size)
        history.append(result)
        stats = self._stats.get(source_id)
        if stats is None:
            stats = self._stats[source_id] = SyncStats(source_id=source_id)
        stats.record(result)

    def _clear_inflight(self, source_id: str, task: asyncio.Task[SyncResult]) -> None:
        if self._inflight.get(source_id) is task:
            del self._inflight[source_id]
        if not task.cancelled() and task.exception() is not None:
            log.error(
                "sync raised unexpectedly",
                exc_info=task.exception(),
                extra={"extra_fields": {"source_id": source_id}},
            )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling(self, source_id: str) -> None:
        self._stop_polling(source_id)
        self._poll_tasks[source_id] = asyncio.create_task(
            self._poll_loop(source_id), name=f"specsync-poll-{source_id}",
        )

    def _stop_polling(self, source_id: str) -> None:
        task = self._poll_tasks.pop(source_id, None)
        if task is not None:
            task.cancel()

    async def _poll_loop(self, source_id: str) -> None:
        while True:
            session = self._sessions.get(source_id)
            if session is None:
                return
            await asyncio.sleep(session.poll_interval_ms / 1000)
            try:
                await self.trigger_sync(source_id)
            except Exception:
                # Logged by _clear_inflight; the next tick retries.
                continue

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, source_id: str) -> SyncSession:
        session = self._sessions.get(source_id)
        if session is None:
            raise SpecSyncSessionError(
                message=f"Source {source_id!r} has no sync session",
                context={"source_id": source_id},
            )
        return session

    def _check_interval(self, source_id: str, interval: int) -> None:
        if interval < MIN_POLL_INTERVAL_MS:
            raise SpecSyncConfigurationError(
                message=f"Poll interval must be at least {MIN_POLL_INTERVAL_MS} ms, got {interval}",
                context={"source_id": source_id, "field": "poll_interval_ms", "value": interval},
            )

    def _emit_gauge(self) -> None:
        active = sum(1 for s in self._sessions.values() if s.status == SessionStatus.ACTIVE)
        self._metrics.gauge("specsync.sessions_active", active)

    async def _mutate(self, op: str, session: SyncSession, **changes: object) -> None:
        """Apply *changes* to *session* and persist; undo them if saving fails."""
        previous = {name: getattr(session, name) for name in changes}
        for name, value in changes.items():
            setattr(session, name, value)
        try:
            await self._changed(op, session.source_id)
        except SpecSyncSessionError:
            for name, value in previous.items():
                setattr(session, name, value)
            self._emit_gauge()
            raise

    async def _changed(self, op: str, source_id: str) -> None:
        self._emit_gauge()
        if self._persistence is None:
            return
        try:
            await self._persistence.save([s.to_descriptor() for s in self._sessions.values()])
        except SpecSyncSessionError:
            raise
        except Exception as exc:
            raise SpecSyncSessionError(
                message=f"Could not persist sync sessions after {op} of {source_id!r}: {exc}",
                context={"source_id": source_id, "op": op},
                cause=exc,
            ) from exc
