"""Local-file fetcher and the kind-dispatching fetcher."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from specsync.config import SyncConfig
from specsync.errors import SpecSyncConfigurationError, SpecSyncError, SpecSyncTransportError
from specsync.models import FetchResult, SourceConfig, SourceKind
from specsync.observability import NoopMetricsHook
from specsync.spec.parser import load_document

from .http import HttpFetcher


class FileFetcher:
    """Reads JSON or YAML specification documents from disk.

    File reads run in a worker thread so a slow disk never blocks the
    event loop.  A missing file is a configuration problem (the path is
    wrong); an unreadable one is a transport problem (try again later).
    """

    def __init__(self, config: SyncConfig | None = None) -> None:
        self._config = config or SyncConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )

    async def fetch(self, source: SourceConfig) -> FetchResult:
        t0 = time.monotonic()
        try:
            content = await self._read(source)
        except SpecSyncError as exc:
            elapsed = (time.monotonic() - t0) * 1000
            self._record(source, "error", elapsed)
            return FetchResult(success=False, error=exc, elapsed_ms=elapsed)
        elapsed = (time.monotonic() - t0) * 1000
        self._record(source, "ok", elapsed)
        return FetchResult(success=True, content=content, elapsed_ms=elapsed)

    def _record(self, source: SourceConfig, status: str, elapsed_ms: float) -> None:
        tags = {"source": source.source_id, "status": status}
        self._metrics.increment("specsync.fetch_total", tags=tags)
        self._metrics.timing("specsync.fetch_duration_ms", elapsed_ms, tags=tags)

    async def _read(self, source: SourceConfig) -> dict:
        if source.kind != SourceKind.FILE:
            raise SpecSyncConfigurationError(
                message=f"FileFetcher cannot read {source.kind.value} source {source.source_id!r}",
                context={"source_id": source.source_id, "field": "kind"},
            )
        path = Path(source.location).expanduser()
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise SpecSyncConfigurationError(
                message=f"Specification file {str(path)!r} does not exist",
                context={"source_id": source.source_id, "field": "location", "value": str(path)},
                cause=exc,
            ) from exc
        except OSError as exc:
            raise SpecSyncTransportError(
                message=f"Could not read {str(path)!r}: {exc}",
                context={"source_id": source.source_id, "location": str(path), "attempts": 1},
                cause=exc,
            ) from exc
        return load_document(data, str(path))


class SourceFetcher:
    """Routes each source to the HTTP or file fetcher by its kind.

    This is the default :class:`~specsync.interfaces.Fetcher` used by the
    orchestrator when the host does not supply one.
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        http: HttpFetcher | None = None,
        file: FileFetcher | None = None,
    ) -> None:
        config = config or SyncConfig()
        self._http = http or HttpFetcher(config)
        self._file = file or FileFetcher(config)

    async def fetch(self, source: SourceConfig) -> FetchResult:
        if source.kind == SourceKind.FILE:
            return await self._file.fetch(source)
        return await self._http.fetch(source)

    async def aclose(self) -> None:
        await self._http.aclose()
