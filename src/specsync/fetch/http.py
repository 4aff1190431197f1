"""Async HTTP fetcher for URL sources.

Each fetch runs the following lifecycle:

1. ``GET`` the document with the source's headers and timeout.
2. On ``2xx`` -- parse JSON or YAML and return it.
3. On ``408``/``429``/``5xx`` or a network error -- back off and retry.
4. On any other ``4xx`` -- fail immediately with the status.
5. When attempts run out -- fail with the last error.

Failures are returned in :class:`FetchResult`, never raised.
"""

from __future__ import annotations

import asyncio
import json as _json
import sys
import time
from typing import Any

import httpx

from specsync.config import SyncConfig
from specsync.errors import (
    SpecSyncConfigurationError,
    SpecSyncError,
    SpecSyncHTTPStatusError,
    SpecSyncTimeoutError,
    SpecSyncTransportError,
)
from specsync.models import FetchResult, SourceConfig, SourceKind
from specsync.observability import NoopMetricsHook, get_logger
from specsync.spec.parser import load_document
from specsync.utils.redact import redact, redact_url

from .retries import RETRYABLE_STATUSES, compute_backoff, parse_retry_after, should_retry

log = get_logger("specsync.fetch")

DEFAULT_ACCEPT = "application/json, application/yaml, text/yaml, application/x-yaml, */*;q=0.5"


def _dump_payload(
    url: str,
    headers: dict[str, str],
    status: int | None,
    body: str | None,
) -> None:
    """Write a redacted summary of one request/response to stderr."""
    dump: dict[str, Any] = {
        "method": "GET",
        "url": redact_url(url),
        "request_headers": headers,
    }
    if status is not None:
        dump["response_status"] = status
    if body is not None:
        dump["response_body"] = body[:1000]
    print(_json.dumps(redact(dump), indent=2, default=str), file=sys.stderr)


class HttpFetcher:
    """Fetches specification documents over HTTP(S).

    Parameters
    ----------
    config:
        Engine configuration: timeout, retry and proxy settings.
    client:
        Optional pre-built ``httpx.AsyncClient`` (e.g. with a mock
        transport).  When omitted a client is created and owned by the
        fetcher; call :meth:`aclose` to release it.
    """

    def __init__(self, config: SyncConfig | None = None, client: httpx.AsyncClient | None = None) -> None:
        self._config = config or SyncConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.fetch_timeout_seconds),
            proxy=self._config.http_proxy,
            follow_redirects=True,
        )

    # -- public API --------------------------------------------------------

    async def fetch(self, source: SourceConfig) -> FetchResult:
        """Fetch and parse the document behind a URL source."""
        t0 = time.monotonic()
        if source.kind != SourceKind.URL:
            return FetchResult(
                success=False,
                error=SpecSyncConfigurationError(
                    message=f"HttpFetcher cannot read {source.kind.value} source {source.source_id!r}",
                    context={"source_id": source.source_id, "field": "kind"},
                ),
            )
        try:
            content, status = await self._request(source)
        except SpecSyncError as exc:
            elapsed = (time.monotonic() - t0) * 1000
            self._record(source, "error", elapsed)
            return FetchResult(
                success=False,
                error=exc,
                status_code=exc.context.get("status_code"),
                elapsed_ms=elapsed,
            )
        elapsed = (time.monotonic() - t0) * 1000
        self._record(source, "ok", elapsed)
        return FetchResult(success=True, content=content, status_code=status, elapsed_ms=elapsed)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpFetcher:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # -- internals ---------------------------------------------------------

    def _record(self, source: SourceConfig, status: str, elapsed_ms: float) -> None:
        tags = {"source": source.source_id, "status": status}
        self._metrics.increment("specsync.fetch_total", tags=tags)
        self._metrics.timing("specsync.fetch_duration_ms", elapsed_ms, tags=tags)

    async def _request(self, source: SourceConfig) -> tuple[dict, int]:
        url = source.location
        headers = {"Accept": DEFAULT_ACCEPT, **source.headers}
        timeout_s = source.timeout_seconds or self._config.fetch_timeout_seconds
        max_attempts = self._config.retry_max_attempts
        safe_url = redact_url(url)

        last_exc: Exception | None = None
        last_status: int | None = None

        for attempt in range(max_attempts):
            try:
                response = await self._client.get(
                    url, headers=headers, timeout=httpx.Timeout(timeout_s),
                )
            except httpx.HTTPError as exc:
                last_exc, last_status = exc, None
                log.warning(
                    "fetch network error",
                    extra={"extra_fields": {
                        "op": "fetch",
                        "source_id": source.source_id,
                        "url": safe_url,
                        "attempt": attempt + 1,
                        "error": str(exc),
                    }},
                )
                if not should_retry(None, exc, attempt, max_attempts):
                    break
                await self._sleep_before_retry(attempt, None, "network_error")
                continue

            last_exc, last_status = None, response.status_code
            if self._config.debug_dump_payload:
                _dump_payload(url, headers, response.status_code, response.text)

            if 200 <= response.status_code < 300:
                return load_document(response.content, safe_url), response.status_code

            if response.status_code not in RETRYABLE_STATUSES:
                raise SpecSyncHTTPStatusError(
                    message=f"GET {safe_url} returned {response.status_code}",
                    context={
                        "source_id": source.source_id,
                        "location": safe_url,
                        "status_code": response.status_code,
                        "body": response.text[:500],
                    },
                )
            if not should_retry(response.status_code, None, attempt, max_attempts):
                break
            await self._sleep_before_retry(
                attempt,
                parse_retry_after(response) if response.status_code == 429 else None,
                "rate_limited" if response.status_code == 429 else "server_error",
            )

        ctx: dict[str, Any] = {
            "source_id": source.source_id,
            "location": safe_url,
            "attempts": max_attempts,
            "status_code": last_status,
        }
        if isinstance(last_exc, httpx.TimeoutException):
            ctx["timeout_seconds"] = timeout_s
            raise SpecSyncTimeoutError(
                message=f"GET {safe_url} timed out after {timeout_s}s",
                context=ctx,
                cause=last_exc,
            )
        if last_exc is not None:
            raise SpecSyncTransportError(
                message=f"GET {safe_url} failed: {last_exc}",
                context=ctx,
                cause=last_exc,
            )
        raise SpecSyncHTTPStatusError(
            message=f"GET {safe_url} kept returning {last_status}",
            context=ctx,
        )

    async def _sleep_before_retry(self, attempt: int, retry_after: float | None, reason: str) -> None:
        delay = compute_backoff(
            attempt,
            base=self._config.retry_base_delay,
            maximum=self._config.retry_max_delay,
            jitter=self._config.retry_jitter,
            retry_after=retry_after,
        )
        self._metrics.increment("specsync.retries_total", tags={"reason": reason})
        await asyncio.sleep(delay)
