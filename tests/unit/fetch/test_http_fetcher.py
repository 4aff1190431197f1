"""Tests for HttpFetcher: parsing, retry policy, error mapping and metrics.

All HTTP traffic goes through ``httpx.MockTransport``; retry delays are
zero via the shared ``config`` fixture.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import httpx
import pytest

from specsync.errors import (
    ErrorCode,
    SpecSyncConfigurationError,
    SpecSyncHTTPStatusError,
    SpecSyncParseError,
    SpecSyncTimeoutError,
    SpecSyncTransportError,
)
from specsync.fetch import HttpFetcher
from specsync.models import SourceConfig, SourceKind

URL = "https://api.example.com/openapi.json"

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


def _source(**kwargs) -> SourceConfig:
    defaults: dict[str, Any] = {"source_id": "users", "kind": SourceKind.URL, "location": URL}
    defaults.update(kwargs)
    return SourceConfig(**defaults)


def _fetcher(config, handler) -> HttpFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpFetcher(config, client=client)


def _sequence(*responses: httpx.Response | Exception):
    """Return a handler that replays *responses* in order and counts calls."""
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        item = responses[min(len(calls), len(responses) - 1)]
        calls.append(request)
        if isinstance(item, Exception):
            raise item
        return item

    handler.calls = calls  # type: ignore[attr-defined]
    return handler


# ---------------------------------------------------------------------------
# Success paths
# ---------------------------------------------------------------------------


class TestFetchSuccess:
    @pytest.mark.asyncio
    async def test_json_document(self, config, users_spec):
        handler = _sequence(httpx.Response(200, json=users_spec))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert result.success is True
        assert result.content == users_spec
        assert result.status_code == 200
        assert result.error is None

    @pytest.mark.asyncio
    async def test_yaml_document(self, config):
        body = b"openapi: 3.0.0\npaths:\n  /ping:\n    get:\n      summary: Ping\n"
        handler = _sequence(httpx.Response(200, content=body, headers={"content-type": "application/yaml"}))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert result.content["paths"]["/ping"]["get"]["summary"] == "Ping"

    @pytest.mark.asyncio
    async def test_source_headers_sent(self, config, users_spec):
        handler = _sequence(httpx.Response(200, json=users_spec))
        async with _fetcher(config, handler) as fetcher:
            await fetcher.fetch(_source(headers={"Authorization": "Bearer t"}))
        (request,) = handler.calls
        assert request.headers["authorization"] == "Bearer t"
        assert "application/json" in request.headers["accept"]

    @pytest.mark.asyncio
    async def test_retry_then_success(self, config, users_spec):
        handler = _sequence(httpx.Response(503), httpx.Response(200, json=users_spec))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert result.success is True
        assert len(handler.calls) == 2

    @pytest.mark.asyncio
    async def test_network_error_retried(self, config, users_spec):
        handler = _sequence(httpx.ConnectError("refused"), httpx.Response(200, json=users_spec))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert result.success is True
        assert len(handler.calls) == 2


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------


class TestFetchFailure:
    @pytest.mark.asyncio
    async def test_404_not_retried(self, config):
        handler = _sequence(httpx.Response(404, text="missing"))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert result.success is False
        assert isinstance(result.error, SpecSyncHTTPStatusError)
        assert result.error.status_code == 404
        assert result.status_code == 404
        assert result.error.context["body"] == "missing"
        assert len(handler.calls) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, config):
        handler = _sequence(httpx.Response(502))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert isinstance(result.error, SpecSyncHTTPStatusError)
        assert result.error.context["attempts"] == config.retry_max_attempts
        assert result.error.context["status_code"] == 502
        assert len(handler.calls) == config.retry_max_attempts

    @pytest.mark.asyncio
    async def test_timeout(self, config):
        handler = _sequence(httpx.ReadTimeout("slow"))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source(timeout_seconds=2.5))
        assert isinstance(result.error, SpecSyncTimeoutError)
        assert result.error.code == ErrorCode.TIMEOUT
        assert result.error.context["timeout_seconds"] == 2.5
        assert isinstance(result.error.cause, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_network_error_exhausted(self, config):
        handler = _sequence(httpx.ConnectError("refused"))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert type(result.error) is SpecSyncTransportError
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_unparseable_body(self, config):
        handler = _sequence(httpx.Response(200, text="<html>oops</html>"))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source())
        assert isinstance(result.error, SpecSyncParseError)

    @pytest.mark.asyncio
    async def test_file_source_rejected(self, config):
        handler = _sequence(httpx.Response(200, json={}))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source(kind=SourceKind.FILE, location="/tmp/spec.json"))
        assert isinstance(result.error, SpecSyncConfigurationError)
        assert handler.calls == []

    @pytest.mark.asyncio
    async def test_credentials_not_in_message(self, config):
        handler = _sequence(httpx.Response(401))
        async with _fetcher(config, handler) as fetcher:
            result = await fetcher.fetch(_source(location=f"{URL}?api_key=supersecretvalue123"))
        assert "supersecretvalue123" not in str(result.error)


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------


class TestFetchMetrics:
    @pytest.mark.asyncio
    async def test_fetch_and_retry_metrics(self, config, users_spec):
        hook = RecordingMetricsHook()
        cfg = dataclasses.replace(config, metrics=hook)
        handler = _sequence(
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(500),
            httpx.Response(200, json=users_spec),
        )
        async with _fetcher(cfg, handler) as fetcher:
            await fetcher.fetch(_source())

        retries = [m["tags"]["reason"] for m in hook.increments if m["name"] == "specsync.retries_total"]
        assert retries == ["rate_limited", "server_error"]
        (total,) = [m for m in hook.increments if m["name"] == "specsync.fetch_total"]
        assert total["tags"] == {"source": "users", "status": "ok"}
        assert hook.timings[0]["name"] == "specsync.fetch_duration_ms"

    @pytest.mark.asyncio
    async def test_error_status_tag(self, config):
        hook = RecordingMetricsHook()
        cfg = dataclasses.replace(config, metrics=hook)
        async with _fetcher(cfg, _sequence(httpx.Response(404))) as fetcher:
            await fetcher.fetch(_source())
        (total,) = [m for m in hook.increments if m["name"] == "specsync.fetch_total"]
        assert total["tags"]["status"] == "error"

    @pytest.mark.asyncio
    async def test_debug_dump_redacts_headers(self, config, users_spec, capsys):
        cfg = dataclasses.replace(config, debug_dump_payload=True)
        handler = _sequence(httpx.Response(200, json=users_spec))
        async with _fetcher(cfg, handler) as fetcher:
            await fetcher.fetch(_source(headers={"Authorization": "Bearer verysecrettoken"}))
        err = capsys.readouterr().err
        dump = json.loads(err[err.index("{\n"):])
        assert dump["response_status"] == 200
        assert "verysecrettoken" not in err
        assert dump["request_headers"]["Authorization"].startswith("<redacted")


class TestClientOwnership:
    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self, config):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        await HttpFetcher(config, client=client).aclose()
        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self, config):
        fetcher = HttpFetcher(config)
        await fetcher.aclose()
        assert fetcher._client.is_closed is True
