"""Metrics hook protocol and no-op default implementation.

specsync emits counters, timings and gauges around fetches, diffs, applies
and session changes.  The default :class:`NoopMetricsHook` discards them;
pass any object satisfying :class:`MetricsHook` as ``SyncConfig.metrics``
to route them to StatsD, Prometheus or similar.

Emitted metric names:

* ``specsync.fetch_total``          -- counter (tags: ``source``, ``status``)
* ``specsync.fetch_duration_ms``    -- timing
* ``specsync.retries_total``        -- counter (tags: ``reason``)
* ``specsync.sync_total``           -- counter (tags: ``source``, ``outcome``)
* ``specsync.sync_duration_ms``     -- timing
* ``specsync.diff_changes_total``   -- counter (tags: ``kind``, ``severity``)
* ``specsync.conflicts_total``      -- counter
* ``specsync.sessions_active``      -- gauge
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    Tags are plain ``str -> str`` dicts; backends translate them to their
    own labelling scheme.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
