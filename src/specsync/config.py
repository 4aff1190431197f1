"""Engine configuration for specsync.

:class:`SyncConfig` captures every tuneable knob of the synchronization
engine.  One instance is shared by the orchestrator, the sync engine, the
change applier and the reference fetchers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_POLL_INTERVAL_MS = 30_000
"""Polling period used when a session is started without an interval."""

MIN_POLL_INTERVAL_MS = 1_000
"""Smallest polling period accepted for a session or a source."""

DEFAULT_DEBOUNCE_MS = 500
"""Quiet period before a burst of file-change notifications triggers a sync."""


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class SyncConfig:
    """Complete configuration for a specsync engine.

    Every field has a default, so ``SyncConfig()`` is a working setup.

    Parameters
    ----------
    poll_interval_ms:
        Default polling period for new sessions, in milliseconds.
    debounce_ms:
        Trailing-edge debounce window for source-changed notifications.
    conflict_policy:
        What to do when a change touches a customized request.

        * ``"prompt"`` -- emit a conflict and leave customized fields alone.
        * ``"user-wins"`` -- merge non-breaking changes as under
          ``"prompt"``; on a breaking change leave the customized request
          untouched and record the conflict as resolved for the user.
        * ``"code-wins"`` -- overwrite from the specification, no conflict.
    pairing_fallback:
        Allow pairing a removed endpoint with an added one on uniqueness
        alone (no shared operationId or summary).  Such pairs are logged
        at WARNING.
    fetch_timeout_seconds:
        Per-request timeout for URL sources.
    retry_max_attempts:
        Total fetch attempts (initial request included) for retryable
        failures.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Scale each backoff delay randomly to 50-100 % of its value.
    max_snapshots:
        Upper bound on stored snapshots; the oldest fifth is evicted when
        the bound is exceeded.
    history_size:
        Recent sync results kept per source for :meth:`SyncOrchestrator.history`.
    diff_ignore_descriptions:
        Treat ``description``/``summary`` edits as no change.
    diff_ignore_examples:
        Treat ``example``/``examples`` edits as no change.
    http_proxy:
        Optional HTTP/HTTPS proxy URL for URL sources.
    metrics:
        Optional :class:`~specsync.observability.MetricsHook` backend.
    debug_dump_payload:
        Write a redacted request/response summary of every fetch to *stderr*.
    debug_dump_diff:
        Write every non-empty diff to *stderr*.
    """

    # ── Scheduling ──────────────────────────────────────────────────────
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    debounce_ms: int = DEFAULT_DEBOUNCE_MS

    # ── Merge ───────────────────────────────────────────────────────────
    conflict_policy: Literal["prompt", "user-wins", "code-wins"] = "prompt"

    pairing_fallback: bool = True

    # ── Fetch & retry ───────────────────────────────────────────────────
    fetch_timeout_seconds: float = 10.0

    retry_max_attempts: int = 3

    retry_base_delay: float = 1.0

    retry_max_delay: float = 30.0

    retry_jitter: bool = True

    http_proxy: str | None = None

    # ── Storage ─────────────────────────────────────────────────────────
    max_snapshots: int = 100

    history_size: int = 20

    # ── Diff ────────────────────────────────────────────────────────────
    diff_ignore_descriptions: bool = False

    diff_ignore_examples: bool = False

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_payload: bool = False

    debug_dump_diff: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.poll_interval_ms < MIN_POLL_INTERVAL_MS:
            raise ValueError(
                f"poll_interval_ms must be >= {MIN_POLL_INTERVAL_MS}, got {self.poll_interval_ms}"
            )
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        if self.conflict_policy not in ("prompt", "user-wins", "code-wins"):
            raise ValueError(
                "conflict_policy must be one of 'prompt', 'user-wins', 'code-wins', "
                f"got {self.conflict_policy!r}"
            )
        if self.fetch_timeout_seconds <= 0:
            raise ValueError(
                f"fetch_timeout_seconds must be > 0, got {self.fetch_timeout_seconds}"
            )
        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.max_snapshots < 1:
            raise ValueError(f"max_snapshots must be >= 1, got {self.max_snapshots}")
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
