"""Reference notification sinks.

Events sent by the sync engine:

* ``sync-completed`` -- a sync finished (with or without changes).
* ``sync-failed`` -- fetching or configuration failed.
* ``breaking-changes`` -- the applied diff contained breaking changes.
* ``conflicts`` -- the apply pass recorded unresolved conflicts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from specsync.observability import get_logger

SYNC_COMPLETED = "sync-completed"
SYNC_FAILED = "sync-failed"
BREAKING_CHANGES = "breaking-changes"
CONFLICTS = "conflicts"

_LEVELS = {
    SYNC_COMPLETED: logging.INFO,
    SYNC_FAILED: logging.ERROR,
    BREAKING_CHANGES: logging.WARNING,
    CONFLICTS: logging.WARNING,
}


class NoopNotificationSink:
    """Sink that drops every event."""

    __slots__ = ()

    def notify(self, event: str, message: str, data: dict[str, Any] | None = None) -> None:
        pass


class LoggingNotificationSink:
    """Sink that writes each event as a structured log record.

    Failures and warnings are logged above INFO so they stand out in a
    log pipeline.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or get_logger("specsync.notify")

    def notify(self, event: str, message: str, data: dict[str, Any] | None = None) -> None:
        self._log.log(
            _LEVELS.get(event, logging.INFO),
            message,
            extra={"extra_fields": {"event": event, **(data or {})}},
        )


@dataclass
class Notification:
    event: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


class RecordingNotificationSink:
    """Sink that keeps every event in memory, for hosts that poll for them."""

    def __init__(self) -> None:
        self.events: list[Notification] = []

    def notify(self, event: str, message: str, data: dict[str, Any] | None = None) -> None:
        self.events.append(Notification(event, message, dict(data or {})))

    def of(self, event: str) -> list[Notification]:
        return [n for n in self.events if n.event == event]
