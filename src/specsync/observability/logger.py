"""Structured JSON logger for specsync.

Each record is written as one JSON object per line so sync activity can be
shipped to a log pipeline without a custom parser.  Structured fields pass
through :func:`~specsync.utils.redact` on the way out, and ``url`` or
``location`` fields through :func:`~specsync.utils.redact_url`, so source
headers and keyed URLs never reach the log in clear text.

Typical output::

    {"ts": "2026-03-01T09:30:00.120000+00:00", "level": "INFO",
     "logger": "specsync.sync", "message": "sync complete",
     "source_id": "petstore", "changes": 4, "conflicts": 1}

Usage::

    from specsync.observability import bind, get_logger

    log = get_logger("specsync.sync")
    log.info("sync complete", extra={"extra_fields": {"changes": 4}})

    # Attach the source id to every record emitted for one source
    slog = bind(log, source_id="petstore")
    slog.warning("fetch failed")
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Any

from specsync.utils.redact import redact, redact_url

# Structured fields holding a source URL or path.
_URL_FIELDS: frozenset[str] = frozenset({"url", "location"})


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line, credential-free JSON objects.

    Guaranteed keys are ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Fields passed via ``extra={"extra_fields": {...}}`` are
    redacted and merged into the top level; they never replace a
    guaranteed key.  A traceback is added as ``exception`` when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if fields:
            for key, value in redact(fields).items():
                if key in entry:
                    continue
                if key in _URL_FIELDS and isinstance(value, str):
                    value = redact_url(value)
                entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class _BoundLogger(logging.LoggerAdapter):
    """Logger adapter that merges fixed fields into ``extra_fields``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        merged = dict(self.extra or {})
        merged.update(extra.get("extra_fields") or {})
        extra["extra_fields"] = merged
        kwargs["extra"] = extra
        return msg, kwargs


# One handler per logger name; repeated calls never stack handlers.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "specsync",
    *,
    level: int | str = logging.DEBUG,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name, e.g. ``"specsync.fetch"``.
    level:
        Minimum log level, as an ``int`` or a case-insensitive level name.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.
    """
    logger = logging.getLogger(name)
    if name in _configured_loggers:
        return logger

    logger.setLevel(logging.getLevelName(level.upper()) if isinstance(level, str) else level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _configured_loggers.add(name)
    return logger


def bind(logger: logging.Logger, **fields: Any) -> logging.LoggerAdapter:
    """Return an adapter that adds *fields* to every record's structured data.

    Per-call ``extra_fields`` win over bound fields with the same key.
    """
    return _BoundLogger(logger, fields)
