"""Source descriptors: validation and the in-process registry."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from urllib.parse import urlsplit

from specsync.config import MIN_POLL_INTERVAL_MS
from specsync.errors import SpecSyncConfigurationError
from specsync.models import SourceConfig, SourceKind
from specsync.observability import get_logger

log = get_logger("specsync.sources")

SPEC_FILE_EXTENSIONS = (".json", ".yaml", ".yml")
MAX_NAME_LENGTH = 100

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
_PRIVATE_HOST_RE = re.compile(r"^(10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|127\.)")
_NAME_STRIP_RE = re.compile(r"[^\w\s\-.]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class SourceValidation:
    """Problems found in a source descriptor.  Warnings never block registration."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def sanitize_source_name(name: str) -> str:
    """Strip unusual characters, collapse whitespace and cap the length.

    >>> sanitize_source_name("  Pet<store>   API! ")
    'Petstore API'
    """
    cleaned = _NAME_STRIP_RE.sub("", name.strip())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()[:MAX_NAME_LENGTH].rstrip()


def _validate_url(source: SourceConfig, result: SourceValidation) -> None:
    parts = urlsplit(source.location.strip())
    if parts.scheme not in ("http", "https"):
        result.errors.append("URL must use the http or https scheme")
        return
    host = parts.hostname or ""
    if not host:
        result.errors.append("URL must include a host")
        return
    if parts.scheme == "http" and host.lower() not in _LOCAL_HOSTS:
        result.warnings.append("Plain http URLs are not encrypted; consider https")
    if _PRIVATE_HOST_RE.match(host):
        result.warnings.append("Private addresses may not be reachable from every environment")


def _validate_file(source: SourceConfig, result: SourceValidation) -> None:
    location = source.location.strip()
    if not location:
        result.errors.append("File path is required")
        return
    if not location.lower().endswith(SPEC_FILE_EXTENSIONS):
        result.errors.append("File must have a .json, .yaml or .yml extension")


def validate_source(source: SourceConfig) -> SourceValidation:
    """Check a descriptor without registering it."""
    result = SourceValidation()
    if not source.source_id.strip():
        result.errors.append("Source id is required")
    if source.kind == SourceKind.URL:
        _validate_url(source, result)
    else:
        _validate_file(source, result)
    if source.poll_interval_ms is not None and source.poll_interval_ms < MIN_POLL_INTERVAL_MS:
        result.errors.append(f"Poll interval must be at least {MIN_POLL_INTERVAL_MS} ms")
    if source.timeout_seconds is not None and source.timeout_seconds <= 0:
        result.errors.append("Timeout must be positive")
    if any(not key.strip() for key in source.headers):
        result.errors.append("Header names cannot be empty")
    return result


class SourceRegistry:
    """Known sources keyed by ``source_id``.

    Registration validates the descriptor and sanitizes its display name;
    an invalid descriptor raises :class:`SpecSyncConfigurationError` with
    the problems under ``context["errors"]``.
    """

    def __init__(self, sources: list[SourceConfig] | None = None) -> None:
        self._sources: dict[str, SourceConfig] = {}
        for source in sources or []:
            self.register(source)

    def register(self, source: SourceConfig) -> SourceConfig:
        """Validate and store *source*, replacing any descriptor with the same id."""
        check = validate_source(source)
        if not check.is_valid:
            raise SpecSyncConfigurationError(
                message=f"Invalid source {source.source_id!r}: {'; '.join(check.errors)}",
                context={
                    "source_id": source.source_id,
                    "field": "location",
                    "value": source.location,
                    "errors": check.errors,
                },
            )
        for warning in check.warnings:
            log.warning(
                warning,
                extra={"extra_fields": {"op": "register_source", "source_id": source.source_id}},
            )
        stored = replace(
            source,
            location=source.location.strip(),
            name=sanitize_source_name(source.name) or source.source_id,
        )
        self._sources[stored.source_id] = stored
        return stored

    def get(self, source_id: str) -> SourceConfig | None:
        return self._sources.get(source_id)

    def require(self, source_id: str) -> SourceConfig:
        """Return the descriptor or raise :class:`SpecSyncConfigurationError`."""
        source = self._sources.get(source_id)
        if source is None:
            raise SpecSyncConfigurationError(
                message=f"Unknown source {source_id!r}",
                context={"source_id": source_id, "field": "source_id"},
            )
        return source

    def remove(self, source_id: str) -> SourceConfig | None:
        return self._sources.pop(source_id, None)

    def all(self) -> list[SourceConfig]:
        return list(self._sources.values())

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)
