"""Public data models for specsync.

Every enum, result type and collection type used by the public API lives
here.  All types are plain dataclasses with no behaviour beyond small
lookup helpers; values that must not change after creation
(:class:`Snapshot`, :class:`Change`) are frozen.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from specsync.errors import SpecSyncConflictPendingError, SpecSyncError


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ChangeKind(str, Enum):
    """Kinds of change the diff engine can emit."""

    ENDPOINT_ADDED = "endpoint-added"
    ENDPOINT_REMOVED = "endpoint-removed"
    ENDPOINT_MODIFIED = "endpoint-modified"
    """Metadata, request body or response change on a shared operation."""

    PARAMETER_ADDED = "parameter-added"
    PARAMETER_REMOVED = "parameter-removed"
    PARAMETER_MODIFIED = "parameter-modified"
    SCHEMA_ADDED = "schema-added"
    SCHEMA_REMOVED = "schema-removed"
    SCHEMA_MODIFIED = "schema-modified"

    @property
    def action(self) -> str:
        """The trailing verb: ``"added"``, ``"removed"`` or ``"modified"``."""
        return self.value.rsplit("-", 1)[1]


class Severity(str, Enum):
    """Impact of a change on existing API consumers."""

    BREAKING = "breaking"
    """Existing callers may fail against the new document."""

    NON_BREAKING = "non-breaking"
    """Additive or relaxing change; existing callers keep working."""

    INFORMATIONAL = "informational"
    """Documentation-only change (summary, description, tags)."""


class ConflictResolution(str, Enum):
    """How a conflict was (or will be) resolved."""

    USE_CODE = "use-code"
    """Take the version from the specification."""

    USE_USER = "use-user"
    """Keep the user's edited request."""

    MERGE = "merge"
    """Combine both by hand."""


class ConflictPolicy(str, Enum):
    """Engine-wide stance on changes that touch customized requests."""

    PROMPT = "prompt"
    USER_WINS = "user-wins"
    CODE_WINS = "code-wins"


class SessionStatus(str, Enum):
    """Lifecycle state of a sync session."""

    ACTIVE = "active"
    PAUSED = "paused"
    ERROR = "error"
    STOPPED = "stopped"


class SourceKind(str, Enum):
    """Where a specification document is read from."""

    URL = "url"
    FILE = "file"


# ---------------------------------------------------------------------------
# Sources and snapshots
# ---------------------------------------------------------------------------

@dataclass
class SourceConfig:
    """Descriptor of one external specification source.

    Attributes
    ----------
    source_id:
        Stable identifier used as the key everywhere else.
    kind:
        :attr:`SourceKind.URL` or :attr:`SourceKind.FILE`.
    location:
        The URL or the filesystem path.
    name:
        Display name, used as the collection name on first sync.
    headers:
        Extra request headers for URL sources.  Never logged unredacted.
    timeout_seconds:
        Per-source fetch timeout; ``None`` uses the engine default.
    poll_interval_ms:
        Per-source polling period; ``None`` uses the engine default.
    watch_enabled:
        File sources only: whether the host forwards change notifications.
    """

    source_id: str
    kind: SourceKind
    location: str
    name: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    poll_interval_ms: int | None = None
    watch_enabled: bool = False

    def __repr__(self) -> str:
        """Mask header values to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "headers":
                parts.append(f"headers={ {k: '****' for k in val}!r}")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"SourceConfig({', '.join(parts)})"


@dataclass(frozen=True)
class Snapshot:
    """The last successfully applied document for one source.

    Attributes
    ----------
    source_id:
        Source this snapshot belongs to.
    content:
        The parsed document.  Treat as read-only.
    content_hash:
        Stable hash of the normalized content.
    captured_at:
        When the snapshot was stored.
    origin:
        The URL or file path the content came from.
    """

    source_id: str
    content: dict
    content_hash: str
    captured_at: datetime
    origin: str = ""


# ---------------------------------------------------------------------------
# Diff results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Change:
    """One classified difference between two documents.

    Attributes
    ----------
    kind:
        What changed.
    severity:
        Impact classification.
    path:
        Location of the change: ``"GET /users/{id}"`` for endpoints,
        ``"GET /users/{id}/parameters/limit"`` for parameters,
        ``"GET /users/{id}/responses/200/..."`` for responses and
        ``"/components/schemas/User"`` for schemas.
    description:
        Human-readable summary.
    old_value:
        Previous value, ``None`` for additions.
    new_value:
        New value, ``None`` for removals.
    affected_endpoints:
        ``"METHOD /path"`` keys of every operation touched by the change.
    endpoint:
        The owning ``"METHOD /path"`` for endpoint, parameter and response
        changes; empty for schema changes.
    """

    kind: ChangeKind
    severity: Severity
    path: str
    description: str
    old_value: Any = None
    new_value: Any = None
    affected_endpoints: tuple[str, ...] = ()
    endpoint: str = ""

    @property
    def is_breaking(self) -> bool:
        return self.severity == Severity.BREAKING


@dataclass
class DiffSummary:
    """Counts over a change list.

    ``added``/``removed``/``modified`` count by the kind's verb; ``breaking``
    counts breaking changes and ``non_breaking`` counts everything else
    (informational included).
    """

    added: int = 0
    modified: int = 0
    removed: int = 0
    breaking: int = 0
    non_breaking: int = 0

    @classmethod
    def from_changes(cls, changes: list[Change]) -> DiffSummary:
        summary = cls()
        for change in changes:
            action = change.kind.action
            if action == "added":
                summary.added += 1
            elif action == "removed":
                summary.removed += 1
            else:
                summary.modified += 1
            if change.is_breaking:
                summary.breaking += 1
            else:
                summary.non_breaking += 1
        return summary


@dataclass
class DiffResult:
    """Outcome of comparing two documents.

    Attributes
    ----------
    has_changes:
        ``False`` when the content hashes are equal.
    changes:
        Ordered change list: endpoints first, then schemas.
    summary:
        Counts over *changes*.
    old_hash:
        Hash of the previous document (empty on first sync).
    new_hash:
        Hash of the new document.
    compared_at:
        When the comparison ran.
    """

    has_changes: bool
    changes: list[Change] = field(default_factory=list)
    summary: DiffSummary = field(default_factory=DiffSummary)
    old_hash: str = ""
    new_hash: str = ""
    compared_at: datetime = field(default_factory=utcnow)

    @property
    def breaking_changes(self) -> list[Change]:
        return [c for c in self.changes if c.is_breaking]

    def changes_for(self, endpoint: str) -> list[Change]:
        """Return every change whose owning endpoint is *endpoint*."""
        return [c for c in self.changes if c.endpoint == endpoint]


# ---------------------------------------------------------------------------
# Collection tree
# ---------------------------------------------------------------------------

@dataclass
class KeyValue:
    """A query parameter or header row on a request."""

    key: str
    value: str = ""
    active: bool = True
    description: str = ""


@dataclass
class Auth:
    """Request authorization settings.

    ``inherit`` and ``none`` are the defaults a synthesized request uses;
    anything else was set by a user.
    """

    auth_type: str = "inherit"
    auth_active: bool = True
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def is_default(self) -> bool:
        return self.auth_type in ("inherit", "none")


@dataclass
class RequestBody:
    """Request payload: a content type and the serialized body text."""

    content_type: str | None = None
    body: str | None = None


@dataclass
class SavedResponse:
    """An example response stored on a request."""

    name: str
    status_code: int
    status_text: str = ""
    headers: list[KeyValue] = field(default_factory=list)
    body: str = ""


@dataclass
class RequestEntity:
    """One request definition in the collection.

    Attributes
    ----------
    name:
        Display name; defaults to the operation summary.
    method:
        Upper-case HTTP method.
    endpoint:
        URL template, usually ``"{{baseURL}}/path"``.
    params:
        Query parameter rows.
    headers:
        Header rows.
    auth:
        Authorization settings.
    body:
        Request payload.
    pre_request_script:
        User script run before sending.
    test_script:
        User script run on the response.
    responses:
        Saved example responses keyed by name.
    id:
        Opaque identifier, stable across in-place updates.
    """

    name: str
    method: str
    endpoint: str
    params: list[KeyValue] = field(default_factory=list)
    headers: list[KeyValue] = field(default_factory=list)
    auth: Auth = field(default_factory=Auth)
    body: RequestBody = field(default_factory=RequestBody)
    pre_request_script: str = ""
    test_script: str = ""
    responses: dict[str, SavedResponse] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class Folder:
    """A named group of requests and sub-folders."""

    name: str
    requests: list[RequestEntity] = field(default_factory=list)
    folders: list[Folder] = field(default_factory=list)


@dataclass
class Collection:
    """Root of a collection tree bound to one source.

    Folders are addressed by a tuple of indices from the root: ``()`` is
    the root itself, ``(2,)`` its third folder, ``(2, 0)`` that folder's
    first sub-folder.
    """

    name: str
    source_id: str = ""
    requests: list[RequestEntity] = field(default_factory=list)
    folders: list[Folder] = field(default_factory=list)

    def folder_at(self, path: tuple[int, ...]) -> Collection | Folder:
        node: Collection | Folder = self
        for index in path:
            node = node.folders[index]
        return node

    def iter_requests(self) -> Iterator[tuple[tuple[int, ...], int, RequestEntity]]:
        """Yield ``(folder_path, index, request)`` depth-first, folders before root requests."""

        def _walk(node: Collection | Folder, path: tuple[int, ...]):
            for i, sub in enumerate(node.folders):
                yield from _walk(sub, path + (i,))
            for i, req in enumerate(node.requests):
                yield path, i, req

        yield from _walk(self, ())

    def request_count(self) -> int:
        return sum(1 for _ in self.iter_requests())


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------

@dataclass
class Conflict:
    """A change that could not be applied without discarding user edits.

    Attributes
    ----------
    kind:
        Kind of the change that triggered the conflict.
    path:
        Path of the change.
    code_version:
        What the specification now says.
    user_version:
        The request as the user left it (a plain dict snapshot).
    description:
        Human-readable explanation.
    resolution:
        ``None`` until someone decides.
    """

    kind: ChangeKind
    path: str
    code_version: Any
    user_version: Any
    description: str
    resolution: ConflictResolution | None = None

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None


# ---------------------------------------------------------------------------
# Sessions and results
# ---------------------------------------------------------------------------

@dataclass
class SyncSession:
    """Live-sync state for one source.

    Attributes
    ----------
    source_id:
        Source being synchronized.
    poll_interval_ms:
        Polling period.
    auto_sync:
        Whether the poll loop runs.
    status:
        Lifecycle state.
    started_at:
        When the session was created.
    last_sync_at:
        When the last successful sync finished.
    error_count:
        Failed syncs (other than configuration errors) since the last success.
    """

    source_id: str
    poll_interval_ms: int
    auto_sync: bool = True
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = field(default_factory=utcnow)
    last_sync_at: datetime | None = None
    error_count: int = 0

    def to_descriptor(self) -> dict[str, Any]:
        """Return the JSON-safe form written by session persistence."""
        return {
            "source_id": self.source_id,
            "poll_interval_ms": self.poll_interval_ms,
            "auto_sync": self.auto_sync,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "error_count": self.error_count,
        }

    @classmethod
    def from_descriptor(cls, data: dict[str, Any]) -> SyncSession:
        """Rebuild a session; unreadable timestamps fall back rather than fail."""
        started_at = _parse_timestamp(data.get("started_at")) or utcnow()
        return cls(
            source_id=str(data["source_id"]),
            poll_interval_ms=int(data["poll_interval_ms"]),
            auto_sync=bool(data.get("auto_sync", True)),
            status=SessionStatus(data.get("status", SessionStatus.ACTIVE.value)),
            started_at=started_at,
            last_sync_at=_parse_timestamp(data.get("last_sync_at")),
            error_count=max(0, int(data.get("error_count") or 0)),
        )


def _parse_timestamp(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except (TypeError, ValueError):
        return None


@dataclass
class FetchResult:
    """Outcome of fetching one source.

    Attributes
    ----------
    success:
        ``True`` when *content* holds a parsed document.
    content:
        The parsed document.
    error:
        The typed error on failure.
    status_code:
        HTTP status for URL sources.
    elapsed_ms:
        Wall time of the fetch including retries.
    """

    success: bool
    content: dict | None = None
    error: SpecSyncError | None = None
    status_code: int | None = None
    elapsed_ms: float = 0.0


@dataclass
class SyncResult:
    """Outcome of one sync run for one source.

    Attributes
    ----------
    source_id:
        Source that was synchronized.
    success:
        ``False`` when fetching or configuration failed; apply-time
        problems surface as *conflicts* instead.
    has_changes:
        Whether the document differed from the stored snapshot.
    diff:
        The diff that was applied, if any.
    conflicts:
        Conflicts produced while applying.
    errors:
        Transport, configuration and wrapped internal errors.
    warnings:
        Non-fatal notes (low-confidence pairings and similar).
    started_at:
        When the run began.
    finished_at:
        When the run ended.
    """

    source_id: str
    success: bool
    has_changes: bool = False
    diff: DiffResult | None = None
    conflicts: list[Conflict] = field(default_factory=list)
    errors: list[SpecSyncError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def unresolved_conflicts(self) -> list[Conflict]:
        return [c for c in self.conflicts if not c.is_resolved]

    @property
    def duration_ms(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def raise_for_conflicts(self) -> None:
        """Raise :class:`SpecSyncConflictPendingError` if any conflict is unresolved."""
        pending = self.unresolved_conflicts
        if pending:
            raise SpecSyncConflictPendingError(
                message=f"{len(pending)} unresolved conflict(s) for source {self.source_id!r}",
                context={
                    "source_id": self.source_id,
                    "conflicts": [c.path for c in pending],
                },
            )


@dataclass
class SyncStats:
    """Lifetime counters for one source, kept by the orchestrator.

    Unlike the result history these are never trimmed or cleared.
    """

    source_id: str
    total_syncs: int = 0
    failed_syncs: int = 0
    changes_applied: int = 0
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None

    def record(self, result: SyncResult) -> None:
        self.total_syncs += 1
        if result.success:
            self.last_success_at = result.finished_at
            if result.diff is not None:
                self.changes_applied += len(result.diff.changes)
        else:
            self.failed_syncs += 1
            self.last_failure_at = result.finished_at
