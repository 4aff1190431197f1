"""Collaborator protocols the synchronization core calls into.

The core never imports a concrete fetcher, store or sink.  Reference
implementations live in :mod:`specsync.fetch`, :mod:`specsync.store` and
:mod:`specsync.notify`; hosts can supply their own as long as they match
these protocols structurally.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from specsync.models import Collection, FetchResult, RequestEntity, SourceConfig


@runtime_checkable
class Fetcher(Protocol):
    """Retrieves the current specification document for a source."""

    async def fetch(self, source: SourceConfig) -> FetchResult:
        """Return the parsed document, or a failed result carrying a typed error.

        Implementations must not raise for transport problems; they report
        them through :attr:`FetchResult.error`.
        """
        ...


@runtime_checkable
class CollectionStore(Protocol):
    """The user-facing collection tree, addressed by folder path and index.

    A folder path is a tuple of folder indices from the collection root;
    ``()`` addresses the root.
    """

    def find_by_source(self, source_id: str) -> Collection | None:
        ...

    def add_entity(self, source_id: str, path: tuple[int, ...], entity: RequestEntity) -> None:
        ...

    def update_entity(
        self, source_id: str, path: tuple[int, ...], index: int, entity: RequestEntity,
    ) -> None:
        ...

    def create_folder(self, source_id: str, path: tuple[int, ...], name: str) -> int:
        """Create a folder under *path* and return its index."""
        ...

    def remove_entity(self, source_id: str, path: tuple[int, ...], index: int) -> None:
        ...


@runtime_checkable
class SessionPersistence(Protocol):
    """Durable storage for session descriptors (never specification content)."""

    async def save(self, descriptors: list[dict[str, Any]]) -> None:
        ...

    async def load(self) -> list[dict[str, Any]] | None:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Receives human-readable sync outcomes.  Purely observational."""

    def notify(self, event: str, message: str, data: dict[str, Any] | None = None) -> None:
        ...
