"""Storage: snapshots, collections and session descriptors."""

from __future__ import annotations

from .collection import InMemoryCollectionStore
from .sessions import InMemorySessionPersistence, JsonFileSessionPersistence
from .snapshots import SnapshotStore

__all__ = [
    "InMemoryCollectionStore",
    "InMemorySessionPersistence",
    "JsonFileSessionPersistence",
    "SnapshotStore",
]
