"""Bounded, last-writer-wins store of the last applied document per source."""

from __future__ import annotations

from datetime import datetime

from specsync.models import Snapshot, utcnow
from specsync.observability import get_logger

log = get_logger("specsync.store")

# Fraction of entries kept when the bound is exceeded.
_RETAIN_RATIO = 0.8


class SnapshotStore:
    """Holds at most one :class:`Snapshot` per source.

    Parameters
    ----------
    max_entries:
        Upper bound on stored snapshots.  When exceeded, the oldest entries
        by ``captured_at`` are evicted until 80 % of the bound remain.
    """

    def __init__(self, max_entries: int = 100) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._snapshots: dict[str, Snapshot] = {}

    def get(self, source_id: str) -> Snapshot | None:
        return self._snapshots.get(source_id)

    def put(
        self,
        source_id: str,
        content: dict,
        content_hash: str,
        origin: str = "",
        captured_at: datetime | None = None,
    ) -> Snapshot:
        """Replace the snapshot for *source_id* and return the stored value."""
        snapshot = Snapshot(
            source_id=source_id,
            content=content,
            content_hash=content_hash,
            captured_at=captured_at or utcnow(),
            origin=origin,
        )
        self._snapshots[source_id] = snapshot
        if len(self._snapshots) > self._max_entries:
            self._evict()
        return snapshot

    def delete(self, source_id: str) -> None:
        self._snapshots.pop(source_id, None)

    def _evict(self) -> None:
        keep = max(1, int(self._max_entries * _RETAIN_RATIO))
        ordered = sorted(self._snapshots.values(), key=lambda s: s.captured_at)
        evicted = ordered[: len(ordered) - keep]
        for snapshot in evicted:
            del self._snapshots[snapshot.source_id]
        log.info(
            "evicted old snapshots",
            extra={"extra_fields": {"op": "snapshot_evict", "evicted": len(evicted), "kept": keep}},
        )

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)
