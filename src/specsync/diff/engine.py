"""Diff engine: classify the differences between two specification documents.

:class:`DiffEngine` is a pure function object.  It hashes both documents
first and returns an empty result when the hashes match, so the common
"nothing changed" poll costs one serialisation per side.
"""

from __future__ import annotations

import json as _json
import sys
from collections import Counter

from specsync.config import SyncConfig
from specsync.models import Change, DiffResult, DiffSummary
from specsync.observability import NoopMetricsHook, get_logger
from specsync.spec.nodes import SpecContent
from specsync.spec.parser import parse_spec
from specsync.utils.hashing import normalize_spec, spec_hash

from .endpoints import EndpointComparer, added_endpoint_changes
from .schemas import compare_schemas

log = get_logger("specsync.diff")


class DiffEngine:
    """Compares specification documents.

    Parameters
    ----------
    config:
        Engine configuration; the ``diff_ignore_*`` flags, ``metrics`` and
        ``debug_dump_diff`` are read.
    """

    def __init__(self, config: SyncConfig | None = None) -> None:
        self._config = config or SyncConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )
        self._comparer = EndpointComparer(
            ignore_descriptions=self._config.diff_ignore_descriptions,
            ignore_examples=self._config.diff_ignore_examples,
        )

    def content_hash(self, document: dict) -> str:
        """Return the hash used for change detection under this engine's options."""
        return spec_hash(
            document,
            ignore_descriptions=self._config.diff_ignore_descriptions,
            ignore_examples=self._config.diff_ignore_examples,
        )

    def compare(self, old_document: dict | None, new_document: dict) -> DiffResult:
        """Compare two raw documents.

        Parameters
        ----------
        old_document:
            The previously applied document, or ``None`` on first sync.
            On first sync every operation is reported as added.
        new_document:
            The freshly fetched document.

        Returns
        -------
        DiffResult
            ``has_changes=False`` with no changes when the hashes match.

        Raises
        ------
        SpecSyncParseError
            If either document is not a specification document.
        """
        new_hash = self.content_hash(new_document)
        new_content = parse_spec(new_document)

        if old_document is None:
            changes = added_endpoint_changes(new_content)
            return self._finish(changes, "", new_hash, force_changed=True)

        old_hash = self.content_hash(old_document)
        if old_hash == new_hash:
            return DiffResult(has_changes=False, old_hash=old_hash, new_hash=new_hash)

        old_content = parse_spec(old_document)
        return self._finish(self.compare_content(old_content, new_content), old_hash, new_hash)

    def compare_content(self, old: SpecContent, new: SpecContent) -> list[Change]:
        """Return the ordered change list for two parsed documents."""
        changes = self._comparer.compare(old, new)
        changes.extend(compare_schemas(old, new, self._same))
        return changes

    def _same(self, a: object, b: object) -> bool:
        opts = {
            "ignore_descriptions": self._config.diff_ignore_descriptions,
            "ignore_examples": self._config.diff_ignore_examples,
        }
        return normalize_spec(a, **opts) == normalize_spec(b, **opts)

    def _finish(
        self,
        changes: list[Change],
        old_hash: str,
        new_hash: str,
        *,
        force_changed: bool = False,
    ) -> DiffResult:
        result = DiffResult(
            has_changes=force_changed or bool(changes),
            changes=changes,
            summary=DiffSummary.from_changes(changes),
            old_hash=old_hash,
            new_hash=new_hash,
        )
        _emit_diff_metrics(self._metrics, changes)
        log.debug(
            "diff computed",
            extra={
                "extra_fields": {
                    "op": "diff",
                    "changes": len(changes),
                    "breaking": result.summary.breaking,
                    "old_hash": old_hash,
                    "new_hash": new_hash,
                }
            },
        )
        if self._config.debug_dump_diff and changes:
            _dump_diff(result)
        return result


def _emit_diff_metrics(metrics: object, changes: list[Change]) -> None:
    """Emit one counter per (kind, severity) pair."""
    counts = Counter((c.kind.value, c.severity.value) for c in changes)
    for (kind, sev), count in counts.items():
        metrics.increment(  # type: ignore[attr-defined]
            "specsync.diff_changes_total",
            value=count,
            tags={"kind": kind, "severity": sev},
        )


def _dump_diff(result: DiffResult) -> None:
    """Write a compact listing of *result* to stderr."""
    dump = {
        "old_hash": result.old_hash,
        "new_hash": result.new_hash,
        "summary": vars(result.summary),
        "changes": [
            {"kind": c.kind.value, "severity": c.severity.value, "path": c.path}
            for c in result.changes
        ],
    }
    print(_json.dumps(dump, indent=2), file=sys.stderr)
