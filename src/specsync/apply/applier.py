"""Change applier: merge a diff into a user-editable collection tree.

Takes the :class:`DiffResult` produced by :class:`DiffEngine` and applies
it to the source's collection through a
:class:`~specsync.interfaces.CollectionStore`.  The applier never deletes
or overwrites user edits silently: when a change cannot be applied without
touching a customized field, it records a :class:`Conflict` instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from specsync.config import SyncConfig
from specsync.errors import SpecSyncApplyError, SpecSyncConfigurationError
from specsync.interfaces import CollectionStore
from specsync.models import (
    Change,
    ChangeKind,
    Collection,
    Conflict,
    ConflictPolicy,
    ConflictResolution,
    DiffResult,
    RequestEntity,
)
from specsync.observability import NoopMetricsHook, get_logger
from specsync.spec.nodes import OperationNode, SpecContent, split_endpoint_key
from specsync.spec.parser import parse_spec

from .builder import build_request
from .customization import customized_fields, deprecate, preserve_customizations
from .locator import EntityLocation, find_exact, locate, path_template
from .pairing import EndpointMove, PairingConfidence, pair_moves

log = get_logger("specsync.apply")


@dataclass
class ApplyOutcome:
    """Result of one apply pass.

    Unpacks as ``collection, conflicts = outcome``.

    Attributes
    ----------
    collection:
        The collection tree after the pass.
    conflicts:
        Conflicts recorded during the pass.
    warnings:
        Non-fatal notes, e.g. low-confidence pairings.
    added, updated, removed, deprecated:
        Per-action request counts.
    """

    collection: Collection | None
    conflicts: list[Conflict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    added: int = 0
    updated: int = 0
    removed: int = 0
    deprecated: int = 0

    def __iter__(self):
        yield self.collection
        yield self.conflicts


@dataclass
class _WorkItem:
    """One unit of work: every change that targets a single endpoint."""

    action: str
    key: str
    changes: list[Change] = field(default_factory=list)
    move: EndpointMove | None = None

    @property
    def breaking(self) -> bool:
        return any(c.is_breaking for c in self.changes)

    @property
    def primary_kind(self) -> ChangeKind:
        for change in self.changes:
            if change.is_breaking:
                return change.kind
        return self.changes[0].kind if self.changes else ChangeKind.ENDPOINT_MODIFIED


class _ApplyContext:
    """Per-pass state shared by the action handlers."""

    __slots__ = ("claimed", "new", "old", "outcome", "policy", "source_id")

    def __init__(
        self,
        source_id: str,
        new: SpecContent,
        old: SpecContent | None,
        policy: ConflictPolicy,
    ) -> None:
        self.source_id = source_id
        self.new = new
        self.old = old
        self.policy = policy
        self.claimed = frozenset(op.key for op in new.operations())
        self.outcome = ApplyOutcome(collection=None)


class ChangeApplier:
    """Applies diffs to collections held by a :class:`CollectionStore`.

    Parameters
    ----------
    store:
        The collection store to read and mutate.
    config:
        Engine configuration (``conflict_policy``, ``pairing_fallback``,
        ``metrics``).
    """

    def __init__(self, store: CollectionStore, config: SyncConfig | None = None) -> None:
        self._store = store
        self._config = config or SyncConfig()
        self._metrics = (
            self._config.metrics if self._config.metrics is not None else NoopMetricsHook()
        )

    # -- public API --------------------------------------------------------

    def apply(
        self,
        source_id: str,
        diff: DiffResult,
        new_document: dict,
        policy: ConflictPolicy | str | None = None,
        *,
        old_document: dict | None = None,
        initial: bool | None = None,
    ) -> ApplyOutcome:
        """Apply *diff* to the collection bound to *source_id*.

        Parameters
        ----------
        source_id:
            Source whose collection is updated.
        diff:
            Output of :meth:`DiffEngine.compare`.
        new_document:
            The document the diff was computed against; requests are built
            from it.
        policy:
            Conflict policy; defaults to ``config.conflict_policy``.
        old_document:
            The previous document.  Used to tell spec-derived values from
            user edits; without it any header or auth counts as an edit.
        initial:
            Build every operation instead of walking the change list.
            Defaults to ``True`` when the diff has no old hash.

        Returns
        -------
        ApplyOutcome

        Raises
        ------
        SpecSyncConfigurationError
            If the store has no collection for *source_id*.
        """
        if self._store.find_by_source(source_id) is None:
            raise SpecSyncConfigurationError(
                message=f"No collection is bound to source {source_id!r}",
                context={"source_id": source_id},
            )

        ctx = _ApplyContext(
            source_id=source_id,
            new=parse_spec(new_document),
            old=parse_spec(old_document) if old_document is not None else None,
            policy=ConflictPolicy(policy or self._config.conflict_policy),
        )
        if initial is None:
            initial = not diff.old_hash

        if initial:
            items = [_WorkItem("add", op.key) for op in ctx.new.operations()]
        else:
            items = self._plan(diff, ctx)

        for item in items:
            try:
                self._run(item, ctx)
            except Exception as exc:
                self._record_failure(item, exc, ctx)

        ctx.outcome.collection = self._store.find_by_source(source_id)
        if ctx.outcome.conflicts:
            self._metrics.increment(
                "specsync.conflicts_total",
                value=len(ctx.outcome.conflicts),
                tags={"source": source_id},
            )
        log.info(
            "apply complete",
            extra={
                "extra_fields": {
                    "op": "apply",
                    "source_id": source_id,
                    "initial": initial,
                    "added": ctx.outcome.added,
                    "updated": ctx.outcome.updated,
                    "removed": ctx.outcome.removed,
                    "deprecated": ctx.outcome.deprecated,
                    "conflicts": len(ctx.outcome.conflicts),
                }
            },
        )
        return ctx.outcome

    # -- planning ----------------------------------------------------------

    def _plan(self, diff: DiffResult, ctx: _ApplyContext) -> list[_WorkItem]:
        """Group changes into per-endpoint work items, folding moves together."""
        moves = pair_moves(diff.changes, allow_fallback=self._config.pairing_fallback)
        by_key: dict[str, EndpointMove] = {}
        for move in moves:
            by_key[move.old_key] = move
            by_key[move.new_key] = move

        items: dict[str, _WorkItem] = {}

        def _bucket(endpoint: str) -> _WorkItem:
            move = by_key.get(endpoint)
            if move is not None:
                return items.setdefault(
                    f"move:{move.old_key}", _WorkItem("move", move.new_key, move=move),
                )
            return items.setdefault(f"update:{endpoint}", _WorkItem("update", endpoint))

        for change in diff.changes:
            if change.kind in (ChangeKind.ENDPOINT_ADDED, ChangeKind.ENDPOINT_REMOVED):
                if change.path in by_key:
                    _bucket(change.path)
                    continue
                action = "add" if change.kind == ChangeKind.ENDPOINT_ADDED else "remove"
                items[f"{action}:{change.path}"] = _WorkItem(action, change.path, [change])
            elif change.endpoint:
                _bucket(change.endpoint).changes.append(change)
            else:
                # Schema changes reach every operation that references the schema.
                for endpoint in change.affected_endpoints:
                    if ctx.new.find(endpoint) is None or f"add:{endpoint}" in items:
                        continue
                    _bucket(endpoint).changes.append(change)
        return list(items.values())

    def _run(self, item: _WorkItem, ctx: _ApplyContext) -> None:
        if item.action == "add":
            self._apply_add(item.key, ctx)
        elif item.action == "remove":
            self._apply_remove(item, ctx)
        elif item.action == "move":
            self._apply_move(item, ctx)
        else:
            self._apply_update(item, ctx)

    # -- helpers -----------------------------------------------------------

    def _collection(self, ctx: _ApplyContext) -> Collection:
        collection = self._store.find_by_source(ctx.source_id)
        if collection is None:
            raise SpecSyncApplyError(
                message=f"Collection for source {ctx.source_id!r} disappeared during apply",
                context={"source_id": ctx.source_id},
            )
        return collection

    def _operation(self, key: str, ctx: _ApplyContext) -> OperationNode:
        op = ctx.new.find(key)
        if op is None:
            raise SpecSyncApplyError(
                message=f"Operation {key} is not in the new document",
                context={"change_path": key},
            )
        return op

    def _baseline(self, key: str, ctx: _ApplyContext) -> OperationNode | None:
        return ctx.old.find(key) if ctx.old is not None else None

    def _ensure_folder(self, name: str, ctx: _ApplyContext) -> tuple[int, ...]:
        for i, folder in enumerate(self._collection(ctx).folders):
            if folder.name == name:
                return (i,)
        index = self._store.create_folder(ctx.source_id, (), name)
        # Re-read: the store decides where the folder lands.
        folders = self._collection(ctx).folders
        if 0 <= index < len(folders) and folders[index].name == name:
            return (index,)
        for i, folder in enumerate(folders):
            if folder.name == name:
                return (i,)
        raise SpecSyncApplyError(
            message=f"Folder {name!r} was not created",
            context={"source_id": ctx.source_id, "folder": name},
        )

    def _conflict(
        self,
        ctx: _ApplyContext,
        kind: ChangeKind,
        path: str,
        code_version: Any,
        user_version: Any,
        description: str,
    ) -> None:
        resolution = (
            ConflictResolution.USE_USER if ctx.policy == ConflictPolicy.USER_WINS else None
        )
        ctx.outcome.conflicts.append(Conflict(
            kind=kind,
            path=path,
            code_version=code_version,
            user_version=user_version,
            description=description,
            resolution=resolution,
        ))

    def _record_failure(self, item: _WorkItem, exc: Exception, ctx: _ApplyContext) -> None:
        log.warning(
            "change failed to apply",
            exc_info=exc,
            extra={
                "extra_fields": {
                    "op": "apply",
                    "source_id": ctx.source_id,
                    "action": item.action,
                    "endpoint": item.key,
                    "error": str(exc),
                }
            },
        )
        op = ctx.new.find(item.key)
        ctx.outcome.conflicts.append(Conflict(
            kind=ChangeKind.ENDPOINT_MODIFIED,
            path=item.key,
            code_version=op.raw if op is not None else None,
            user_version=None,
            description=f"Failed to apply change: {exc}",
        ))

    # -- actions -----------------------------------------------------------

    def _apply_add(self, key: str, ctx: _ApplyContext) -> None:
        op = self._operation(key, ctx)
        existing = find_exact(self._collection(ctx), op.method, op.path)
        if existing is not None:
            # Already present (re-run, or a pre-populated collection).
            self._merge(existing, op, self._baseline(key, ctx), _WorkItem("add", key), ctx)
            return
        folder = self._ensure_folder(op.tags[0], ctx) if op.tags else ()
        self._store.add_entity(ctx.source_id, folder, build_request(op))
        ctx.outcome.added += 1

    def _apply_update(self, item: _WorkItem, ctx: _ApplyContext) -> None:
        op = self._operation(item.key, ctx)
        loc = locate(self._collection(ctx), op.method, op.path, claimed=ctx.claimed)
        if loc is None:
            self._apply_add(item.key, ctx)
            return
        self._merge(loc, op, self._baseline(item.key, ctx), item, ctx)

    def _apply_move(self, item: _WorkItem, ctx: _ApplyContext) -> None:
        move = item.move
        if move is None:
            raise SpecSyncApplyError(
                message=f"Move of {item.key} has no paired removal",
                context={"source_id": ctx.source_id, "change_path": item.key},
            )
        op = self._operation(move.new_key, ctx)
        old_method, old_path = split_endpoint_key(move.old_key)
        loc = locate(
            self._collection(ctx),
            op.method,
            op.path,
            old_method=old_method,
            old_path=old_path,
            claimed=ctx.claimed,
        )
        if move.confidence == PairingConfidence.UNIQUENESS:
            note = f"Paired {move.old_key} -> {move.new_key} by uniqueness only"
            ctx.outcome.warnings.append(note)
            log.warning(
                note,
                extra={"extra_fields": {
                    "op": "pair",
                    "source_id": ctx.source_id,
                    "confidence": move.confidence.value,
                }},
            )
        if loc is None:
            self._apply_add(move.new_key, ctx)
            return
        baseline = self._baseline(move.old_key, ctx)
        if baseline is None and isinstance(move.removed.old_value, dict):
            baseline = OperationNode(
                method=old_method.lower(),
                path=old_path,
                summary=move.removed.old_value.get("summary"),
                operation_id=move.removed.old_value.get("operationId"),
                raw=move.removed.old_value,
            )
        self._merge(loc, op, baseline, item, ctx)

    def _apply_remove(self, item: _WorkItem, ctx: _ApplyContext) -> None:
        method, path = split_endpoint_key(item.key)
        collection = self._collection(ctx)
        loc = find_exact(collection, method, path)
        if loc is None:
            wanted = path_template(path)
            for folder_path, index, entity in collection.iter_requests():
                if entity.method.upper() == method and path_template(entity.endpoint) == wanted:
                    loc = EntityLocation(folder_path, index, entity)
                    break
        if loc is None:
            return

        fields = customized_fields(loc.entity, self._baseline(item.key, ctx))
        if fields and ctx.policy != ConflictPolicy.CODE_WINS:
            flagged = deprecate(loc.entity)
            if flagged is not loc.entity:
                self._store.update_entity(ctx.source_id, loc.folder_path, loc.index, flagged)
                ctx.outcome.deprecated += 1
            self._conflict(
                ctx,
                ChangeKind.ENDPOINT_REMOVED,
                item.key,
                code_version=None,
                user_version=loc.entity.to_dict(),
                description=(
                    f"{item.key} was removed from the specification but its request has "
                    f"user edits ({', '.join(fields)}); kept as deprecated"
                ),
            )
            return
        self._store.remove_entity(ctx.source_id, loc.folder_path, loc.index)
        ctx.outcome.removed += 1

    def _merge(
        self,
        loc: EntityLocation,
        op: OperationNode,
        baseline: OperationNode | None,
        item: _WorkItem,
        ctx: _ApplyContext,
    ) -> None:
        """Update the located request from *op* according to the conflict policy."""
        current = loc.entity
        synthesized = build_request(op)

        if ctx.policy == ConflictPolicy.CODE_WINS:
            updated = replace(synthesized, id=current.id, responses=current.responses)
            self._write(loc, current, updated, ctx)
            return

        fields = customized_fields(current, baseline)
        if fields and item.breaking:
            self._conflict(
                ctx,
                item.primary_kind,
                op.key,
                code_version=op.raw,
                user_version=current.to_dict(),
                description=(
                    f"Breaking change to {op.key} touches a request with user edits "
                    f"({', '.join(fields)})"
                ),
            )
            return

        keep = list(fields)
        if baseline is None and "name" not in keep and not (op.summary and op.summary != current.name):
            # Without a baseline the name is only refreshed when the summary moved.
            keep.append("name")
        self._write(loc, current, preserve_customizations(synthesized, current, keep), ctx)

    def _write(
        self,
        loc: EntityLocation,
        current: RequestEntity,
        updated: RequestEntity,
        ctx: _ApplyContext,
    ) -> None:
        if updated == current:
            return
        self._store.update_entity(ctx.source_id, loc.folder_path, loc.index, updated)
        ctx.outcome.updated += 1
