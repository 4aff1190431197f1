"""Comparison of the shared schema dictionary."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from specsync.models import Change, ChangeKind, Severity
from specsync.spec.nodes import SpecContent

from . import severity


def endpoints_using_schema(content: SpecContent, name: str) -> tuple[str, ...]:
    """Return the ``"METHOD /path"`` keys of operations that reference schema *name*.

    A textual scan of each serialized operation for the ``$ref`` target;
    transitive references through other schemas are not followed.
    """
    needle = f"{content.schema_ref_prefix}{name}"
    hits: list[str] = []
    for op in content.operations():
        # Match the closing quote so ``User`` does not also hit ``UserList``.
        if f'"{needle}"' in json.dumps(op.raw, default=str):
            hits.append(op.key)
    return tuple(hits)


def compare_schemas(
    old: SpecContent,
    new: SpecContent,
    same: Callable[[Any, Any], bool] | None = None,
) -> list[Change]:
    """Compare ``components.schemas`` of two documents.

    Parameters
    ----------
    old, new:
        Parsed documents.
    same:
        Optional equality predicate for raw schema objects.  Defaults to
        ``==``.

    Returns
    -------
    list[Change]
        Schema changes in sorted name order.
    """
    same = same or (lambda a, b: a == b)
    changes: list[Change] = []
    for name in sorted(set(old.schemas) | set(new.schemas)):
        old_schema = old.schemas.get(name)
        new_schema = new.schemas.get(name)
        path = f"/components/schemas/{name}"
        if old_schema is None and new_schema is not None:
            changes.append(Change(
                kind=ChangeKind.SCHEMA_ADDED,
                severity=Severity.NON_BREAKING,
                path=path,
                description=f"Added new schema: {name}",
                new_value=new_schema.raw,
                affected_endpoints=endpoints_using_schema(new, name),
            ))
        elif old_schema is not None and new_schema is None:
            changes.append(Change(
                kind=ChangeKind.SCHEMA_REMOVED,
                severity=Severity.BREAKING,
                path=path,
                description=f"Removed schema: {name}",
                old_value=old_schema.raw,
                affected_endpoints=endpoints_using_schema(old, name),
            ))
        elif old_schema is not None and new_schema is not None:
            if not same(old_schema.raw, new_schema.raw):
                changes.append(Change(
                    kind=ChangeKind.SCHEMA_MODIFIED,
                    severity=severity.schema_modified(old_schema, new_schema),
                    path=path,
                    description=f"Modified schema: {name}",
                    old_value=old_schema.raw,
                    new_value=new_schema.raw,
                    affected_endpoints=endpoints_using_schema(new, name),
                ))
    return changes
