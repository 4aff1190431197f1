"""Customization detection and field-preserving merges.

Nothing on a request says "the user edited this".  The marker is derived
by comparing the request against what the specification would have
produced for it (the *baseline* operation):

* auth other than ``inherit``/``none``,
* header rows that differ from the baseline's header parameters (any
  header at all when no baseline is known),
* a non-empty pre-request or test script,
* a name that is not the baseline's default name.
"""

from __future__ import annotations

import dataclasses

from specsync.models import KeyValue, RequestEntity
from specsync.spec.nodes import OperationNode

from .builder import build_headers

DEPRECATED_PREFIX = "[DEPRECATED] "

CUSTOMIZABLE_FIELDS: tuple[str, ...] = (
    "auth",
    "headers",
    "pre_request_script",
    "test_script",
    "name",
)


def _row_set(rows: list[KeyValue]) -> set[tuple[str, str]]:
    return {(r.key.lower(), r.value) for r in rows}


def customized_fields(entity: RequestEntity, baseline: OperationNode | None = None) -> list[str]:
    """Return the names of fields on *entity* that carry user edits.

    Parameters
    ----------
    entity:
        The live request.
    baseline:
        The operation the request was last synchronized from, when known.

    Returns
    -------
    list[str]
        A subset of :data:`CUSTOMIZABLE_FIELDS`, in that order.
    """
    fields: list[str] = []
    if not entity.auth.is_default:
        fields.append("auth")
    if baseline is None:
        if entity.headers:
            fields.append("headers")
    elif _row_set(entity.headers) != _row_set(build_headers(baseline)):
        fields.append("headers")
    if entity.pre_request_script.strip():
        fields.append("pre_request_script")
    if entity.test_script.strip():
        fields.append("test_script")
    if baseline is not None and entity.name != baseline.default_name:
        fields.append("name")
    elif entity.name.startswith(DEPRECATED_PREFIX):
        fields.append("name")
    return fields


def is_customized(entity: RequestEntity, baseline: OperationNode | None = None) -> bool:
    """Return ``True`` if *entity* carries any user edit."""
    return bool(customized_fields(entity, baseline))


def merge_rows(spec_rows: list[KeyValue], current_rows: list[KeyValue]) -> list[KeyValue]:
    """Take the row list from the spec, keeping the user's value and state per key."""
    current = {r.key.lower(): r for r in current_rows}
    merged: list[KeyValue] = []
    for row in spec_rows:
        existing = current.get(row.key.lower())
        if existing is None:
            merged.append(row)
        else:
            merged.append(dataclasses.replace(
                row, value=existing.value, active=existing.active,
            ))
    return merged


def preserve_customizations(
    synthesized: RequestEntity,
    current: RequestEntity,
    fields: list[str],
) -> RequestEntity:
    """Return *synthesized* with the customized *fields* copied from *current*.

    Identity and saved responses always come from *current*; query
    parameters are merged so user-entered values survive.  Headers that
    were customized keep the user's rows, plus any new header the
    specification introduced.
    """
    result = dataclasses.replace(
        synthesized,
        id=current.id,
        responses=current.responses,
        params=merge_rows(synthesized.params, current.params),
    )
    if "headers" in fields:
        known = {r.key.lower() for r in current.headers}
        result.headers = list(current.headers) + [
            r for r in synthesized.headers if r.key.lower() not in known
        ]
    else:
        result.headers = merge_rows(synthesized.headers, current.headers)
    if "auth" in fields:
        result.auth = current.auth
    if "pre_request_script" in fields:
        result.pre_request_script = current.pre_request_script
    if "test_script" in fields:
        result.test_script = current.test_script
    if "name" in fields:
        result.name = current.name
    return result


def deprecate(entity: RequestEntity) -> RequestEntity:
    """Return *entity* renamed with the deprecation prefix (applied once)."""
    if entity.name.startswith(DEPRECATED_PREFIX):
        return entity
    return dataclasses.replace(entity, name=f"{DEPRECATED_PREFIX}{entity.name}")
