"""Operation-level comparison: paths, verbs, metadata, parameters, bodies, responses.

Emission order is fixed so that two runs over the same inputs produce the
same change list: paths in sorted order, verbs in :data:`HTTP_METHODS`
order, and within a shared operation metadata, then parameters, then the
request body, then responses by sorted status code.
"""

from __future__ import annotations

from typing import Any

from specsync.models import Change, ChangeKind, Severity
from specsync.spec.nodes import HTTP_METHODS, OperationNode, SpecContent
from specsync.utils.hashing import normalize_spec

from . import severity


class EndpointComparer:
    """Compare the ``paths`` sections of two parsed documents.

    Parameters
    ----------
    ignore_descriptions:
        Skip summary/description changes and ignore those keys inside
        nested objects.
    ignore_examples:
        Ignore ``example``/``examples`` keys inside nested objects.
    """

    def __init__(self, *, ignore_descriptions: bool = False, ignore_examples: bool = False) -> None:
        self._ignore_descriptions = ignore_descriptions
        self._ignore_examples = ignore_examples

    def _norm(self, value: Any) -> Any:
        return normalize_spec(
            value,
            ignore_descriptions=self._ignore_descriptions,
            ignore_examples=self._ignore_examples,
        )

    def _same(self, a: Any, b: Any) -> bool:
        return self._norm(a) == self._norm(b)

    # -- paths and verbs ---------------------------------------------------

    def compare(self, old: SpecContent, new: SpecContent) -> list[Change]:
        changes: list[Change] = []
        for path in sorted(set(old.paths) | set(new.paths)):
            old_ops = old.paths.get(path, {})
            new_ops = new.paths.get(path, {})
            for method in HTTP_METHODS:
                old_op = old_ops.get(method)
                new_op = new_ops.get(method)
                if old_op is None and new_op is not None:
                    changes.append(_endpoint_added(new_op))
                elif old_op is not None and new_op is None:
                    changes.append(_endpoint_removed(old_op))
                elif old_op is not None and new_op is not None:
                    changes.extend(self.compare_operation(old_op, new_op))
        return changes

    def compare_operation(self, old: OperationNode, new: OperationNode) -> list[Change]:
        """Return every change between two versions of the same operation."""
        changes = self._compare_metadata(old, new)
        changes.extend(self._compare_parameters(old, new))
        changes.extend(self._compare_request_body(old, new))
        changes.extend(self._compare_responses(old, new))
        return changes

    # -- metadata ----------------------------------------------------------

    def _compare_metadata(self, old: OperationNode, new: OperationNode) -> list[Change]:
        key = new.key
        checks: list[tuple[str, bool, Severity]] = []
        if not self._ignore_descriptions:
            checks.append(("Summary", old.summary != new.summary, Severity.INFORMATIONAL))
            checks.append(("Description", old.description != new.description, Severity.INFORMATIONAL))
        checks.append(("Operation ID", old.operation_id != new.operation_id, Severity.NON_BREAKING))
        checks.append(("Tags", sorted(old.tags) != sorted(new.tags), Severity.INFORMATIONAL))

        return [
            Change(
                kind=ChangeKind.ENDPOINT_MODIFIED,
                severity=sev,
                path=key,
                description=f"{label} changed for {key}",
                old_value=old.raw,
                new_value=new.raw,
                affected_endpoints=(key,),
                endpoint=key,
            )
            for label, differs, sev in checks
            if differs
        ]

    # -- parameters --------------------------------------------------------

    def _compare_parameters(self, old: OperationNode, new: OperationNode) -> list[Change]:
        key = new.key
        old_params = old.parameter_map()
        new_params = new.parameter_map()
        changes: list[Change] = []

        for pkey, param in new_params.items():
            if pkey not in old_params:
                qualifier = "required" if param.required else "optional"
                changes.append(Change(
                    kind=ChangeKind.PARAMETER_ADDED,
                    severity=severity.parameter_added(param),
                    path=f"{key}/parameters/{param.name}",
                    description=f"Added {qualifier} parameter: {param.name} ({param.location})",
                    new_value=param.raw,
                    affected_endpoints=(key,),
                    endpoint=key,
                ))

        for pkey, param in old_params.items():
            if pkey not in new_params:
                changes.append(Change(
                    kind=ChangeKind.PARAMETER_REMOVED,
                    severity=Severity.BREAKING,
                    path=f"{key}/parameters/{param.name}",
                    description=f"Removed parameter: {param.name} ({param.location})",
                    old_value=param.raw,
                    affected_endpoints=(key,),
                    endpoint=key,
                ))

        for pkey, old_param in old_params.items():
            new_param = new_params.get(pkey)
            if new_param is not None and not self._same(old_param.raw, new_param.raw):
                changes.append(Change(
                    kind=ChangeKind.PARAMETER_MODIFIED,
                    severity=severity.parameter_modified(old_param, new_param),
                    path=f"{key}/parameters/{old_param.name}",
                    description=f"Modified parameter: {old_param.name} ({old_param.location})",
                    old_value=old_param.raw,
                    new_value=new_param.raw,
                    affected_endpoints=(key,),
                    endpoint=key,
                ))
        return changes

    # -- request body ------------------------------------------------------

    def _compare_request_body(self, old: OperationNode, new: OperationNode) -> list[Change]:
        if self._same(old.request_body, new.request_body):
            return []
        key = new.key
        return [Change(
            kind=ChangeKind.ENDPOINT_MODIFIED,
            severity=severity.request_body_changed(old.request_body, new.request_body),
            path=key,
            description=f"Request body changed for {key}",
            old_value=old.request_body,
            new_value=new.request_body,
            affected_endpoints=(key,),
            endpoint=key,
        )]

    # -- responses ---------------------------------------------------------

    def _compare_responses(self, old: OperationNode, new: OperationNode) -> list[Change]:
        key = new.key
        changes: list[Change] = []
        for code in sorted(set(old.responses) | set(new.responses)):
            old_resp = old.responses.get(code)
            new_resp = new.responses.get(code)
            base = f"{key}/responses/{code}"
            if old_resp is None and new_resp is not None:
                changes.append(_response_change(
                    key, base, Severity.NON_BREAKING,
                    f"Added response status {code} for {key}", None, new_resp,
                ))
            elif old_resp is not None and new_resp is None:
                changes.append(_response_change(
                    key, base, Severity.BREAKING,
                    f"Removed response status {code} from {key}", old_resp, None,
                ))
            elif old_resp is not None and new_resp is not None:
                changes.extend(self._compare_response(key, code, old_resp, new_resp))
        return changes

    def _compare_response(self, key: str, code: str, old: dict, new: dict) -> list[Change]:
        base = f"{key}/responses/{code}"
        changes: list[Change] = []

        if not self._ignore_descriptions and old.get("description") != new.get("description"):
            changes.append(_response_change(
                key, f"{base}/description", Severity.INFORMATIONAL,
                f"Response description changed for {code} in {key}",
                old.get("description"), new.get("description"),
            ))

        old_content = old.get("content") or {}
        new_content = new.get("content") or {}
        for media in sorted(set(old_content) | set(new_content)):
            old_media = old_content.get(media)
            new_media = new_content.get(media)
            path = f"{base}/content/{media}"
            if old_media is None and new_media is not None:
                changes.append(_response_change(
                    key, path, Severity.NON_BREAKING,
                    f"Added {media} response type for {code} in {key}", None, new_media,
                ))
            elif old_media is not None and new_media is None:
                changes.append(_response_change(
                    key, path, Severity.BREAKING,
                    f"Removed {media} response type for {code} in {key}", old_media, None,
                ))
            elif old_media is not None and new_media is not None:
                old_schema = old_media.get("schema") if isinstance(old_media, dict) else None
                new_schema = new_media.get("schema") if isinstance(new_media, dict) else None
                if not self._same(old_schema, new_schema):
                    changes.append(_response_change(
                        key, f"{path}/schema",
                        severity.response_schema_changed(old_schema, new_schema),
                        f"Response schema changed for {media} {code} in {key}",
                        old_schema, new_schema,
                    ))

        # Header changes never break callers, whichever direction they go.
        old_headers = old.get("headers") or {}
        new_headers = new.get("headers") or {}
        for name in sorted(set(old_headers) | set(new_headers)):
            old_h = old_headers.get(name)
            new_h = new_headers.get(name)
            if old_h is None:
                verb = "Added"
            elif new_h is None:
                verb = "Removed"
            elif not self._same(old_h, new_h):
                verb = "Modified"
            else:
                continue
            changes.append(_response_change(
                key, f"{base}/headers/{name}", Severity.NON_BREAKING,
                f"{verb} response header {name} for {code} in {key}", old_h, new_h,
            ))
        return changes


# ---------------------------------------------------------------------------
# Change constructors
# ---------------------------------------------------------------------------

def _endpoint_added(op: OperationNode) -> Change:
    return Change(
        kind=ChangeKind.ENDPOINT_ADDED,
        severity=Severity.NON_BREAKING,
        path=op.key,
        description=f"Added new endpoint: {op.key}",
        new_value=op.raw,
        affected_endpoints=(op.key,),
        endpoint=op.key,
    )


def _endpoint_removed(op: OperationNode) -> Change:
    return Change(
        kind=ChangeKind.ENDPOINT_REMOVED,
        severity=Severity.BREAKING,
        path=op.key,
        description=f"Removed endpoint: {op.key}",
        old_value=op.raw,
        affected_endpoints=(op.key,),
        endpoint=op.key,
    )


def _response_change(
    key: str,
    path: str,
    sev: Severity,
    description: str,
    old_value: Any,
    new_value: Any,
) -> Change:
    return Change(
        kind=ChangeKind.ENDPOINT_MODIFIED,
        severity=sev,
        path=path,
        description=description,
        old_value=old_value,
        new_value=new_value,
        affected_endpoints=(key,),
        endpoint=key,
    )


def added_endpoint_changes(content: SpecContent) -> list[Change]:
    """One ``endpoint-added`` change per operation; used for first syncs."""
    return [_endpoint_added(op) for op in content.operations()]


