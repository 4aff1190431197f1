"""Severity rules for modified elements.

Additions and removals have fixed severities and are decided inline by the
comparers.  The functions here cover the "present on both sides but
different" cases, where the answer depends on what changed.
"""

from __future__ import annotations

from typing import Any

from specsync.models import Severity
from specsync.spec.nodes import ParameterNode, SchemaNode


def parameter_added(param: ParameterNode) -> Severity:
    """A new required parameter breaks existing callers; an optional one does not."""
    return Severity.BREAKING if param.required else Severity.NON_BREAKING


def parameter_modified(old: ParameterNode, new: ParameterNode) -> Severity:
    """Breaking when the parameter became required or its declared type changed."""
    if new.required and not old.required:
        return Severity.BREAKING
    if old.declared_type != new.declared_type:
        return Severity.BREAKING
    return Severity.NON_BREAKING


def request_body_changed(old: dict | None, new: dict | None) -> Severity:
    """Only dropping the request body entirely is breaking."""
    if old is not None and new is None:
        return Severity.BREAKING
    return Severity.NON_BREAKING


def response_schema_changed(old: Any, new: Any) -> Severity:
    """Breaking when the response schema lost properties or changed type.

    A schema that disappears is breaking; one that appears is not.
    """
    if not old and new:
        return Severity.NON_BREAKING
    if old and not new:
        return Severity.BREAKING
    old_props = old.get("properties") if isinstance(old, dict) else None
    new_props = new.get("properties") if isinstance(new, dict) else None
    if len(new_props or {}) < len(old_props or {}):
        return Severity.BREAKING
    old_type = old.get("type") if isinstance(old, dict) else None
    new_type = new.get("type") if isinstance(new, dict) else None
    if old_type != new_type:
        return Severity.BREAKING
    return Severity.NON_BREAKING


def schema_modified(old: SchemaNode, new: SchemaNode) -> Severity:
    """Breaking when the required list grew or properties were dropped."""
    if len(new.required) > len(old.required):
        return Severity.BREAKING
    if len(new.properties) < len(old.properties):
        return Severity.BREAKING
    return Severity.NON_BREAKING
