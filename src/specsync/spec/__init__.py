"""Specification document parsing: raw JSON/YAML to tagged nodes."""

from __future__ import annotations

from .nodes import (
    HTTP_METHODS,
    OperationNode,
    ParameterNode,
    SchemaNode,
    SpecContent,
    endpoint_key,
    split_endpoint_key,
)
from .parser import is_spec_document, load_document, parse_spec

__all__ = [
    "HTTP_METHODS",
    "OperationNode",
    "ParameterNode",
    "SchemaNode",
    "SpecContent",
    "endpoint_key",
    "is_spec_document",
    "load_document",
    "parse_spec",
    "split_endpoint_key",
]
