"""Diff engine: severity-classified change sets between specification documents."""

from __future__ import annotations

from .endpoints import EndpointComparer, added_endpoint_changes
from .engine import DiffEngine
from .schemas import compare_schemas, endpoints_using_schema

__all__ = [
    "DiffEngine",
    "EndpointComparer",
    "added_endpoint_changes",
    "compare_schemas",
    "endpoints_using_schema",
]
