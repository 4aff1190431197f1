"""Sync engine, source registry and the session orchestrator."""

from __future__ import annotations

from .debounce import Debouncer
from .engine import SyncEngine
from .orchestrator import SyncOrchestrator
from .sources import SourceRegistry, SourceValidation, sanitize_source_name, validate_source

__all__ = [
    "Debouncer",
    "SourceRegistry",
    "SourceValidation",
    "SyncEngine",
    "SyncOrchestrator",
    "sanitize_source_name",
    "validate_source",
]
