"""Observability: structured logging and metrics hooks for specsync."""

from __future__ import annotations

from .logger import StructuredFormatter, bind, get_logger
from .metrics import MetricsHook, NoopMetricsHook

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "bind",
    "get_logger",
]
