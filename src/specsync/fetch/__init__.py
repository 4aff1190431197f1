"""Reference fetchers for URL and file sources."""

from __future__ import annotations

from .file import FileFetcher, SourceFetcher
from .http import HttpFetcher
from .retries import compute_backoff, parse_retry_after, should_retry

__all__ = [
    "FileFetcher",
    "HttpFetcher",
    "SourceFetcher",
    "compute_backoff",
    "parse_retry_after",
    "should_retry",
]
