"""Find the collection request that corresponds to an operation.

Requests store a URL template (``{{baseURL}}/users/<<id>>``) while the
specification uses bare paths (``/users/{id}``), so matching goes through
:func:`normalize_endpoint_path` first.  :func:`locate` tries progressively
looser matches and stops at the first hit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from specsync.models import Collection, RequestEntity

_VARIABLE_RE = re.compile(r"\{\{[^}]*\}\}")
_SCHEME_HOST_RE = re.compile(r"^https?://[^/]+", re.IGNORECASE)
_ANGLE_PARAM_RE = re.compile(r"<<([^>]+)>>")
_PARAM_SEGMENT_RE = re.compile(r"\{[^/}]+\}|:[A-Za-z_][\w-]*")


@dataclass(frozen=True)
class EntityLocation:
    """Where a request sits in the collection tree."""

    folder_path: tuple[int, ...]
    index: int
    entity: RequestEntity


def normalize_endpoint_path(endpoint: str) -> str:
    """Reduce a request endpoint to a bare path comparable with the specification.

    Examples
    --------
    >>> normalize_endpoint_path("{{baseURL}}/users/<<id>>/")
    '/users/{id}'
    >>> normalize_endpoint_path("https://api.test:8080/v1/items")
    '/v1/items'
    """
    path = _VARIABLE_RE.sub("", endpoint or "")
    path = _SCHEME_HOST_RE.sub("", path.strip())
    path = path.split("?", 1)[0]
    path = _ANGLE_PARAM_RE.sub(r"{\1}", path)
    path = "/" + path.strip("/")
    return path


def path_template(path: str) -> str:
    """Replace every path-parameter segment with ``{}``.

    ``/users/{id}``, ``/users/{userId}`` and ``/users/:id`` share one template.
    """
    return _PARAM_SEGMENT_RE.sub("{}", normalize_endpoint_path(path))


def _find(
    collection: Collection,
    method: str | None,
    path: str,
    *,
    template: bool = False,
    claimed: frozenset[str] = frozenset(),
) -> EntityLocation | None:
    wanted = path_template(path) if template else normalize_endpoint_path(path)
    for folder_path, index, entity in collection.iter_requests():
        if method is not None and entity.method.upper() != method.upper():
            continue
        if claimed and entity_key(entity) in claimed:
            continue
        candidate = (
            path_template(entity.endpoint) if template else normalize_endpoint_path(entity.endpoint)
        )
        if candidate == wanted:
            return EntityLocation(folder_path, index, entity)
    return None


def entity_key(entity: RequestEntity) -> str:
    """Return the ``"METHOD /path"`` key a request currently answers to."""
    return f"{entity.method.upper()} {normalize_endpoint_path(entity.endpoint)}"


def find_exact(collection: Collection, method: str, path: str) -> EntityLocation | None:
    """Match on method and normalized path only."""
    return _find(collection, method, path)


def locate(
    collection: Collection,
    method: str,
    path: str,
    *,
    old_method: str | None = None,
    old_path: str | None = None,
    claimed: frozenset[str] = frozenset(),
) -> EntityLocation | None:
    """Find the request for ``method path`` using progressively looser matches.

    Order: method+path, old method+old path (for moves), path-only with any
    method, then a parameter-name-agnostic template match (same method
    first, then any method).

    The loose tiers skip requests whose own ``"METHOD /path"`` is in
    *claimed*, so an operation that still exists in the new document never
    has its request taken over by a sibling.
    """
    hit = _find(collection, method, path)
    if hit is None and old_path is not None:
        hit = _find(collection, old_method or method, old_path)
    for search_path in dict.fromkeys(p for p in (old_path, path) if p is not None):
        if hit is None:
            hit = _find(collection, None, search_path, claimed=claimed)
    if hit is None:
        hit = _find(
            collection, old_method or method, old_path or path, template=True, claimed=claimed,
        )
    if hit is None:
        hit = _find(collection, None, old_path or path, template=True, claimed=claimed)
    return hit
