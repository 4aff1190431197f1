"""Content hashes for specification documents.

The diff engine compares hashes before doing any structural walk, so two
documents that differ only in key order or whitespace must hash equal.
Parsed documents carry no whitespace, and keys are sorted before
serialisation.  These hashes are **not** used for security purposes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

# Keys dropped by :func:`normalize_spec` when the matching option is set.
_DESCRIPTION_KEYS: frozenset[str] = frozenset({"description", "summary"})
_EXAMPLE_KEYS: frozenset[str] = frozenset({"example", "examples"})
# Maps whose keys are property or schema names.
_NAME_MAPS: frozenset[str] = frozenset({"properties", "schemas", "definitions"})


def md5_hash(data: str) -> str:
    """Return the hex-encoded MD5 digest of *data* (UTF-8 encoded).

    Examples
    --------
    >>> md5_hash("hello")
    '5d41402abc4b2a76b9719d911017c592'
    """
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def hash_dict(d: dict) -> str:
    """Return the MD5 of a JSON-serialized dict with sorted keys.

    Mapping keys are compared as strings, so YAML documents that mix
    integer status codes (``200``) with ``default`` or ``4XX`` still hash.

    Examples
    --------
    >>> hash_dict({"b": 2, "a": 1}) == hash_dict({"a": 1, "b": 2})
    True
    """
    return md5_hash(
        json.dumps(
            stringify_keys(d), sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str,
        )
    )


def stringify_keys(value: Any) -> Any:
    """Return *value* with every mapping key converted to ``str``, at any depth."""
    if isinstance(value, dict):
        return {str(k): stringify_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [stringify_keys(v) for v in value]
    return value


def normalize_spec(
    value: Any,
    *,
    ignore_descriptions: bool = False,
    ignore_examples: bool = False,
) -> Any:
    """Return a copy of *value* with ignorable keys removed at every depth.

    Parameters
    ----------
    value:
        A parsed document or any sub-tree of one.
    ignore_descriptions:
        Drop ``description`` and ``summary`` keys.
    ignore_examples:
        Drop ``example`` and ``examples`` keys.
    """
    dropped: set[str] = set()
    if ignore_descriptions:
        dropped |= _DESCRIPTION_KEYS
    if ignore_examples:
        dropped |= _EXAMPLE_KEYS
    if not dropped:
        return value
    return _strip(value, frozenset(dropped))


def _strip(value: Any, dropped: frozenset[str], names: bool = False) -> Any:
    # Inside a name map every key is a user-chosen name, never metadata.
    if isinstance(value, dict):
        return {
            k: _strip(v, dropped, names=not names and k in _NAME_MAPS)
            for k, v in value.items()
            if names or k not in dropped
        }
    if isinstance(value, list):
        return [_strip(v, dropped) for v in value]
    return value


def spec_hash(
    document: dict,
    *,
    ignore_descriptions: bool = False,
    ignore_examples: bool = False,
) -> str:
    """Return the stable content hash of a specification document.

    Examples
    --------
    >>> spec_hash({"paths": {}, "openapi": "3.0.0"}) == spec_hash(
    ...     {"openapi": "3.0.0", "paths": {}})
    True
    """
    normalized = normalize_spec(
        document,
        ignore_descriptions=ignore_descriptions,
        ignore_examples=ignore_examples,
    )
    return hash_dict(normalized)
