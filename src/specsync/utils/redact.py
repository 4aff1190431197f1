"""Credential redaction for logs and debug dumps.

URL sources often carry credentials: an ``Authorization`` header, an API
key header, or a key in the query string.  Everything written to logs or
to the fetch debug dump goes through :func:`redact` or :func:`redact_url`
first.

* Values of sensitive keys are replaced with ``<redacted:...XXXX>`` (last
  four characters) or ``<redacted>`` when the value is short.
* ``Bearer``/``Basic`` credentials embedded in free text are masked.
* Query parameters with sensitive names are masked in URLs.
* Long strings (large inline examples) are cut to a marker with their size.
"""

from __future__ import annotations

import copy
import re
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# If any of these substrings appear in a key (case-insensitive), the value
# is redacted.
_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "api_key",
    "api-key",
    "apikey",
    "x-api-key",
})

_AUTH_SCHEME_RE = re.compile(r"\b(Bearer|Basic|Token)\s+\S+", re.IGNORECASE)

# Strings longer than this are replaced with a size marker.
_MAX_STRING_LENGTH = 2048


def _is_sensitive(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    key_lower = key.lower()
    return any(pat in key_lower for pat in _SENSITIVE_KEY_PATTERNS)


def _mask(value: str) -> str:
    if len(value) >= 12:
        return f"<redacted:...{value[-4:]}>"
    return "<redacted>"


def _redact_value(value: Any) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value)
    if isinstance(value, list):
        return [_redact_value(item) for item in value]
    if isinstance(value, str):
        if len(value) > _MAX_STRING_LENGTH:
            return f"<truncated:{len(value.encode('utf-8'))}_bytes>"
        return _AUTH_SCHEME_RE.sub(lambda m: f"{m.group(1)} <redacted>", value)
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    return value


def _redact_dict(d: dict) -> dict:
    result: dict = {}
    for key, value in d.items():
        if _is_sensitive(key):
            result[key] = _mask(value) if isinstance(value, str) else "<redacted>"
        else:
            result[key] = _redact_value(value)
    return result


def redact(payload: dict) -> dict:
    """Return a deep copy of *payload* with credentials removed.

    The input is never mutated.

    Examples
    --------
    >>> redact({"Authorization": "Bearer abc"})
    {'Authorization': '<redacted>'}
    >>> redact({"note": "use Bearer abc123"})
    {'note': 'use Bearer <redacted>'}
    """
    return _redact_dict(copy.deepcopy(payload))


def redact_url(url: str) -> str:
    """Mask sensitive query parameters and userinfo in *url*.

    Examples
    --------
    >>> redact_url("https://api.test/spec.json?api_key=abcdef123456789&v=2")
    'https://api.test/spec.json?api_key=%3Credacted%3A...6789%3E&v=2'
    """
    parts = urlsplit(url)
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "<redacted>@" + netloc.rsplit("@", 1)[1]
    if parts.query:
        pairs = [
            (k, _mask(v) if _is_sensitive(k) else v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
        ]
        query = urlencode(pairs)
    else:
        query = parts.query
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))
