"""Synthesize collection requests from specification operations.

A synthesized request is the "spec default" for an operation: query and
header parameters become rows, the JSON request-body example becomes the
body, and every declared response becomes a saved example.  Comparing a
live request against this default is how customization is detected.
"""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from specsync.models import Auth, KeyValue, RequestBody, RequestEntity, SavedResponse
from specsync.spec.nodes import OperationNode

BASE_URL_VARIABLE = "{{baseURL}}"
"""Environment variable prefixed to every synthesized endpoint."""

_JSON = "application/json"


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def _pretty(value: Any) -> str:
    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return ""


def build_params(op: OperationNode) -> list[KeyValue]:
    """Query parameter rows; optional parameters start inactive."""
    return [
        KeyValue(
            key=p.name,
            value=_stringify(p.example),
            active=p.required,
            description=p.description,
        )
        for p in op.parameters
        if p.location == "query"
    ]


def build_headers(op: OperationNode) -> list[KeyValue]:
    """Header parameter rows, all active."""
    return [
        KeyValue(key=p.name, value=_stringify(p.example), active=True, description=p.description)
        for p in op.parameters
        if p.location == "header"
    ]


def build_body(op: OperationNode) -> RequestBody:
    """JSON body from the request-body example; empty when there is no body."""
    if op.request_body is None:
        return RequestBody()
    content = op.request_body.get("content") or {}
    media = content.get(_JSON) or {}
    example = media.get("example") if isinstance(media, dict) else None
    return RequestBody(content_type=_JSON, body=_pretty(example if example is not None else {}))


def build_responses(op: OperationNode) -> dict[str, SavedResponse]:
    """One saved response per declared status code, keyed by its name."""
    saved: dict[str, SavedResponse] = {}
    for code, response in op.responses.items():
        content = response.get("content") or {}
        content_type = next(iter(content), _JSON)
        media = content.get(content_type) or {}
        if isinstance(media, dict) and media.get("example") is not None:
            body = _pretty(media["example"])
        elif isinstance(media, dict) and media.get("schema"):
            body = _pretty(media["schema"])
        else:
            body = ""

        status_code = int(code) if code.isdigit() else 200
        try:
            status_text = HTTPStatus(status_code).phrase
        except ValueError:
            status_text = ""

        name = response.get("description") or code
        saved[name] = SavedResponse(
            name=name,
            status_code=status_code,
            status_text=status_text,
            headers=[KeyValue(key="content-type", value=content_type)],
            body=body,
        )
    return saved


def build_request(op: OperationNode) -> RequestEntity:
    """Return the spec-default request for *op*."""
    return RequestEntity(
        name=op.default_name,
        method=op.method.upper(),
        endpoint=f"{BASE_URL_VARIABLE}{op.path}",
        params=build_params(op),
        headers=build_headers(op),
        auth=Auth(),
        body=build_body(op),
        responses=build_responses(op),
    )
