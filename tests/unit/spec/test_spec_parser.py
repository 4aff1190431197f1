"""Tests for specification loading and parsing."""

from __future__ import annotations

import json

import pytest

from specsync.errors import SpecSyncParseError
from specsync.spec import (
    endpoint_key,
    is_spec_document,
    load_document,
    parse_spec,
    split_endpoint_key,
)

# ---------------------------------------------------------------------------
# Endpoint keys
# ---------------------------------------------------------------------------


class TestEndpointKey:
    def test_round_trip(self):
        assert split_endpoint_key(endpoint_key("get", "/users/{id}")) == ("GET", "/users/{id}")

    def test_invalid_key(self):
        with pytest.raises(ValueError):
            split_endpoint_key("/users")


# ---------------------------------------------------------------------------
# load_document
# ---------------------------------------------------------------------------


class TestLoadDocument:
    def test_json_text(self, users_spec):
        doc = load_document(json.dumps(users_spec), "mem")
        assert doc == users_spec

    def test_yaml_bytes(self):
        text = b"openapi: 3.0.0\npaths:\n  /ping:\n    get:\n      responses:\n        '200':\n          description: pong\n"
        doc = load_document(text)
        assert doc["paths"]["/ping"]["get"]["responses"]["200"]["description"] == "pong"

    def test_unquoted_status_codes_become_strings(self):
        text = (
            "openapi: 3.0.0\n"
            "paths:\n"
            "  /ping:\n"
            "    get:\n"
            "      responses:\n"
            "        200: {description: pong}\n"
            "        4XX: {description: client}\n"
            "        default: {description: other}\n"
        )
        responses = load_document(text)["paths"]["/ping"]["get"]["responses"]
        assert list(responses) == ["200", "4XX", "default"]

    def test_invalid_yaml(self):
        with pytest.raises(SpecSyncParseError) as exc_info:
            load_document("paths: [unclosed", "spec.yaml")
        assert exc_info.value.context["reason"] == "syntax"

    def test_not_a_spec(self):
        with pytest.raises(SpecSyncParseError) as exc_info:
            load_document("<html><body>502 Bad Gateway</body></html>", "https://api.test")
        assert exc_info.value.context["reason"] == "not_a_spec"

    @pytest.mark.parametrize(
        ("doc", "expected"),
        [
            ({"openapi": "3.1.0"}, True),
            ({"swagger": "2.0"}, True),
            ({"paths": {}}, True),
            ({"info": {}}, False),
            ([1, 2], False),
            ("text", False),
        ],
    )
    def test_is_spec_document(self, doc, expected):
        assert is_spec_document(doc) is expected


# ---------------------------------------------------------------------------
# parse_spec
# ---------------------------------------------------------------------------


class TestParseSpec:
    def test_operations_in_canonical_order(self):
        doc = {
            "openapi": "3.0.0",
            "paths": {
                "/b": {"post": {}, "get": {}},
                "/a": {"delete": {}, "summary": "not an op", "servers": []},
            },
        }
        keys = [op.key for op in parse_spec(doc).operations()]
        assert keys == ["DELETE /a", "GET /b", "POST /b"]

    def test_path_level_parameters_merged(self, users_spec):
        op = parse_spec(users_spec).get("get", "/users/{id}")
        assert op is not None
        (param,) = op.parameters
        assert param.key == ("id", "path")
        assert param.required is True
        assert param.declared_type == "integer"

    def test_operation_parameter_overrides_path_level(self):
        doc = {
            "openapi": "3.0.0",
            "paths": {
                "/x/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {
                        "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}],
                    },
                },
            },
        }
        (param,) = parse_spec(doc).get("GET", "/x/{id}").parameters
        assert param.declared_type == "integer"

    def test_ref_parameter_resolved(self):
        doc = {
            "openapi": "3.0.0",
            "paths": {"/x": {"get": {"parameters": [{"$ref": "#/components/parameters/Limit"}]}}},
            "components": {"parameters": {"Limit": {"name": "limit", "in": "query"}}},
        }
        (param,) = parse_spec(doc).get("get", "/x").parameters
        assert param.name == "limit"
        assert param.location == "query"

    def test_unresolvable_ref_kept(self):
        doc = {"openapi": "3.0.0", "paths": {"/x": {"get": {"parameters": [{"$ref": "#/nowhere"}]}}}}
        (param,) = parse_spec(doc).get("get", "/x").parameters
        assert param.location == "ref"
        assert param.name == "#/nowhere"

    def test_swagger2_type_on_parameter(self):
        doc = {
            "swagger": "2.0",
            "paths": {"/x": {"get": {"parameters": [{"name": "n", "in": "query", "type": "integer"}]}}},
        }
        (param,) = parse_spec(doc).get("get", "/x").parameters
        assert param.declared_type == "integer"

    def test_components_schemas(self, users_spec):
        content = parse_spec(users_spec)
        user = content.schemas["User"]
        assert user.type == "object"
        assert user.required == ("id",)
        assert set(user.properties) == {"id", "name"}
        assert content.schema_ref_prefix == "#/components/schemas/"

    def test_swagger2_definitions(self):
        doc = {"swagger": "2.0", "paths": {}, "definitions": {"Pet": {"type": "object"}}}
        content = parse_spec(doc)
        assert "Pet" in content.schemas
        assert content.schema_ref_prefix == "#/definitions/"

    def test_default_name_fallbacks(self):
        doc = {
            "openapi": "3.0.0",
            "paths": {"/a": {"get": {"summary": "Fetch A"}, "post": {"operationId": "createA"}, "put": {}}},
        }
        content = parse_spec(doc)
        assert content.get("get", "/a").default_name == "Fetch A"
        assert content.get("post", "/a").default_name == "createA"
        assert content.get("put", "/a").default_name == "PUT /a"

    def test_find_by_key(self, users_spec):
        content = parse_spec(users_spec)
        assert content.find("GET /users").operation_id == "listUsers"
        assert content.find("DELETE /users") is None

    def test_rejects_non_spec(self):
        with pytest.raises(SpecSyncParseError):
            parse_spec({"hello": "world"})
