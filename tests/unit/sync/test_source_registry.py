"""Tests for source validation and the source registry."""

from __future__ import annotations

import pytest

from specsync.errors import SpecSyncConfigurationError
from specsync.models import SourceConfig, SourceKind
from specsync.sync import SourceRegistry, sanitize_source_name, validate_source


def _url(location: str = "https://api.example.com/openapi.json", **kwargs) -> SourceConfig:
    return SourceConfig(source_id=kwargs.pop("source_id", "s"), kind=SourceKind.URL, location=location, **kwargs)


def _file(location: str, **kwargs) -> SourceConfig:
    return SourceConfig(source_id="f", kind=SourceKind.FILE, location=location, **kwargs)


class TestValidateSource:
    def test_valid_https(self):
        check = validate_source(_url())
        assert check.is_valid
        assert check.warnings == []

    @pytest.mark.parametrize("location", ["ftp://x/spec.json", "not a url", "file:///etc/spec.json"])
    def test_bad_scheme(self, location):
        assert not validate_source(_url(location)).is_valid

    def test_missing_host(self):
        check = validate_source(_url("https:///spec.json"))
        assert check.errors == ["URL must include a host"]

    def test_plain_http_warns(self):
        check = validate_source(_url("http://api.example.com/spec.json"))
        assert check.is_valid
        assert len(check.warnings) == 1

    def test_localhost_http_no_warning(self):
        assert validate_source(_url("http://localhost:8080/spec.json")).warnings == []

    def test_private_address_warns(self):
        check = validate_source(_url("https://192.168.1.10/spec.json"))
        assert check.is_valid
        assert any("Private" in w for w in check.warnings)

    @pytest.mark.parametrize("location", ["spec.json", "api/openapi.YAML", "~/specs/api.yml"])
    def test_file_extensions_accepted(self, location):
        assert validate_source(_file(location)).is_valid

    @pytest.mark.parametrize("location", ["", "   ", "spec.txt"])
    def test_file_rejected(self, location):
        assert not validate_source(_file(location)).is_valid

    def test_field_checks(self):
        check = validate_source(_url(
            source_id=" ",
            poll_interval_ms=10,
            timeout_seconds=0,
            headers={" ": "x"},
        ))
        assert len(check.errors) == 4


class TestSanitizeSourceName:
    def test_strips_and_collapses(self):
        assert sanitize_source_name("  Pet<store>   API! ") == "Petstore API"

    def test_length_capped(self):
        assert len(sanitize_source_name("x" * 500)) == 100

    def test_keeps_punctuation_used_in_names(self):
        assert sanitize_source_name("users-api v1.2") == "users-api v1.2"


class TestSourceRegistry:
    def test_register_sanitizes(self):
        registry = SourceRegistry()
        stored = registry.register(_url("  https://api.example.com/openapi.json  ", name="Users <API>"))
        assert stored.location == "https://api.example.com/openapi.json"
        assert stored.name == "Users API"
        assert registry.get("s") is stored
        assert "s" in registry
        assert len(registry) == 1

    def test_name_falls_back_to_id(self):
        assert SourceRegistry().register(_url(name="<>")).name == "s"

    def test_invalid_raises_with_errors(self):
        with pytest.raises(SpecSyncConfigurationError) as exc_info:
            SourceRegistry().register(_url("ftp://x"))
        assert exc_info.value.context["errors"]

    def test_replace_same_id(self):
        registry = SourceRegistry([_url()])
        registry.register(_url("https://other.example.com/spec.yaml"))
        assert len(registry) == 1
        assert registry.get("s").location.startswith("https://other")

    def test_require_unknown(self):
        with pytest.raises(SpecSyncConfigurationError, match="Unknown source"):
            SourceRegistry().require("nope")

    def test_remove(self):
        registry = SourceRegistry([_url()])
        assert registry.remove("s") is not None
        assert registry.remove("s") is None
        assert registry.all() == []
