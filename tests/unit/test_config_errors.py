"""Tests for SyncConfig validation and the error hierarchy."""

from __future__ import annotations

import pytest

from specsync.config import DEFAULT_POLL_INTERVAL_MS, MIN_POLL_INTERVAL_MS, SyncConfig
from specsync.errors import (
    ErrorCode,
    SpecSyncApplyError,
    SpecSyncConfigurationError,
    SpecSyncConflictPendingError,
    SpecSyncError,
    SpecSyncHTTPStatusError,
    SpecSyncParseError,
    SpecSyncSessionError,
    SpecSyncTimeoutError,
    SpecSyncTransportError,
)
from specsync.models import Conflict, ChangeKind, ConflictResolution, SourceConfig, SourceKind, SyncResult

# ---------------------------------------------------------------------------
# SyncConfig
# ---------------------------------------------------------------------------


class TestSyncConfigDefaults:
    def test_defaults_are_valid(self):
        cfg = SyncConfig()
        assert cfg.poll_interval_ms == DEFAULT_POLL_INTERVAL_MS
        assert cfg.conflict_policy == "prompt"
        assert cfg.pairing_fallback is True
        assert cfg.metrics is None

    def test_minimum_poll_interval_accepted(self):
        assert SyncConfig(poll_interval_ms=MIN_POLL_INTERVAL_MS).poll_interval_ms == MIN_POLL_INTERVAL_MS


class TestSyncConfigValidation:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("poll_interval_ms", MIN_POLL_INTERVAL_MS - 1),
            ("debounce_ms", -1),
            ("conflict_policy", "mine"),
            ("fetch_timeout_seconds", 0),
            ("retry_max_attempts", 0),
            ("retry_base_delay", -0.5),
            ("retry_max_delay", -1),
            ("max_snapshots", 0),
        ],
    )
    def test_invalid_values_raise(self, field, value):
        with pytest.raises(ValueError, match=field):
            SyncConfig(**{field: value})


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (SpecSyncConfigurationError, ErrorCode.CONFIGURATION_ERROR),
            (SpecSyncTransportError, ErrorCode.TRANSPORT_ERROR),
            (SpecSyncTimeoutError, ErrorCode.TIMEOUT),
            (SpecSyncHTTPStatusError, ErrorCode.HTTP_STATUS),
            (SpecSyncParseError, ErrorCode.PARSE_ERROR),
            (SpecSyncApplyError, ErrorCode.APPLY_ERROR),
            (SpecSyncConflictPendingError, ErrorCode.CONFLICT_PENDING),
            (SpecSyncSessionError, ErrorCode.SESSION_ERROR),
        ],
    )
    def test_code_and_base(self, cls, code):
        err = cls(message="boom")
        assert isinstance(err, SpecSyncError)
        assert err.code == code
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.context == {}

    @pytest.mark.parametrize(
        "cls", [SpecSyncTimeoutError, SpecSyncHTTPStatusError, SpecSyncParseError],
    )
    def test_transport_subclasses(self, cls):
        assert issubclass(cls, SpecSyncTransportError)

    def test_configuration_is_not_transport(self):
        assert not issubclass(SpecSyncConfigurationError, SpecSyncTransportError)

    def test_cause_is_chained(self):
        original = OSError("disk")
        err = SpecSyncTransportError(message="read failed", cause=original)
        assert err.cause is original
        assert err.__cause__ is original

    def test_http_status_property(self):
        err = SpecSyncHTTPStatusError(message="nope", context={"status_code": 404})
        assert err.status_code == 404

    def test_repr_includes_context(self):
        err = SpecSyncConfigurationError(message="bad", context={"field": "location"})
        text = repr(err)
        assert "SpecSyncConfigurationError" in text
        assert "location" in text


class TestRaiseForConflicts:
    def _conflict(self, resolution=None) -> Conflict:
        return Conflict(
            kind=ChangeKind.ENDPOINT_MODIFIED,
            path="GET /users",
            code_version={},
            user_version={},
            description="edited",
            resolution=resolution,
        )

    def test_raises_when_unresolved(self):
        result = SyncResult(source_id="users", success=True, conflicts=[self._conflict()])
        with pytest.raises(SpecSyncConflictPendingError) as exc_info:
            result.raise_for_conflicts()
        assert exc_info.value.context["conflicts"] == ["GET /users"]

    def test_silent_when_resolved(self):
        result = SyncResult(
            source_id="users",
            success=True,
            conflicts=[self._conflict(ConflictResolution.USE_USER)],
        )
        result.raise_for_conflicts()
        assert result.unresolved_conflicts == []


class TestSourceConfigRepr:
    def test_header_values_are_masked(self):
        src = SourceConfig(
            source_id="s",
            kind=SourceKind.URL,
            location="https://api.test/spec.json",
            headers={"Authorization": "Bearer super-secret"},
        )
        text = repr(src)
        assert "super-secret" not in text
        assert "Authorization" in text
