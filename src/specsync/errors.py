"""Full error hierarchy for specsync.

Every public error class inherits from :class:`SpecSyncError`. Each carries
a machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

The orchestrator sorts failures into two buckets by class:

* :class:`SpecSyncTransportError` and its subclasses are *transient*. The
  session keeps polling and its ``error_count`` is incremented.
* :class:`SpecSyncConfigurationError` is *permanent* until the user fixes
  the source. It is reported without touching the session.
* Anything else that escapes a sync pass is wrapped as a plain
  :class:`SpecSyncError` with code ``INTERNAL_ERROR`` and counted like a
  transport error.

Apply-time failures (:class:`SpecSyncApplyError`) never escape a sync; they
are downgraded to conflicts so that the rest of the batch still applies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error specsync can raise."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TIMEOUT = "TIMEOUT"
    HTTP_STATUS = "HTTP_STATUS"
    PARSE_ERROR = "PARSE_ERROR"
    APPLY_ERROR = "APPLY_ERROR"
    CONFLICT_PENDING = "CONFLICT_PENDING"
    SESSION_ERROR = "SESSION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class SpecSyncError(Exception):
    """Base exception for all specsync errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Source configuration
# ---------------------------------------------------------------------------

class SpecSyncConfigurationError(SpecSyncError):
    """The source descriptor is unusable (bad URL, missing file, unknown id).

    Context keys: ``source_id``, ``field``, ``value``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

class SpecSyncTransportError(SpecSyncError):
    """The specification document could not be retrieved.

    Raised after the fetcher exhausted its retries on network failures and
    retryable statuses.

    Context keys: ``source_id``, ``location``, ``attempts``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        *,
        code: str = ErrorCode.TRANSPORT_ERROR,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            context=context,
            cause=cause,
        )


class SpecSyncTimeoutError(SpecSyncTransportError):
    """The fetch did not complete within the configured timeout.

    Context keys: ``location``, ``timeout_seconds``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.TIMEOUT,
        )


class SpecSyncHTTPStatusError(SpecSyncTransportError):
    """The source answered with a non-retryable HTTP status (e.g. 404).

    Context keys: ``location``, ``status_code``, ``body``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.HTTP_STATUS,
        )

    @property
    def status_code(self) -> int | None:
        return self.context.get("status_code")


class SpecSyncParseError(SpecSyncTransportError):
    """The fetched content is not a specification document.

    Classified as a transport failure: the source is reachable but is
    currently serving something else (an error page, a half-written file).

    Context keys: ``location``, ``reason``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message=message,
            context=context,
            cause=cause,
            code=ErrorCode.PARSE_ERROR,
        )


# ---------------------------------------------------------------------------
# Apply / conflict errors
# ---------------------------------------------------------------------------

class SpecSyncApplyError(SpecSyncError):
    """A single change could not be applied to the collection.

    Context keys: ``change_path``, ``change_kind``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.APPLY_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class SpecSyncConflictPendingError(SpecSyncError):
    """A sync finished with unresolved conflicts.

    Only raised on request via :meth:`SyncResult.raise_for_conflicts`.

    Context keys: ``source_id``, ``conflicts`` (list of paths).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT_PENDING,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

class SpecSyncSessionError(SpecSyncError):
    """A lifecycle call was made in the wrong state.

    Examples: starting a session for a source that already has one, or
    pausing a source that has no session.

    Context keys: ``source_id``, ``status``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.SESSION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )
