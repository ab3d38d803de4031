"""Continuation engine error classes.

Only configuration mistakes, transport failures the caller asked to see,
and unrecoverable merges surface as exceptions. Truncation exhaustion,
ambiguous detection and per-merger failures are reported through
``ContinuationMetadata`` and ``MergeResult.success`` instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from llm_continuation.core.continuation.models import (
        ContinuationMetadata,
        MergeResult,
    )


class ContinuationError(Exception):
    """Base exception for the continuation engine.

    Attributes:
        metadata: Finalized run metadata, when the error escaped a run
    """

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional["ContinuationMetadata"] = None,
    ):
        super().__init__(message)
        self.metadata = metadata


class InvalidConfigurationError(ContinuationError, ValueError):
    """Raised when a configuration value is outside its allowed range.

    Attributes:
        field: Name of the offending option
        value: The rejected value
        suggestion: Closest valid value, if one could be guessed
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        suggestion: Optional[str] = None,
    ):
        if suggestion:
            message = f"{message} (did you mean '{suggestion}'?)"
        super().__init__(message)
        self.field = field
        self.value = value
        self.suggestion = suggestion


class TransportError(ContinuationError):
    """Raised by a transport when a single send fails.

    The controller never retries these; the run ends and merging proceeds
    over the fragments already collected.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        attempt: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.attempt = attempt


class TransportTimeoutError(TransportError):
    """Raised when a transport call exceeds its allotted time.

    Attributes:
        timeout: Configured timeout in seconds
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        attempt: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(message, provider=provider, attempt=attempt)
        self.timeout = timeout


class MergeError(ContinuationError):
    """Raised when a degraded merge is escalated by ``on_failure=raise_error``.

    Attributes:
        result: The (degraded) merge result that was produced
        original_error: Underlying exception, if one caused the failure
    """

    def __init__(
        self,
        message: str,
        *,
        result: Optional["MergeResult"] = None,
        metadata: Optional["ContinuationMetadata"] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message, metadata=metadata)
        self.result = result
        self.original_error = original_error


class CompleteDegradationError(MergeError):
    """Raised when no fragment text exists at all, so nothing can be returned."""
