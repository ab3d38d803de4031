"""
Response envelopes printed by the llm-continuation CLI.

Every command answers with one ``ResponseEnvelope``: ``success_response``
for results (degraded merges included, with ``meta.warnings`` saying what
degraded) and ``error_response`` for failures, whose ``error_code`` and
``error_type`` come from ``core.errors.base.ERROR_MAPPINGS``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

RESPONSE_VERSION = "llm-continuation/v1"


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Input
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INVALID_FORMAT = "INVALID_FORMAT"
    NOT_FOUND = "NOT_FOUND"

    # Provider access
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    CONTENT_FILTERED = "CONTENT_FILTERED"

    # Continuation run
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    TRANSPORT_TIMEOUT = "TRANSPORT_TIMEOUT"
    MERGE_FAILED = "MERGE_FAILED"
    NO_CONTENT = "NO_CONTENT"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorType(str, Enum):
    """Error categories; the comment gives the HTTP analog and retry advice."""

    VALIDATION = "validation"  # 400, fix the input
    AUTHENTICATION = "authentication"  # 401, fix the credentials
    NOT_FOUND = "not_found"  # 404
    RATE_LIMIT = "rate_limit"  # 429, retry after the delay
    MERGE = "merge"  # 422, inspect details.metadata
    AI_PROVIDER = "ai_provider"  # 502, retry depends on the provider error
    INTERNAL = "internal"  # 500


@dataclass
class ResponseEnvelope:
    """
    One CLI answer.

    Attributes:
        success: False only for errors; a degraded merge is still a success
        data: Command payload, or error_code/error_type/remediation/details
        error: Error message when success is False
        meta: Envelope version plus optional request_id and warnings
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})


def _build_meta(
    *,
    request_id: Optional[str] = None,
    warnings: Optional[Sequence[str]] = None,
    telemetry: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"version": RESPONSE_VERSION}
    if request_id:
        meta["request_id"] = request_id
    if warnings:
        meta["warnings"] = list(warnings)
    if telemetry:
        meta["telemetry"] = dict(telemetry)
    return meta


def _enum_value(value: Union[Enum, str]) -> str:
    return value.value if isinstance(value, Enum) else value


def success_response(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    telemetry: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
    **fields: Any,
) -> ResponseEnvelope:
    """Create a success envelope.

    Args:
        data: Base payload
        warnings: Degradation notes for ``meta.warnings``
        telemetry: Timing data for ``meta.telemetry``
        request_id: Continuation run id, when there is one
        **fields: Extra payload fields merged over ``data``
    """
    payload: Dict[str, Any] = dict(data or {})
    payload.update(fields)
    return ResponseEnvelope(
        success=True,
        data=payload,
        meta=_build_meta(request_id=request_id, warnings=warnings, telemetry=telemetry),
    )


def error_response(
    message: str,
    *,
    error_code: Union[ErrorCode, str] = ErrorCode.INTERNAL_ERROR,
    error_type: Union[ErrorType, str] = ErrorType.INTERNAL,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
) -> ResponseEnvelope:
    """Create an error envelope.

    Example:
        >>> error_response(
        ...     "max_attempts must be a positive integer",
        ...     error_code=ErrorCode.INVALID_CONFIGURATION,
        ...     error_type=ErrorType.VALIDATION,
        ...     remediation="Set max_attempts between 1 and 20",
        ... )
    """
    payload: Dict[str, Any] = {
        "error_code": _enum_value(error_code),
        "error_type": _enum_value(error_type),
    }
    if remediation is not None:
        payload["remediation"] = remediation
    if details:
        payload["details"] = dict(details)
    return ResponseEnvelope(success=False, data=payload, error=message, meta=_build_meta(request_id=request_id))


def degradation_warnings(
    *,
    merge_success: bool,
    fallback_level: Union[Enum, str],
    merge_error: Optional[str] = None,
    max_attempts_reached: bool = False,
    max_attempts: Optional[int] = None,
    cancelled: bool = False,
    transport_errors: Sequence[Mapping[str, Any]] = (),
) -> List[str]:
    """Describe, one line each, every way a run or merge fell short."""
    warnings: List[str] = []
    if not merge_success:
        line = f"Merge degraded to '{_enum_value(fallback_level)}'"
        warnings.append(f"{line}: {merge_error}" if merge_error else line)
    if max_attempts_reached:
        warnings.append(f"Stopped after {max_attempts} attempts; output may be incomplete")
    if cancelled:
        warnings.append("Run was cancelled or hit its deadline; merged what was received")
    for error in transport_errors:
        warnings.append(f"Attempt {error.get('attempt')} failed: {error.get('message')}")
    return warnings
