"""Exception-to-envelope registry.

``ERROR_MAPPINGS`` pairs each known exception type with the
``(ErrorCode, ErrorType)`` it is reported under. ``cli_command`` renders any
mapped failure with ``error_to_response`` and treats everything else as an
internal error.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple, Type

from llm_continuation.core.errors.continuation import (
    CompleteDegradationError,
    InvalidConfigurationError,
    MergeError,
    TransportError,
    TransportTimeoutError,
)
from llm_continuation.core.errors.llm import (
    AuthenticationError,
    ContentFilterError,
    InvalidRequestError,
    RateLimitError,
)
from llm_continuation.core.responses import ErrorCode, ErrorType, error_response

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    # --- Continuation engine ---
    InvalidConfigurationError: (ErrorCode.INVALID_CONFIGURATION, ErrorType.VALIDATION),
    TransportError: (ErrorCode.TRANSPORT_ERROR, ErrorType.AI_PROVIDER),
    TransportTimeoutError: (ErrorCode.TRANSPORT_TIMEOUT, ErrorType.AI_PROVIDER),
    MergeError: (ErrorCode.MERGE_FAILED, ErrorType.MERGE),
    CompleteDegradationError: (ErrorCode.NO_CONTENT, ErrorType.MERGE),
    # --- Providers ---
    RateLimitError: (ErrorCode.RATE_LIMIT_EXCEEDED, ErrorType.RATE_LIMIT),
    AuthenticationError: (ErrorCode.UNAUTHORIZED, ErrorType.AUTHENTICATION),
    InvalidRequestError: (ErrorCode.VALIDATION_ERROR, ErrorType.VALIDATION),
    ContentFilterError: (ErrorCode.CONTENT_FILTERED, ErrorType.AI_PROVIDER),
}


def error_to_response(exc: Exception) -> Optional[Dict[str, Any]]:
    """Render a registered exception as an error envelope dict.

    The lookup uses the exception's exact type, so subclasses must be
    registered on their own. Run metadata carried by a ``ContinuationError``
    is attached under ``details.metadata``.

    Returns:
        The envelope as a dict, or None when the type is not registered
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    metadata = getattr(exc, "metadata", None)
    details = {"metadata": metadata.to_dict()} if metadata is not None else None
    code, error_type = mapping
    return asdict(error_response(str(exc), error_code=code, error_type=error_type, details=details))
