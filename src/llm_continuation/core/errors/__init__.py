"""Unified error hierarchy for llm-continuation.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from llm_continuation.core.errors import MergeError, TransportError
    from llm_continuation.core.errors import error_to_response
"""

from llm_continuation.core.errors.base import ERROR_MAPPINGS, error_to_response
from llm_continuation.core.errors.continuation import (
    CompleteDegradationError,
    ContinuationError,
    InvalidConfigurationError,
    MergeError,
    TransportError,
    TransportTimeoutError,
)
from llm_continuation.core.errors.llm import (
    AuthenticationError,
    ContentFilterError,
    InvalidRequestError,
    LLMError,
    RateLimitError,
    error_for_status,
)

__all__ = [
    # Base / Registry
    "ERROR_MAPPINGS",
    "error_to_response",
    # Continuation errors
    "ContinuationError",
    "InvalidConfigurationError",
    "TransportError",
    "TransportTimeoutError",
    "MergeError",
    "CompleteDegradationError",
    # LLM errors
    "LLMError",
    "RateLimitError",
    "AuthenticationError",
    "InvalidRequestError",
    "ContentFilterError",
    "error_for_status",
]
