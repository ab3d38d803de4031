"""llm-continuation: continuation-and-merge engine for truncated LLM output.

Detects when a completion was cut off by its output token budget, requests
continued generation, and stitches the fragments back into one document
using format-aware mergers (tabular, markup, structured data).
"""

from llm_continuation.core.continuation import (
    CompletionReason,
    ContinuationController,
    ContinuationMetadata,
    ContinuationOutcome,
    FailurePolicy,
    FallbackChain,
    FallbackLevel,
    FormatDetector,
    Fragment,
    MergeResult,
    MergerFactory,
    OutputFormat,
)
from llm_continuation.config import ContinuationConfig

__version__ = "0.3.0"

__all__ = [
    "CompletionReason",
    "ContinuationConfig",
    "ContinuationController",
    "ContinuationMetadata",
    "ContinuationOutcome",
    "FailurePolicy",
    "FallbackChain",
    "FallbackLevel",
    "FormatDetector",
    "Fragment",
    "MergeResult",
    "MergerFactory",
    "OutputFormat",
    "__version__",
]
