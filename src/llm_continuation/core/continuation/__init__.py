"""Continuation-and-merge engine.

Drives the bounded request loop for truncated model output and merges the
resulting fragments with format-aware mergers and a graded fallback chain.

Usage:
    from llm_continuation.core.continuation import (
        ContinuationController,
        ProviderTransport,
    )

    controller = ContinuationController(ProviderTransport(provider), config)
    outcome = await controller.run("Generate a CSV of 500 products")
    print(outcome.text(), outcome.metadata.to_dict())
"""

from llm_continuation.core.continuation.models import (
    CompletionReason,
    ContinuationMetadata,
    ContinuationRun,
    ControllerState,
    FailurePolicy,
    FallbackLevel,
    FormatDetectionResult,
    Fragment,
    FragmentUsage,
    MergeResult,
    OutputFormat,
)
from llm_continuation.core.continuation.mergers import (
    MarkupMerger,
    MergerContract,
    MergerSupport,
    StructuredDataMerger,
    TabularMerger,
    extract_text,
)
from llm_continuation.core.continuation.format_detector import FormatDetector
from llm_continuation.core.continuation.factory import MergerFactory
from llm_continuation.core.continuation.fallback import (
    FallbackChain,
    FallbackOutcome,
    enforce_failure_policy,
)
from llm_continuation.core.continuation.metadata import CostRates, MetadataAccumulator
from llm_continuation.core.continuation.hints import build_continuation_hint, describe_structure
from llm_continuation.core.continuation.transport import (
    ConversationState,
    ProviderTransport,
    Transport,
)
from llm_continuation.core.continuation.controller import (
    ContinuationController,
    ContinuationOutcome,
    run_with_continuation,
)

__all__ = [
    # Models
    "CompletionReason",
    "ContinuationMetadata",
    "ContinuationRun",
    "ControllerState",
    "FailurePolicy",
    "FallbackLevel",
    "FormatDetectionResult",
    "Fragment",
    "FragmentUsage",
    "MergeResult",
    "OutputFormat",
    # Mergers
    "MarkupMerger",
    "MergerContract",
    "MergerSupport",
    "StructuredDataMerger",
    "TabularMerger",
    "extract_text",
    # Selection and recovery
    "FormatDetector",
    "MergerFactory",
    "FallbackChain",
    "FallbackOutcome",
    "enforce_failure_policy",
    # Accounting and hints
    "CostRates",
    "MetadataAccumulator",
    "build_continuation_hint",
    "describe_structure",
    # Loop
    "ConversationState",
    "ProviderTransport",
    "Transport",
    "ContinuationController",
    "ContinuationOutcome",
    "run_with_continuation",
]
