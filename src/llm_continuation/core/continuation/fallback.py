"""Graded recovery around a merger invocation.

Levels, tried in order:
    none        - the format-specific merger
    simplified  - raw fragment texts joined with single newlines
    best_effort - the first fragment's text alone

Every level except a total absence of fragments yields content; only that
case raises ``CompleteDegradationError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from llm_continuation.config.decorators import log_call, timed
from llm_continuation.core.continuation.factory import MergerFactory
from llm_continuation.core.continuation.mergers import FragmentLike, collect_texts, extract_text
from llm_continuation.core.continuation.models import (
    ContinuationMetadata,
    FailurePolicy,
    FallbackLevel,
    FormatDetectionResult,
    MergeResult,
    OutputFormat,
)
from llm_continuation.core.errors import CompleteDegradationError, MergeError
from llm_continuation.core.observability import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


@dataclass
class FallbackOutcome:
    """What the fallback chain produced and how.

    Attributes:
        result: Merge result; ``content`` is never None
        level: Recovery level that produced ``result``
        format_used: Format of the merger selected for level ``none``
        detection: Detection result when the format was auto-detected
        merge_success: True only when the format-specific merge succeeded
        error_detail: Diagnostic text from the failed format-specific merge
    """

    result: MergeResult
    level: FallbackLevel
    format_used: Optional[OutputFormat]
    detection: Optional[FormatDetectionResult] = None
    merge_success: bool = False
    error_detail: Optional[str] = None


class FallbackChain:
    """Per-run wrapper applying the three recovery levels."""

    def __init__(
        self,
        factory: Optional[MergerFactory] = None,
        *,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._factory = factory or MergerFactory()
        self._logger = logger or logging.getLogger(__name__)
        self._metrics = metrics or get_metrics()

    @log_call()
    @timed("continuation.fallback")
    def run(
        self,
        fragments: Sequence[FragmentLike],
        output_format: OutputFormat = OutputFormat.AUTO,
    ) -> FallbackOutcome:
        """Merge ``fragments``, degrading until something can be returned.

        Args:
            fragments: Fragments in receipt order
            output_format: Explicit format, or AUTO to detect

        Returns:
            FallbackOutcome

        Raises:
            TypeError: If ``fragments`` is None or holds non-fragment values
            CompleteDegradationError: If there are no fragments at all
        """
        # Validates the sequence and every element up front
        collect_texts(fragments)
        if len(fragments) == 0:
            raise CompleteDegradationError("No fragments to merge")

        merger, detection = self._factory.select(output_format, fragments)
        try:
            primary = merger.merge(fragments)
        except Exception as exc:
            self._logger.exception("%s merger raised; degrading", merger.format.value)
            primary = MergeResult(success=False, error=f"{type(exc).__name__}: {exc}", format=merger.format)

        if primary.success:
            outcome = FallbackOutcome(
                result=primary,
                level=FallbackLevel.NONE,
                format_used=merger.format,
                detection=detection,
                merge_success=True,
            )
            self._record(outcome)
            return outcome

        self._logger.warning(
            "%s merge failed (%s); falling back to simplified concatenation",
            merger.format.value,
            primary.error,
        )
        outcome = self._simplified(fragments, primary) or self._best_effort(fragments, primary)
        outcome.format_used = merger.format
        outcome.detection = detection
        self._record(outcome)
        return outcome

    def _simplified(self, fragments: Sequence[FragmentLike], primary: MergeResult) -> Optional[FallbackOutcome]:
        texts: List[str] = [text for text in (extract_text(f) for f in fragments) if text is not None]
        if not any(texts):
            return None
        return FallbackOutcome(
            result=MergeResult(
                success=False,
                content="\n".join(texts),
                error=primary.error,
                error_detail=primary.error_detail,
                format=primary.format,
                details={"fallback_level": FallbackLevel.SIMPLIFIED.value, **primary.details},
            ),
            level=FallbackLevel.SIMPLIFIED,
            format_used=primary.format,
            error_detail=primary.error_detail or primary.error,
        )

    def _best_effort(self, fragments: Sequence[FragmentLike], primary: MergeResult) -> FallbackOutcome:
        first = fragments[0]
        if first is None:
            raise CompleteDegradationError("No fragment text exists; nothing can be returned")
        self._logger.warning("No fragment text to concatenate; returning the first fragment")
        return FallbackOutcome(
            result=MergeResult(
                success=False,
                content=extract_text(first) or "",
                error=primary.error or "No fragment contained any text",
                error_detail=primary.error_detail,
                format=primary.format,
                details={"fallback_level": FallbackLevel.BEST_EFFORT.value},
            ),
            level=FallbackLevel.BEST_EFFORT,
            format_used=primary.format,
            error_detail=primary.error_detail or primary.error,
        )

    def _record(self, outcome: FallbackOutcome) -> None:
        self._metrics.counter(
            "continuation.merge",
            labels={
                "format": outcome.format_used.value if outcome.format_used else "unknown",
                "level": outcome.level.value,
                "status": "success" if outcome.merge_success else "degraded",
            },
        )


def enforce_failure_policy(
    outcome: FallbackOutcome,
    policy: FailurePolicy,
    metadata: Optional[ContinuationMetadata] = None,
) -> FallbackOutcome:
    """Escalate a degraded outcome when the caller asked for ``raise_error``.

    Raises:
        MergeError: If ``policy`` is RAISE_ERROR and the merge did not succeed
    """
    if FailurePolicy(policy) == FailurePolicy.RAISE_ERROR and not outcome.merge_success:
        raise MergeError(
            f"Merge degraded to '{outcome.level.value}': {outcome.result.error or 'unknown error'}",
            result=outcome.result,
            metadata=metadata,
        )
    return outcome
