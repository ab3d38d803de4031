"""Run metadata accumulation and cost accounting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from ulid import ULID

from llm_continuation.core.continuation.models import (
    CompletionReason,
    ContinuationMetadata,
    ControllerState,
    FallbackLevel,
    FormatDetectionResult,
    Fragment,
    OutputFormat,
)

logger = logging.getLogger(__name__)

_THOUSAND = Decimal(1000)


def _to_decimal(value: Union[int, float, str, Decimal]) -> Decimal:
    # str() keeps 0.1 as 0.1 rather than its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class CostRates:
    """Caller-supplied prices per 1000 tokens."""

    input_per_1k: Decimal = Decimal("0")
    output_per_1k: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_per_1k", _to_decimal(self.input_per_1k))
        object.__setattr__(self, "output_per_1k", _to_decimal(self.output_per_1k))
        if self.input_per_1k < 0 or self.output_per_1k < 0:
            raise ValueError("Cost rates must not be negative")

    @classmethod
    def per_token(cls, output_rate: Union[int, float, str, Decimal]) -> "CostRates":
        """Rates from a single per-output-token price."""
        return cls(output_per_1k=_to_decimal(output_rate) * _THOUSAND)

    def cost(self, input_tokens: int, output_tokens: int) -> Decimal:
        return (
            Decimal(input_tokens) / _THOUSAND * self.input_per_1k
            + Decimal(output_tokens) / _THOUSAND * self.output_per_1k
        )


class MetadataAccumulator:
    """Append-only record of one run, finalized into ContinuationMetadata.

    Owned by a single controller; holds no state across runs.
    """

    def __init__(
        self,
        *,
        max_attempts: int,
        rates: Optional[CostRates] = None,
        run_id: Optional[str] = None,
    ) -> None:
        self.run_id = run_id or str(ULID())
        self.max_attempts = max_attempts
        self.rates = rates or CostRates()
        self.started_at = datetime.now(timezone.utc)
        self.fragment_sizes: List[int] = []
        self.completion_reasons: List[CompletionReason] = []
        self.input_tokens: List[int] = []
        self.output_tokens: List[int] = []
        self.truncation_points: List[str] = []
        self.truncated_at_tokens: List[int] = []
        self.model: Optional[str] = None
        self.cancelled = False
        self.details: Dict[str, Any] = {}
        self._finalized: Optional[ContinuationMetadata] = None

    @property
    def attempt_count(self) -> int:
        return len(self.completion_reasons)

    def record_fragment(self, fragment: Fragment) -> None:
        if self._finalized is not None:
            raise RuntimeError("Metadata already finalized")
        self.fragment_sizes.append(fragment.size)
        self.completion_reasons.append(fragment.completion_reason)
        usage = fragment.usage
        self.input_tokens.append(usage.input_tokens if usage else 0)
        self.output_tokens.append(usage.output_tokens if usage else 0)
        if fragment.model and self.model is None:
            self.model = fragment.model
        if fragment.is_truncated:
            if fragment.response_id:
                self.truncation_points.append(fragment.response_id)
            self.truncated_at_tokens.append(usage.output_tokens if usage else 0)

    def mark_cancelled(self) -> None:
        self.cancelled = True

    def finalize(
        self,
        *,
        format_used: Optional[OutputFormat] = None,
        detection: Optional[FormatDetectionResult] = None,
        fallback_level: FallbackLevel = FallbackLevel.NONE,
        merge_success: bool = False,
        error_detail: Optional[str] = None,
        final_state: ControllerState = ControllerState.DONE,
    ) -> ContinuationMetadata:
        """Compute derived totals and freeze the record.

        Calling it again returns the same record.
        """
        if self._finalized is not None:
            return self._finalized

        total_input = sum(self.input_tokens)
        total_output = sum(self.output_tokens)
        last = self.completion_reasons[-1] if self.completion_reasons else None
        self._finalized = ContinuationMetadata(
            run_id=self.run_id,
            was_continued=self.attempt_count > 1,
            attempt_count=self.attempt_count,
            max_attempts=self.max_attempts,
            fragment_sizes=list(self.fragment_sizes),
            completion_reasons=list(self.completion_reasons),
            format_used=format_used,
            detection_confidence=detection.confidence if detection else None,
            fallback_level_used=fallback_level,
            total_input_tokens=total_input,
            total_output_tokens=total_output,
            estimated_cost=self.rates.cost(total_input, total_output),
            merge_success=merge_success,
            error_detail=error_detail,
            max_attempts_reached=self.attempt_count >= self.max_attempts and last is not None and last.is_truncation,
            truncation_points=list(self.truncation_points),
            truncated_at_tokens=list(self.truncated_at_tokens),
            cancelled=self.cancelled,
            final_state=final_state,
            model=self.model,
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
            details=dict(self.details),
        )
        return self._finalized
