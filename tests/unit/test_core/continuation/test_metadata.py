"""Tests for MetadataAccumulator and CostRates."""

from decimal import Decimal

import pytest

from llm_continuation.core.continuation import CostRates, MetadataAccumulator
from llm_continuation.core.continuation.models import (
    CompletionReason,
    ControllerState,
    FallbackLevel,
    FormatDetectionResult,
    Fragment,
    OutputFormat,
)


class TestCostRates:
    def test_cost_uses_exact_decimals(self):
        rates = CostRates(input_per_1k=0.1, output_per_1k=0.3)

        assert rates.cost(1000, 2000) == Decimal("0.7")

    def test_per_token_rate(self):
        rates = CostRates.per_token("0.00002")

        assert rates.output_per_1k == Decimal("0.02")
        assert rates.cost(0, 500) == Decimal("0.01")

    def test_negative_rates_rejected(self):
        with pytest.raises(ValueError):
            CostRates(input_per_1k=-1)


class TestMetadataAccumulator:
    """Recording fragments and finalizing the run record."""

    def test_run_id_is_a_ulid(self):
        accumulator = MetadataAccumulator(max_attempts=3)
        assert len(accumulator.run_id) == 26

    def test_finalize_totals(self, truncated, finished):
        accumulator = MetadataAccumulator(
            max_attempts=3,
            rates=CostRates(input_per_1k="1", output_per_1k="2"),
        )
        accumulator.record_fragment(truncated("abc", response_id="resp_1", output_tokens=100))
        accumulator.record_fragment(finished("de", output_tokens=40))

        metadata = accumulator.finalize(
            format_used=OutputFormat.MARKUP,
            detection=FormatDetectionResult(OutputFormat.MARKUP, 0.6),
            merge_success=True,
        )

        assert metadata.was_continued is True
        assert metadata.attempt_count == 2
        assert metadata.fragment_sizes == [3, 2]
        assert metadata.completion_reasons == [CompletionReason.LENGTH, CompletionReason.STOP]
        assert metadata.total_input_tokens == 100
        assert metadata.total_output_tokens == 140
        assert metadata.estimated_cost == Decimal("0.38")
        assert metadata.detection_confidence == 0.6
        assert metadata.truncation_points == ["resp_1"]
        assert metadata.truncated_at_tokens == [100]
        assert metadata.model == "test-model"
        assert metadata.max_attempts_reached is False
        assert metadata.final_state == ControllerState.DONE

    def test_max_attempts_reached_needs_trailing_truncation(self, truncated, finished):
        exhausted = MetadataAccumulator(max_attempts=2)
        exhausted.record_fragment(truncated("a"))
        exhausted.record_fragment(truncated("b"))

        completed = MetadataAccumulator(max_attempts=2)
        completed.record_fragment(truncated("a"))
        completed.record_fragment(finished("b"))

        assert exhausted.finalize().max_attempts_reached is True
        assert completed.finalize().max_attempts_reached is False

    def test_fragments_without_usage_count_zero(self):
        accumulator = MetadataAccumulator(max_attempts=1)
        accumulator.record_fragment(Fragment(content="x"))

        metadata = accumulator.finalize()

        assert metadata.total_output_tokens == 0
        assert metadata.estimated_cost == Decimal("0")

    def test_finalize_is_idempotent(self, finished):
        accumulator = MetadataAccumulator(max_attempts=1)
        accumulator.record_fragment(finished("x"))

        first = accumulator.finalize(fallback_level=FallbackLevel.SIMPLIFIED)
        second = accumulator.finalize(fallback_level=FallbackLevel.NONE)

        assert second is first
        with pytest.raises(RuntimeError):
            accumulator.record_fragment(finished("y"))

    def test_cancellation_and_details(self):
        accumulator = MetadataAccumulator(max_attempts=1)
        accumulator.mark_cancelled()
        accumulator.details["transport_errors"] = ["boom"]

        metadata = accumulator.finalize(final_state=ControllerState.FAILED)

        assert metadata.cancelled is True
        assert metadata.attempt_count == 0
        assert metadata.details == {"transport_errors": ["boom"]}
