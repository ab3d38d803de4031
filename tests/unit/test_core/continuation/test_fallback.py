"""Tests for FallbackChain degradation levels."""

import pytest

from llm_continuation.core.continuation import (
    FallbackChain,
    MergerFactory,
    enforce_failure_policy,
)
from llm_continuation.core.continuation.mergers import MarkupMerger
from llm_continuation.core.continuation.models import (
    FailurePolicy,
    FallbackLevel,
    MergeResult,
    OutputFormat,
)
from llm_continuation.core.errors import CompleteDegradationError, MergeError


class ExplodingMerger(MarkupMerger):
    def merge(self, fragments):
        raise RuntimeError("boom")


@pytest.fixture
def chain(metrics):
    return FallbackChain(metrics=metrics)


@pytest.fixture
def recorded(metrics):
    seen = []
    metrics.subscribe(seen.append)
    return seen


class TestLevels:
    """Each recovery level of the chain."""

    def test_successful_merge_is_level_none(self, chain):
        outcome = chain.run(["id,name\n1,Alice\n2,Bo", "b\n"], OutputFormat.TABULAR)

        assert outcome.level == FallbackLevel.NONE
        assert outcome.merge_success is True
        assert outcome.result.content == "id,name\n1,Alice\n2,Bob\n"
        assert outcome.format_used == OutputFormat.TABULAR
        assert outcome.detection is None

    def test_failed_merge_degrades_to_simplified(self, chain):
        outcome = chain.run(['{"a": "unterminated', "more"], OutputFormat.STRUCTURED_DATA)

        assert outcome.level == FallbackLevel.SIMPLIFIED
        assert outcome.merge_success is False
        assert outcome.result.content == '{"a": "unterminated\nmore'
        assert outcome.error_detail == '{"a": "unterminatedmore'
        assert outcome.format_used == OutputFormat.STRUCTURED_DATA

    def test_simplified_skips_missing_text(self, chain):
        outcome = chain.run(['{"a": "x', None, "y"], OutputFormat.STRUCTURED_DATA)

        assert outcome.result.content == '{"a": "x\ny'

    def test_no_text_degrades_to_best_effort(self, chain):
        outcome = chain.run(["", ""])

        assert outcome.level == FallbackLevel.BEST_EFFORT
        assert outcome.result.content == ""

    def test_merger_exception_is_absorbed(self, metrics):
        factory = MergerFactory({OutputFormat.MARKUP: ExplodingMerger()})
        chain = FallbackChain(factory, metrics=metrics)

        outcome = chain.run(["a", "b"], OutputFormat.MARKUP)

        assert outcome.level == FallbackLevel.SIMPLIFIED
        assert outcome.result.content == "a\nb"
        assert "boom" in outcome.result.error

    def test_auto_records_detection(self, chain):
        outcome = chain.run(['{"a": 1}'])

        assert outcome.detection.format == OutputFormat.STRUCTURED_DATA
        assert outcome.result.content == {"a": 1}


class TestCompleteDegradation:
    def test_empty_sequence(self, chain):
        with pytest.raises(CompleteDegradationError):
            chain.run([])

    def test_only_missing_fragments(self, chain):
        with pytest.raises(CompleteDegradationError):
            chain.run([None])

    def test_none_is_a_programmer_error(self, chain):
        with pytest.raises(TypeError):
            chain.run(None)


class TestMetrics:
    def test_merge_counter_labels(self, chain, recorded):
        chain.run(['{"a": "x'], OutputFormat.STRUCTURED_DATA)

        merges = [m for m in recorded if m.name == "continuation.merge"]
        assert len(merges) == 1
        assert merges[0].labels == {
            "format": "structured_data",
            "level": "simplified",
            "status": "degraded",
        }


class TestEnforceFailurePolicy:
    def test_return_partial_passes_degraded_outcome(self, chain):
        outcome = chain.run(['{"a": "x'], OutputFormat.STRUCTURED_DATA)

        assert enforce_failure_policy(outcome, FailurePolicy.RETURN_PARTIAL) is outcome

    def test_raise_error_escalates(self, chain):
        outcome = chain.run(['{"a": "x'], OutputFormat.STRUCTURED_DATA)

        with pytest.raises(MergeError) as exc_info:
            enforce_failure_policy(outcome, FailurePolicy.RAISE_ERROR)
        assert exc_info.value.result is outcome.result

    def test_raise_error_passes_success(self, chain):
        outcome = chain.run(["plain"], OutputFormat.MARKUP)

        assert enforce_failure_policy(outcome, "raise_error") is outcome

    def test_degraded_result_keeps_content(self):
        result = MergeResult(success=False, content="partial")
        assert result.text() == "partial"
