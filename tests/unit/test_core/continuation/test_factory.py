"""Tests for MergerFactory selection."""

import pytest

from llm_continuation.core.continuation import MergerFactory
from llm_continuation.core.continuation.mergers import (
    MarkupMerger,
    StructuredDataMerger,
    TabularMerger,
)
from llm_continuation.core.continuation.models import OutputFormat


class TestCreate:
    def test_builtin_formats(self):
        factory = MergerFactory()

        assert isinstance(factory.create(OutputFormat.TABULAR), TabularMerger)
        assert isinstance(factory.create("markdown"), MarkupMerger)
        assert isinstance(factory.create("json"), StructuredDataMerger)
        assert set(factory.supported_formats) == {
            OutputFormat.TABULAR,
            OutputFormat.MARKUP,
            OutputFormat.STRUCTURED_DATA,
        }

    def test_mergers_are_shared(self):
        factory = MergerFactory()
        assert factory.create(OutputFormat.MARKUP) is factory.create(OutputFormat.MARKUP)

    def test_auto_is_rejected(self):
        with pytest.raises(ValueError, match="select"):
            MergerFactory().create(OutputFormat.AUTO)

    def test_unregistered_format(self):
        factory = MergerFactory({OutputFormat.MARKUP: MarkupMerger()})
        with pytest.raises(ValueError, match="No merger registered"):
            factory.create(OutputFormat.TABULAR)


class TestRegister:
    def test_replaces_existing_merger(self):
        factory = MergerFactory()
        custom = TabularMerger(delimiter=";")

        factory.register(OutputFormat.TABULAR, custom)

        assert factory.create(OutputFormat.TABULAR) is custom

    def test_rejects_auto(self):
        with pytest.raises(ValueError):
            MergerFactory().register(OutputFormat.AUTO, MarkupMerger())

    def test_rejects_objects_without_contract(self):
        with pytest.raises(TypeError):
            MergerFactory().register(OutputFormat.MARKUP, object())


class TestSelect:
    def test_explicit_format_skips_detection(self):
        merger, detection = MergerFactory().select(OutputFormat.TABULAR, ['{"a": 1}'])

        assert isinstance(merger, TabularMerger)
        assert detection is None

    def test_auto_detects(self):
        merger, detection = MergerFactory().select(OutputFormat.AUTO, ['{"a": [1, 2'])

        assert isinstance(merger, StructuredDataMerger)
        assert detection.format == OutputFormat.STRUCTURED_DATA

    def test_low_confidence_falls_back_to_markup(self):
        merger, detection = MergerFactory().select(OutputFormat.AUTO, ["id,label,score"])

        assert detection.format == OutputFormat.TABULAR
        assert isinstance(merger, MarkupMerger)

    def test_threshold_is_tunable(self):
        factory = MergerFactory(ambiguity_threshold=0.1)
        merger, _ = factory.select(OutputFormat.AUTO, ["id,label,score"])

        assert isinstance(merger, TabularMerger)
