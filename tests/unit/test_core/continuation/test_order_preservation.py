"""Merged output keeps every fragment's text in receipt order.

Each merger is cut at every offset of a reference document; the merged
result must give back the document, allowing only for the separators the
merger inserts and the documented header deduplication.
"""

import json

import pytest

from llm_continuation.core.continuation.mergers import (
    MarkupMerger,
    StructuredDataMerger,
    TabularMerger,
)

TABULAR_DOC = "id,name,score\n1,Alice,90\n2,Bob,85\n3,\"Carol, Jr\",77\n"

MARKUP_DOC = (
    "# Title\n"
    "\n"
    "Intro paragraph.\n"
    "\n"
    "| a | b |\n"
    "|---|---|\n"
    "| 1 | 2 |\n"
    "\n"
    "```py\n"
    "x = 1\n"
    "```\n"
)

STRUCTURED_DOC = (
    '{"items": [{"id": 1, "ok": true, "tags": ["a", "b"]}, '
    '{"id": 22, "ok": null}], "note": "x, y"}'
)


def two_way_splits(doc):
    return list(range(1, len(doc)))


def three_way_splits(doc, step=5, width=4):
    return [(i, i + width) for i in range(1, len(doc) - width, step)]


class TestTabularOrder:
    @pytest.mark.parametrize("offset", two_way_splits(TABULAR_DOC))
    def test_two_fragments(self, offset):
        result = TabularMerger().merge([TABULAR_DOC[:offset], TABULAR_DOC[offset:]])

        assert result.content == TABULAR_DOC

    @pytest.mark.parametrize("first,second", three_way_splits(TABULAR_DOC))
    def test_three_fragments(self, first, second):
        parts = [TABULAR_DOC[:first], TABULAR_DOC[first:second], TABULAR_DOC[second:]]

        assert TabularMerger().merge(parts).content == TABULAR_DOC

    @pytest.mark.parametrize("row_end", [i + 1 for i, c in enumerate(TABULAR_DOC[:-1]) if c == "\n"])
    def test_restated_header_is_the_only_change(self, row_end):
        header = TABULAR_DOC.split("\n", 1)[0] + "\n"

        result = TabularMerger().merge([TABULAR_DOC[:row_end], header + TABULAR_DOC[row_end:]])

        assert result.content == TABULAR_DOC
        assert result.details["duplicate_headers_removed"] == 1


class TestMarkupOrder:
    @pytest.mark.parametrize("offset", two_way_splits(MARKUP_DOC))
    def test_two_fragments(self, offset):
        head, tail = MARKUP_DOC[:offset], MARKUP_DOC[offset:]

        result = MarkupMerger().merge([head, tail])

        assert result.content in (MARKUP_DOC, head + "\n" + tail)

    @pytest.mark.parametrize("first,second", three_way_splits(MARKUP_DOC))
    def test_three_fragments(self, first, second):
        parts = [MARKUP_DOC[:first], MARKUP_DOC[first:second], MARKUP_DOC[second:]]

        merged = MarkupMerger().merge(parts).content

        assert merged.replace("\n", "") == MARKUP_DOC.replace("\n", "")
        assert merged.count("\n") - MARKUP_DOC.count("\n") in (0, 1, 2)


class TestStructuredDataOrder:
    @pytest.mark.parametrize("offset", two_way_splits(STRUCTURED_DOC))
    def test_two_fragments(self, offset):
        result = StructuredDataMerger().merge([STRUCTURED_DOC[:offset], STRUCTURED_DOC[offset:]])

        assert result.success is True
        assert result.content == json.loads(STRUCTURED_DOC)
        assert result.details["repair_applied"] is False

    @pytest.mark.parametrize("first,second", three_way_splits(STRUCTURED_DOC))
    def test_three_fragments(self, first, second):
        parts = [STRUCTURED_DOC[:first], STRUCTURED_DOC[first:second], STRUCTURED_DOC[second:]]

        assert StructuredDataMerger().merge(parts).content == json.loads(STRUCTURED_DOC)
