"""Tests for TabularMerger row-aware merging."""

import pytest

from llm_continuation.core.continuation.mergers import TabularMerger
from llm_continuation.core.continuation.models import Fragment, OutputFormat


@pytest.fixture
def merger():
    return TabularMerger()


class TestMerge:
    """Boundary handling between delimited fragments."""

    def test_completes_row_split_across_fragments(self, merger):
        result = merger.merge(["id,name\n1,Alice\n2,Bo", "b\n3,Carol\n"])

        assert result.success is True
        assert result.format == OutputFormat.TABULAR
        assert result.content == "id,name\n1,Alice\n2,Bob\n3,Carol\n"
        assert result.details["row_count"] == 4

    def test_drops_repeated_header(self, merger):
        result = merger.merge(["id,name\n1,Alice\n", "id,name\n2,Bob\n"])

        assert result.content == "id,name\n1,Alice\n2,Bob\n"
        assert result.content.count("id,name") == 1
        assert result.details["duplicate_headers_removed"] == 1

    def test_leading_blank_line_does_not_hide_header(self, merger):
        result = merger.merge(["\nid,name\n1,Alice\n", "id,name\n2,Bob\n"])

        assert result.content == "\nid,name\n1,Alice\n2,Bob\n"
        assert result.content.count("id,name") == 1
        assert result.details["duplicate_headers_removed"] == 1
        assert result.details["column_mismatches"] == []

    def test_quoted_field_spanning_boundary(self, merger):
        result = merger.merge(['id,note\n1,"line one', '\nline two"\n2,x\n'])

        assert result.content == 'id,note\n1,"line one\nline two"\n2,x\n'
        assert result.details["row_count"] == 3
        assert result.details["column_mismatches"] == []

    def test_mismatched_rows_are_kept_and_reported(self, merger):
        result = merger.merge(["a,b\n1,2\n3\n"])

        assert result.success is True
        assert result.content == "a,b\n1,2\n3\n"
        assert result.details["column_mismatches"] == [2]

    def test_trailing_partial_row_is_kept(self, merger):
        result = merger.merge(["a,b\n1,2\n3,"])

        assert result.content == "a,b\n1,2\n3,"
        assert result.details["trailing_partial_row"] is True

    def test_crlf_line_endings_survive(self, merger):
        result = merger.merge(["id,name\r\n1,Alice\r\n2,Bo", "b\r\n"])

        assert result.content == "id,name\r\n1,Alice\r\n2,Bob\r\n"

    def test_repeated_header_with_crlf(self, merger):
        result = merger.merge(["id,name\r\n1,Alice\r\n", "id,name\r\n2,Bob\r\n"])

        assert result.content == "id,name\r\n1,Alice\r\n2,Bob\r\n"

    def test_blank_lines_at_boundary_are_dropped(self, merger):
        result = merger.merge(["a,b\n1,2\n", "\n\n3,4\n"])

        assert result.content == "a,b\n1,2\n3,4\n"

    def test_tab_delimiter_detected(self, merger):
        result = merger.merge(["a\tb\n1\t2\n"])

        assert result.details["delimiter"] == "\t"

    @pytest.mark.parametrize("text", ["a,b\n1,2\n", "a,b\n1,2", "only,one,line"])
    def test_single_fragment_identity(self, merger, text):
        assert merger.merge([Fragment(content=text)]).content == text

    def test_no_text_is_a_failure(self, merger):
        result = merger.merge([None, ""])

        assert result.success is False
        assert result.content is None
        assert result.details["chunk_count"] == 2


class TestHasIncompleteStructure:
    @pytest.mark.parametrize(
        "content,expected",
        [
            ("a,b\n1,2\n", False),
            ("a,b\n1,", True),
            ("a,b\n1,2", True),
            ('a,b\n1,"open quote', True),
            ("a,b\n1,\n", True),
            ("", False),
        ],
    )
    def test_detects_partial_rows(self, merger, content, expected):
        assert merger.has_incomplete_structure(content) is expected
