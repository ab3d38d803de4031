"""Merger for delimiter-separated tabular text (CSV, semicolon, TSV).

A fragment that stops mid-row leaves a partial record behind. That record
is held back and completed by the leading text of the next fragment, with
the inside-quotes flag carried across the boundary so multi-line quoted
fields survive. A continuation that restarts with the header row has the
duplicate header dropped. Rows whose column count differs from the header
are kept and reported, never dropped.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from llm_continuation.core.continuation._text import (
    field_count,
    sniff_delimiter,
    split_records,
)
from llm_continuation.core.continuation.mergers.base import (
    FragmentLike,
    MergerSupport,
    collect_texts,
)
from llm_continuation.core.continuation.models import MergeResult, OutputFormat

logger = logging.getLogger(__name__)


class TabularMerger(MergerSupport):
    """Row-aware merger for delimiter-separated text."""

    format = OutputFormat.TABULAR

    def __init__(
        self,
        *,
        delimiter: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger=logger)
        self._delimiter = delimiter

    def has_incomplete_structure(self, content: str) -> bool:
        """Detect a trailing partial row.

        Incomplete when the tail is inside a quoted field, the final line
        lacks a record terminator, or the final row ends with a delimiter.
        """
        if not content or not content.strip():
            return False
        records, remainder, in_quotes = split_records(content)
        if in_quotes:
            return True
        if remainder:
            return True
        delimiter = self._delimiter or sniff_delimiter(records[:10])
        last = next((r for r in reversed(records) if r.strip()), "")
        return last.rstrip("\r").endswith(delimiter)

    def merge(self, fragments: Sequence[FragmentLike]) -> MergeResult:
        texts = collect_texts(fragments)
        chunk_count = len(fragments)
        if not any(text.strip() for text in texts):
            return self._empty_result(chunk_count)

        rows: List[str] = []
        pending = ""
        header: Optional[str] = None
        headers_dropped = 0
        merged_count = 0

        for text in texts:
            # A partial row (quoted or not) is always held in ``pending``
            starts_fresh_row = not pending
            if starts_fresh_row and not text.strip():
                continue
            records, pending, _ = split_records(pending + text)

            if merged_count > 0 and starts_fresh_row:
                # Blank lines at a boundary would read as empty records
                while records and not records[0].strip():
                    records.pop(0)
                if header is not None and records and _same_row(records[0], header):
                    records.pop(0)
                    headers_dropped += 1
                    self._logger.debug("Dropped repeated header row from fragment %d", merged_count + 1)

            merged_count += 1
            rows.extend(records)
            if header is None:
                header = next((row for row in rows if row.strip()), None)

        delimiter = self._delimiter or sniff_delimiter(rows[:10] or [pending])
        mismatches = _column_mismatches(rows, pending, delimiter)
        if mismatches:
            self._logger.debug(
                "Kept %d row(s) whose column count differs from the header",
                len(mismatches),
            )

        content = "\n".join(rows)
        if rows:
            content += "\n"
        content += pending

        row_count = len(rows) + (1 if pending.strip() else 0)
        return MergeResult(
            success=True,
            content=content,
            format=self.format,
            details=self.build_metadata(
                success=True,
                chunk_count=chunk_count,
                row_count=row_count,
                delimiter=delimiter,
                duplicate_headers_removed=headers_dropped,
                column_mismatches=mismatches,
                trailing_partial_row=bool(pending),
            ),
        )


def _same_row(left: str, right: str) -> bool:
    return left.rstrip("\r").strip() == right.rstrip("\r").strip()


def _column_mismatches(rows: List[str], pending: str, delimiter: str) -> List[int]:
    """Indexes (0-based, header included) of rows whose field count differs."""
    all_rows = rows + ([pending] if pending.strip() else [])
    header = next((row for row in all_rows if row.strip()), None)
    if header is None:
        return []
    expected = field_count(header, delimiter)
    return [
        index
        for index, row in enumerate(all_rows)
        if row.strip() and field_count(row, delimiter) != expected
    ]
