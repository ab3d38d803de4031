"""Merger for lightly-structured markup (Markdown).

Boundary rules, applied to one pair of neighbouring fragments at a time:

- A tail that ends mid table row is concatenated directly so the row
  completes.
- A continuation that repeats the current table's header + separator pair
  has that pair dropped.
- Inside an open code fence, a continuation that re-opens the same fence
  has the duplicate opening line dropped.
- A continuation starting with a heading already present in the document
  has that heading dropped.
- Otherwise fragments are joined with a single newline, unless either side
  already ends or starts with one.

Ordered-list numbering is left as generated; the continuation hint asks the
model for the right next number.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from llm_continuation.core.continuation._text import (
    FENCE_PATTERN,
    HEADING_PATTERN,
    TABLE_SEPARATOR_PATTERN,
    FenceState,
    find_last_table_header,
    last_non_blank,
    scan_fences,
    table_cells,
)
from llm_continuation.core.continuation.mergers.base import (
    FragmentLike,
    MergerSupport,
    collect_texts,
)
from llm_continuation.core.continuation.models import MergeResult, OutputFormat

logger = logging.getLogger(__name__)


@dataclass
class _JoinStats:
    repaired_fences: int = 0
    deduplicated_table_headers: int = 0
    deduplicated_headings: int = 0
    direct_joins: int = 0


class MarkupMerger(MergerSupport):
    """Structure-preserving merger for Markdown documents."""

    format = OutputFormat.MARKUP

    def has_incomplete_structure(self, content: str) -> bool:
        return self.has_incomplete_code_block(content) or self.has_incomplete_table_row(content)

    def has_incomplete_code_block(self, content: str) -> bool:
        """True when a fenced code block (``` or ~~~) is still open."""
        if not content:
            return False
        return scan_fences(content).is_open

    def has_incomplete_table_row(self, content: str) -> bool:
        """True when the last non-blank line is an unfinished table row.

        A row is unfinished when it lacks the closing pipe, or when its cell
        count differs from the header of the table it belongs to.
        """
        if not content:
            return False
        lines = content.split("\n")
        last = last_non_blank(lines)
        if last is None or not last.lstrip().startswith("|"):
            return False
        if not last.rstrip().endswith("|"):
            return True
        if TABLE_SEPARATOR_PATTERN.match(last):
            return False
        found = find_last_table_header(lines)
        if found is None:
            return False
        _, header, _ = found
        if header.strip() == last.strip():
            return False
        return len(table_cells(last)) != len(table_cells(header))

    def merge(self, fragments: Sequence[FragmentLike]) -> MergeResult:
        texts = collect_texts(fragments)
        chunk_count = len(fragments)
        if not texts:
            return self._empty_result(chunk_count)

        stats = _JoinStats()
        merged = texts[0]
        for text in texts[1:]:
            merged = self._join(merged, text, stats)

        return MergeResult(
            success=True,
            content=merged,
            format=self.format,
            details=self.build_metadata(
                success=True,
                chunk_count=chunk_count,
                repaired_fences=stats.repaired_fences,
                deduplicated_headers=stats.deduplicated_table_headers + stats.deduplicated_headings,
                direct_joins=stats.direct_joins,
                open_code_block=self.has_incomplete_code_block(merged),
            ),
        )

    # ------------------------------------------------------------------
    # Boundary handling
    # ------------------------------------------------------------------

    def _join(self, merged: str, text: str, stats: _JoinStats) -> str:
        fence = scan_fences(merged)
        mid_row = not fence.is_open and self.has_incomplete_table_row(merged)

        if fence.is_open:
            text, stripped = _strip_reopened_fence(text, fence)
            if stripped:
                stats.repaired_fences += 1
                self._logger.debug("Dropped duplicate opening fence %s%s", fence.marker, fence.language)
        elif not mid_row:
            text, dropped = _strip_repeated_table_header(merged, text)
            if dropped:
                stats.deduplicated_table_headers += 1
                self._logger.debug("Dropped repeated table header at fragment boundary")
            text, dropped = _strip_repeated_heading(merged, text)
            if dropped:
                stats.deduplicated_headings += 1

        if not text:
            return merged
        if mid_row or _has_seam_newline(merged, text):
            stats.direct_joins += 1
            return merged + text
        return merged + "\n" + text


def _has_seam_newline(left: str, right: str) -> bool:
    return left.endswith("\n") or right[:1] in ("\n", "\r")


def _first_content_line(lines: List[str]) -> Optional[int]:
    for index, line in enumerate(lines):
        if line.strip():
            return index
    return None


def _strip_reopened_fence(text: str, fence: FenceState) -> Tuple[str, bool]:
    """Drop a leading fence line that re-opens the block already open.

    A bare fence is only treated as a re-open when the rest of the fragment
    closes the block itself; otherwise it is the legitimate closing fence.
    """
    lines = text.split("\n")
    index = _first_content_line(lines)
    if index is None:
        return text, False
    match = FENCE_PATTERN.match(lines[index])
    if not match or fence.marker is None:
        return text, False
    marker, info = match.group(1), match.group(2)
    if marker[0] != fence.marker[0] or info != fence.language:
        return text, False
    rest = lines[index + 1 :]
    if not info and scan_fences("\n".join(rest)).fence_lines % 2 == 0:
        return text, False
    return "\n".join(rest), True


def _strip_repeated_table_header(merged: str, text: str) -> Tuple[str, bool]:
    """Drop a header + separator pair that repeats the table at the tail."""
    merged_lines = merged.split("\n")
    tail = last_non_blank(merged_lines)
    if tail is None or not tail.lstrip().startswith("|"):
        return text, False
    found = find_last_table_header(merged_lines)
    if found is None:
        return text, False
    _, header, _ = found

    lines = text.split("\n")
    index = _first_content_line(lines)
    if index is None or index + 1 >= len(lines):
        return text, False
    if table_cells(lines[index]) != table_cells(header):
        return text, False
    if not TABLE_SEPARATOR_PATTERN.match(lines[index + 1]):
        return text, False
    return "\n".join(lines[:index] + lines[index + 2 :]), True


def _strip_repeated_heading(merged: str, text: str) -> Tuple[str, bool]:
    """Drop a leading heading that already appears in the document."""
    lines = text.split("\n")
    index = _first_content_line(lines)
    if index is None or not HEADING_PATTERN.match(lines[index]):
        return text, False
    if lines[index].strip() not in _headings_outside_fences(merged):
        return text, False
    end = index + 1
    while end < len(lines) and not lines[end].strip():
        end += 1
    return "\n".join(lines[:index] + lines[end:]), True


def _headings_outside_fences(text: str) -> Set[str]:
    headings: Set[str] = set()
    in_fence = False
    for line in text.split("\n"):
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
            continue
        if not in_fence and HEADING_PATTERN.match(line):
            headings.add(line.strip())
    return headings
