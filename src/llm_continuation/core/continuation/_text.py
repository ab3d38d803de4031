"""Quote-aware text scanning helpers shared by the detector and mergers.

These are pure functions over strings; none of them hold state between calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

QUOTE = '"'
DELIMITER_CANDIDATES: Tuple[str, ...] = (",", ";", "\t")

FENCE_PATTERN = re.compile(r"^\s{0,3}(`{3,}|~{3,})\s*([^`\s]*)")
HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+\S")
TABLE_SEPARATOR_PATTERN = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")
ORDERED_ITEM_PATTERN = re.compile(r"^\s*(\d+)[.)]\s+")
BULLET_ITEM_PATTERN = re.compile(r"^\s*[-*+]\s+\S")


# =============================================================================
# Delimited records
# =============================================================================


def split_records(text: str, *, in_quotes: bool = False) -> Tuple[List[str], str, bool]:
    """Split delimited text into terminated records and a trailing remainder.

    A newline only terminates a record when it is outside a quoted field.
    Records keep any ``\\r`` before the terminator so line endings survive
    a round trip.

    Args:
        text: Text to split
        in_quotes: Whether scanning starts inside a quoted field

    Returns:
        (complete_records, remainder, in_quotes_at_end)
    """
    records: List[str] = []
    start = 0
    for index, char in enumerate(text):
        if char == QUOTE:
            in_quotes = not in_quotes
        elif char == "\n" and not in_quotes:
            records.append(text[start:index])
            start = index + 1
    return records, text[start:], in_quotes


def ends_inside_quotes(text: str) -> bool:
    """True when ``text`` has an odd number of quote characters."""
    return text.count(QUOTE) % 2 == 1


def count_delimiters(line: str, delimiter: str) -> int:
    """Count delimiter occurrences outside quoted fields."""
    count = 0
    in_quotes = False
    for char in line:
        if char == QUOTE:
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            count += 1
    return count


def field_count(record: str, delimiter: str) -> int:
    """Number of fields in a record (delimiters outside quotes + 1)."""
    return count_delimiters(record.rstrip("\r"), delimiter) + 1


def sniff_delimiter(lines: Sequence[str], default: str = ",") -> str:
    """Pick the delimiter whose per-line count is non-zero and most consistent.

    Each candidate is scored by how many lines share the header line's
    delimiter count; ties go to the candidate order (comma first).
    """
    best: Optional[str] = None
    best_score = 0
    sample = [line for line in lines if line.strip()]
    if not sample:
        return default
    for candidate in DELIMITER_CANDIDATES:
        header_count = count_delimiters(sample[0], candidate)
        if header_count == 0:
            continue
        score = sum(1 for line in sample if count_delimiters(line, candidate) == header_count)
        if score > best_score:
            best, best_score = candidate, score
    return best or default


# =============================================================================
# Markup
# =============================================================================


@dataclass
class FenceState:
    """Open fenced code block found while scanning markup, if any."""

    marker: Optional[str] = None
    language: str = ""
    fence_lines: int = 0

    @property
    def is_open(self) -> bool:
        return self.marker is not None


def scan_fences(text: str) -> FenceState:
    """Track fenced code blocks line by line.

    A fence closes only on a line using the same character with at least
    the opening length, per CommonMark.
    """
    state = FenceState()
    for line in text.split("\n"):
        match = FENCE_PATTERN.match(line)
        if not match:
            continue
        marker, info = match.group(1), match.group(2)
        state.fence_lines += 1
        if state.marker is None:
            state.marker, state.language = marker, info
        elif marker[0] == state.marker[0] and len(marker) >= len(state.marker) and not info:
            state.marker, state.language = None, ""
    return state


def table_cells(line: str) -> List[str]:
    """Split a pipe table row into its cells (outer pipes dropped)."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|") and not stripped.endswith("\\|"):
        stripped = stripped[:-1]
    cells = re.split(r"(?<!\\)\|", stripped)
    return [cell.strip() for cell in cells]


def find_last_table_header(lines: Sequence[str]) -> Optional[Tuple[int, str, str]]:
    """Locate the most recent table header + separator pair.

    Returns:
        (header_index, header_line, separator_line) or None
    """
    for index in range(len(lines) - 1, 0, -1):
        if TABLE_SEPARATOR_PATTERN.match(lines[index]) and "|" in lines[index - 1]:
            return index - 1, lines[index - 1], lines[index]
    return None


def last_non_blank(lines: Sequence[str]) -> Optional[str]:
    for line in reversed(lines):
        if line.strip():
            return line
    return None


@dataclass
class TailLines:
    """Last ``count`` lines of a text, for hints and diagnostics."""

    lines: List[str] = field(default_factory=list)

    @classmethod
    def of(cls, text: str, count: int) -> "TailLines":
        if count <= 0 or not text:
            return cls()
        return cls(lines=text.rstrip("\n").split("\n")[-count:])

    def render(self) -> str:
        return "\n".join(self.lines)
