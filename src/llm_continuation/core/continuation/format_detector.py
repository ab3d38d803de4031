"""Format detection for continuation output.

Classifies the first fragment of a response as structured data, tabular
text or markup, with a heuristic confidence.

Detection Strategy (ordered, first confident match wins):
    1. Strict parse: the text (or its trimmed form) parses as a JSON
       object or array -> STRUCTURED_DATA at ``STRICT_PARSE_CONFIDENCE``.
    2. Truncated structure: the text opens with ``{`` / ``[`` and ends
       with unclosed brackets -> STRUCTURED_DATA at
       ``TRUNCATED_STRUCTURE_CONFIDENCE``. A truncated first fragment
       never parses, so step 1 alone would misroute it.
    3. Delimiter consistency: a candidate delimiter appears the same
       number of times on most of the first lines -> TABULAR, confidence
       proportional to the share of matching lines. Skipped when the text
       carries Markdown signals (pipe tables included).
    4. Default -> MARKUP at a baseline raised by each Markdown signal.

Thresholds are tunable module constants, not contracts.
"""

from __future__ import annotations

import json
import logging
import re
from typing import List, Optional, Sequence

from llm_continuation.config.decorators import log_call
from llm_continuation.core.continuation._text import (
    BULLET_ITEM_PATTERN,
    DELIMITER_CANDIDATES,
    FENCE_PATTERN,
    HEADING_PATTERN,
    ORDERED_ITEM_PATTERN,
    count_delimiters,
)
from llm_continuation.core.continuation.mergers._json_repair import scan_json
from llm_continuation.core.continuation.mergers.base import FragmentLike, extract_text
from llm_continuation.core.continuation.models import FormatDetectionResult, OutputFormat

logger = logging.getLogger(__name__)

# =============================================================================
# Tunable thresholds
# =============================================================================

STRICT_PARSE_CONFIDENCE = 0.97
TRUNCATED_STRUCTURE_CONFIDENCE = 0.75

# Tabular confidence = base + span * share of lines with the header's delimiter count
TABULAR_BASE_CONFIDENCE = 0.5
TABULAR_CONFIDENCE_SPAN = 0.45
TABULAR_MIN_MATCH_RATIO = 0.6
SINGLE_LINE_TABULAR_CONFIDENCE = 0.25
# Header cells longer than this read as prose, not column names
MAX_HEADER_FIELD_LENGTH = 40
TABULAR_SAMPLE_LINES = 20

MARKUP_BASELINE_CONFIDENCE = 0.5
MARKUP_SIGNAL_BONUS = 0.1
MARKUP_MAX_CONFIDENCE = 0.9

# Below this, callers treat the detection as ambiguous
AMBIGUITY_THRESHOLD = 0.3

_EMPHASIS_PATTERN = re.compile(r"(\*\*|__)[^*_\n]+\1")
_LINK_PATTERN = re.compile(r"\[[^\]\n]+\]\([^)\s]+\)")
_LEADING_FENCE_PATTERN = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n")


class FormatDetector:
    """Stateless, reentrant format classifier."""

    @log_call()
    def detect(self, fragments: Sequence[FragmentLike]) -> FormatDetectionResult:
        """Classify a response from its first fragment carrying text.

        Args:
            fragments: Fragments of one response, in order

        Returns:
            FormatDetectionResult (MARKUP at 0.0 when no text exists)
        """
        for fragment in fragments:
            text = extract_text(fragment)
            if text and text.strip():
                return self.detect_text(text)
        return FormatDetectionResult(OutputFormat.MARKUP, 0.0, reason="empty")

    def detect_text(self, text: str) -> FormatDetectionResult:
        if not text or not text.strip():
            return FormatDetectionResult(OutputFormat.MARKUP, 0.0, reason="empty")

        if _parses_as_container(text):
            return FormatDetectionResult(OutputFormat.STRUCTURED_DATA, STRICT_PARSE_CONFIDENCE, reason="strict_parse")

        if _looks_like_truncated_structure(text):
            return FormatDetectionResult(
                OutputFormat.STRUCTURED_DATA,
                TRUNCATED_STRUCTURE_CONFIDENCE,
                reason="truncated_structure",
            )

        signals = markdown_signals(text)
        if signals == 0:
            tabular = _tabular_confidence(text)
            if tabular is not None:
                return FormatDetectionResult(OutputFormat.TABULAR, tabular, reason="delimiter_consistency")

        confidence = min(
            MARKUP_MAX_CONFIDENCE,
            MARKUP_BASELINE_CONFIDENCE + MARKUP_SIGNAL_BONUS * signals,
        )
        return FormatDetectionResult(OutputFormat.MARKUP, confidence, reason="markup_default")


def markdown_signals(text: str) -> int:
    """Count distinct kinds of Markdown structure present in ``text``."""
    lines = text.split("\n")
    checks = (
        any(HEADING_PATTERN.match(line) for line in lines),
        any(FENCE_PATTERN.match(line) for line in lines),
        any(line.lstrip().startswith("|") for line in lines),
        any(BULLET_ITEM_PATTERN.match(line) or ORDERED_ITEM_PATTERN.match(line) for line in lines),
        bool(_EMPHASIS_PATTERN.search(text)),
        bool(_LINK_PATTERN.search(text)),
    )
    return sum(1 for found in checks if found)


def _parses_as_container(text: str) -> bool:
    for candidate in (text, text.strip()):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return isinstance(value, (dict, list))
    return False


def _looks_like_truncated_structure(text: str) -> bool:
    body = _LEADING_FENCE_PATTERN.sub("", text, count=1).lstrip()
    if not body or body[0] not in "{[":
        return False
    scan = scan_json(body)
    if scan.mismatched:
        return False
    if body[0] == "[" and '"' not in body and not any(ch.isdigit() for ch in body):
        # "[see below]" style prose
        return False
    return scan.in_string or scan.depth > 0


def _tabular_confidence(text: str) -> Optional[float]:
    lines = _sample_lines(text)
    if not lines:
        return None
    if len(lines) == 1:
        delimiter = _best_single_line_delimiter(lines[0])
        return SINGLE_LINE_TABULAR_CONFIDENCE if delimiter else None

    best_ratio = 0.0
    for delimiter in DELIMITER_CANDIDATES:
        expected = count_delimiters(lines[0], delimiter)
        if expected == 0 or not _header_is_plausible(lines[0], delimiter):
            continue
        matching = sum(1 for line in lines if count_delimiters(line, delimiter) == expected)
        best_ratio = max(best_ratio, matching / len(lines))

    if best_ratio < TABULAR_MIN_MATCH_RATIO:
        return None
    return round(TABULAR_BASE_CONFIDENCE + TABULAR_CONFIDENCE_SPAN * best_ratio, 4)


def _sample_lines(text: str) -> List[str]:
    lines = [line.rstrip("\r") for line in text.split("\n")]
    # An unterminated last line may be cut mid-row
    if len(lines) > 2 and not text.endswith("\n"):
        lines = lines[:-1]
    return [line for line in lines if line.strip()][:TABULAR_SAMPLE_LINES]


def _header_is_plausible(line: str, delimiter: str) -> bool:
    fields = line.split(delimiter)
    return all(len(field.strip()) <= MAX_HEADER_FIELD_LENGTH for field in fields)


def _best_single_line_delimiter(line: str) -> Optional[str]:
    for delimiter in DELIMITER_CANDIDATES:
        if count_delimiters(line, delimiter) > 0 and _header_is_plausible(line, delimiter):
            return delimiter
    return None
