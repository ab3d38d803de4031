"""Continuation hints.

A hint is the short instruction sent with each follow-up request. It names
the document format, the structure the output stopped inside, the tail of
what was already produced, and asks the model not to repeat it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from llm_continuation.core.continuation._text import (
    ORDERED_ITEM_PATTERN,
    TailLines,
    last_non_blank,
    scan_fences,
    split_records,
)
from llm_continuation.core.continuation.format_detector import FormatDetector
from llm_continuation.core.continuation.mergers import MarkupMerger, TailContext, classify_tail
from llm_continuation.core.continuation.mergers._json_repair import scan_json
from llm_continuation.core.continuation.models import OutputFormat

logger = logging.getLogger(__name__)

FORMAT_LABELS = {
    OutputFormat.TABULAR: "CSV/tabular rows",
    OutputFormat.MARKUP: "Markdown document",
    OutputFormat.STRUCTURED_DATA: "JSON document",
}

FORMAT_INSTRUCTIONS = {
    OutputFormat.TABULAR: "Continue from where you left off, completing any partial row. Do not repeat the header row.",
    OutputFormat.MARKUP: "Continue the Markdown document from where it was truncated. Do not repeat headings or table headers.",
    OutputFormat.STRUCTURED_DATA: "Continue the JSON from the exact character where it was truncated. Do not restart the document.",
}

_markup = MarkupMerger()
_detector = FormatDetector()


@dataclass(frozen=True)
class StructureState:
    """Structure the output stopped inside.

    Attributes:
        description: Human-readable phrase, e.g. "inside a JSON array"
        next_item_number: Next expected ordered-list number, if any
    """

    description: str
    next_item_number: Optional[int] = None


def describe_structure(text: str, output_format: OutputFormat) -> StructureState:
    """Describe where ``text`` was cut off for the given format."""
    output_format = OutputFormat.parse(output_format)
    if output_format == OutputFormat.TABULAR:
        return _describe_tabular(text)
    if output_format == OutputFormat.STRUCTURED_DATA:
        return _describe_structured(text)
    return _describe_markup(text)


def _describe_tabular(text: str) -> StructureState:
    _, remainder, in_quotes = split_records(text)
    if in_quotes:
        return StructureState("inside a quoted field of a row")
    if remainder:
        return StructureState("in the middle of a row")
    return StructureState("at the start of a new row")


def _describe_markup(text: str) -> StructureState:
    fence = scan_fences(text)
    if fence.is_open:
        language = f" ({fence.language})" if fence.language else ""
        return StructureState(f"inside a fenced code block{language}; do not open a new fence")
    if _markup.has_incomplete_table_row(text):
        return StructureState("inside a table row; finish the row without repeating the header")
    last = last_non_blank(text.split("\n"))
    if last is not None:
        if last.lstrip().startswith("|"):
            return StructureState("inside a table; continue with the next row")
        match = ORDERED_ITEM_PATTERN.match(last)
        if match:
            next_number = int(match.group(1)) + 1
            return StructureState("inside a numbered list", next_item_number=next_number)
    return StructureState("in running text")


def _describe_structured(text: str) -> StructureState:
    scan = scan_json(text)
    context = classify_tail(text, scan)
    if context == TailContext.INSIDE_STRING:
        return StructureState("inside a JSON string; finish the string first")
    if context == TailContext.KEY_SEPARATOR:
        return StructureState("right after an object key, before its value")
    container = "array" if scan.innermost == "[" else "object"
    if context == TailContext.TRAILING_SEPARATOR:
        return StructureState(f"after a comma inside a JSON {container}; continue with the next element")
    if context in (TailContext.OPEN_BRACKET, TailContext.MID_ARRAY, TailContext.MID_OBJECT):
        return StructureState(f"inside a JSON {container} (nesting depth {scan.depth})")
    return StructureState("at the top level of the document")


def build_continuation_hint(
    text: str,
    output_format: OutputFormat = OutputFormat.AUTO,
    *,
    overlap_lines: int = 5,
) -> str:
    """Build the follow-up instruction for a truncated response.

    Args:
        text: Everything produced so far
        output_format: Target format; AUTO detects from ``text``
        overlap_lines: Lines of the tail to quote back

    Returns:
        Hint text
    """
    output_format = OutputFormat.parse(output_format)
    if output_format == OutputFormat.AUTO:
        output_format = _detector.detect_text(text).format

    state = describe_structure(text, output_format)
    parts = [
        f"Your previous response was cut off by the output limit while writing a "
        f"{FORMAT_LABELS[output_format]}. It stopped {state.description}.",
        FORMAT_INSTRUCTIONS[output_format],
        "Do not repeat content that was already produced.",
    ]
    if state.next_item_number is not None:
        parts.append(f"Continue the numbered list at item {state.next_item_number}.")

    tail = TailLines.of(text, overlap_lines).render()
    if tail:
        parts.append(f"The output so far ended with:\n{tail}")
    hint = "\n".join(parts)
    logger.debug("Continuation hint for %s: %s", output_format.value, state.description)
    return hint
