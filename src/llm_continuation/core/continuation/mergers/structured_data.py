"""Merger for strict data-interchange text (JSON objects and arrays).

Fragments are joined pairwise according to what the accumulated tail looks
like, then parsed. Text that does not parse goes through the repair pass in
``_json_repair``; if it still does not parse the result is a failure whose
``error_detail`` holds the unrepaired concatenation verbatim.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from llm_continuation.core.continuation.mergers._json_repair import (
    JsonScan,
    repair_json,
    scan_json,
)
from llm_continuation.core.continuation.mergers.base import (
    FragmentLike,
    MergerSupport,
    collect_texts,
)
from llm_continuation.core.continuation.models import MergeResult, OutputFormat

logger = logging.getLogger(__name__)

_SEPARATOR_OR_CLOSER = (",", "]", "}", ":")
_LITERALS = ("true", "false", "null")
_PARTIAL_LITERAL_PATTERN = re.compile(r"(?<![A-Za-z0-9_.\-])([tfn][a-z]{0,4})$")


class TailContext(str, Enum):
    """Shape of the accumulated text right before a fragment boundary."""

    INSIDE_STRING = "inside_string"
    OPEN_BRACKET = "open_bracket"
    TRAILING_SEPARATOR = "trailing_separator"
    KEY_SEPARATOR = "key_separator"
    MID_ARRAY = "mid_array"
    MID_OBJECT = "mid_object"
    AMBIGUOUS = "ambiguous"


def classify_tail(text: str, scan: Optional[JsonScan] = None) -> TailContext:
    """Classify the end of ``text`` for choosing a join rule.

    Args:
        text: Accumulated text
        scan: Precomputed ``scan_json(text)``, if the caller has one

    Returns:
        The TailContext of the tail
    """
    scan = scan or scan_json(text)
    if scan.in_string:
        return TailContext.INSIDE_STRING
    tail = text.rstrip()
    if not tail or not scan.stack:
        return TailContext.AMBIGUOUS
    last = tail[-1]
    if last in "{[":
        return TailContext.OPEN_BRACKET
    if last == ",":
        return TailContext.TRAILING_SEPARATOR
    if last == ":":
        return TailContext.KEY_SEPARATOR
    if scan.innermost == "[":
        return TailContext.MID_ARRAY
    return TailContext.MID_OBJECT


def needs_separator(context: TailContext, tail: str, head: str) -> bool:
    """Whether a synthetic ``,`` belongs between ``tail`` and ``head``.

    Only mid-array and mid-object tails qualify, and only when the next
    fragment opens neither with a separator nor a closer. Inside an object
    the next fragment must also open with a key. Inside an array a
    ``true``, ``false`` or ``null`` literal split across the boundary
    (``tru`` + ``e``) is joined directly; split digits still get a
    separator.
    """
    if context not in (TailContext.MID_ARRAY, TailContext.MID_OBJECT):
        return False
    lead = head.lstrip()
    if not lead or lead[0] in _SEPARATOR_OR_CLOSER:
        return False
    if context == TailContext.MID_OBJECT:
        # only a key can follow a complete member
        return lead[0] in ('"', "'")
    return not _splits_literal(tail, head)


def _splits_literal(tail: str, head: str) -> bool:
    match = _PARTIAL_LITERAL_PATTERN.search(tail)
    if match is None:
        return False
    joined = match.group(1) + head
    return any(joined.startswith(literal) and len(match.group(1)) < len(literal) for literal in _LITERALS)


class StructuredDataMerger(MergerSupport):
    """Bracket-aware merger producing a parsed JSON value."""

    format = OutputFormat.STRUCTURED_DATA

    def has_incomplete_structure(self, content: str) -> bool:
        """True when brackets are unbalanced or a string is left open."""
        if not content or not content.strip():
            return False
        scan = scan_json(content)
        return scan.in_string or scan.depth > 0

    def classify_tail(self, content: str) -> TailContext:
        return classify_tail(content)

    def merge(self, fragments: Sequence[FragmentLike]) -> MergeResult:
        texts = collect_texts(fragments)
        chunk_count = len(fragments)
        if not texts:
            return self._empty_result(chunk_count)

        joined, joins = self._join(texts)
        try:
            value = json.loads(joined)
        except json.JSONDecodeError:
            pass
        else:
            return self._success(value, chunk_count, joins, repairs=[])

        outcome = repair_json(joined)
        try:
            value = json.loads(outcome.text)
        except json.JSONDecodeError as exc:
            reason = outcome.gave_up or exc.msg
            self._logger.debug(
                "Structured merge failed after repairs %s: %s",
                outcome.repairs,
                reason,
            )
            return MergeResult(
                success=False,
                content=None,
                error=f"Merged content is not valid JSON: {reason}",
                error_detail=joined,
                format=self.format,
                details=self.build_metadata(
                    success=False,
                    chunk_count=chunk_count,
                    join_contexts=joins,
                    repair_applied=outcome.applied,
                    repairs=outcome.repairs,
                ),
            )
        self._logger.debug("Structured merge succeeded after repairs: %s", outcome.repairs)
        return self._success(value, chunk_count, joins, repairs=outcome.repairs)

    def _join(self, texts: List[str]) -> Tuple[str, List[str]]:
        merged = texts[0]
        contexts: List[str] = []
        for text in texts[1:]:
            context = classify_tail(merged)
            contexts.append(context.value)
            if needs_separator(context, merged, text):
                self._logger.debug("Inserted separator at %s boundary", context.value)
                merged = merged + "," + text
            else:
                merged = merged + text
        return merged, contexts

    def _success(self, value: Any, chunk_count: int, joins: List[str], *, repairs: List[str]) -> MergeResult:
        details: Dict[str, Any] = self.build_metadata(
            success=True,
            chunk_count=chunk_count,
            join_contexts=joins,
            repair_applied=bool(repairs),
            repairs=repairs,
        )
        return MergeResult(success=True, content=value, format=self.format, details=details)
