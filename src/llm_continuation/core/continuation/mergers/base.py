"""Shared merger contract and helpers.

Each output format has one concrete merger type implementing
``MergerContract``. Mergers are stateless: every ``merge`` call works on
local state only, so a single instance can serve concurrent runs.

Fragments may be given as ``Fragment`` objects, plain strings, ``None``
(skipped), or mappings carrying the text under ``content``, ``text``,
``data`` or ``message`` (a nested ``message`` mapping's ``content`` also
counts).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from llm_continuation.core.continuation.models import Fragment, MergeResult, OutputFormat

logger = logging.getLogger(__name__)

FragmentLike = Union[Fragment, str, Mapping[str, Any], None]

_CONTENT_KEYS = ("content", "text", "data", "message")


@runtime_checkable
class MergerContract(Protocol):
    """Capability every format merger provides."""

    format: OutputFormat

    def has_incomplete_structure(self, content: str) -> bool:
        """True when ``content`` ends inside an unfinished structure."""
        ...

    def merge(self, fragments: Sequence[FragmentLike]) -> MergeResult:
        """Merge fragments, in order, into one document."""
        ...

    def extract_text(self, fragment: FragmentLike) -> Optional[str]:
        ...

    def build_metadata(self, *, success: bool, chunk_count: int, **extra: Any) -> Dict[str, Any]:
        ...


def extract_text(fragment: FragmentLike) -> Optional[str]:
    """Pull the raw text out of a fragment-like value.

    Returns:
        The text, or None when the value carries no text at all

    Raises:
        TypeError: For values that are not fragment-like (programmer error)
    """
    if fragment is None:
        return None
    if isinstance(fragment, Fragment):
        return fragment.content
    if isinstance(fragment, str):
        return fragment
    if isinstance(fragment, Mapping):
        for key in _CONTENT_KEYS:
            value = fragment.get(key)
            if value is None:
                continue
            if isinstance(value, Mapping):
                nested = extract_text(value)
                if nested is not None:
                    return nested
                continue
            if isinstance(value, str):
                return value
        return None
    raise TypeError(f"Unsupported fragment type: {type(fragment).__name__}")


def collect_texts(fragments: Sequence[FragmentLike]) -> List[str]:
    """Extract text from every fragment, dropping ones with no text.

    Raises:
        TypeError: If ``fragments`` is None or not a sequence
    """
    if fragments is None:
        raise TypeError("fragments must be a sequence, got None")
    if isinstance(fragments, (str, bytes)) or not isinstance(fragments, Sequence):
        raise TypeError(f"fragments must be a sequence of fragments, got {type(fragments).__name__}")
    texts: List[str] = []
    for fragment in fragments:
        text = extract_text(fragment)
        if text:
            texts.append(text)
    return texts


class MergerSupport:
    """Helper mixin giving concrete mergers the contract's pure helpers."""

    format: OutputFormat

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(type(self).__module__)

    def extract_text(self, fragment: FragmentLike) -> Optional[str]:
        return extract_text(fragment)

    def build_metadata(self, *, success: bool, chunk_count: int, **extra: Any) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "merge_success": success,
            "chunk_count": chunk_count,
            "format": self.format.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        metadata.update(extra)
        return metadata

    def _empty_result(self, chunk_count: int) -> MergeResult:
        return MergeResult(
            success=False,
            content=None,
            error="No fragment contained any text",
            format=self.format,
            details=self.build_metadata(success=False, chunk_count=chunk_count),
        )
