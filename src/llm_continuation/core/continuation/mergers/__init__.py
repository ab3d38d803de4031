"""Format-specific fragment mergers."""

from llm_continuation.core.continuation.mergers.base import (
    FragmentLike,
    MergerContract,
    MergerSupport,
    collect_texts,
    extract_text,
)
from llm_continuation.core.continuation.mergers.markup import MarkupMerger
from llm_continuation.core.continuation.mergers.structured_data import (
    StructuredDataMerger,
    TailContext,
    classify_tail,
)
from llm_continuation.core.continuation.mergers.tabular import TabularMerger

__all__ = [
    "FragmentLike",
    "MarkupMerger",
    "MergerContract",
    "MergerSupport",
    "StructuredDataMerger",
    "TabularMerger",
    "TailContext",
    "classify_tail",
    "collect_texts",
    "extract_text",
]
