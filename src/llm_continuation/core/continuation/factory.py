"""Merger selection.

The factory holds a ``format -> merger`` map. Mergers are stateless, so the
default map shares one instance of each across every run.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from llm_continuation.core.continuation.format_detector import (
    AMBIGUITY_THRESHOLD,
    FormatDetector,
)
from llm_continuation.core.continuation.mergers import (
    FragmentLike,
    MarkupMerger,
    MergerContract,
    StructuredDataMerger,
    TabularMerger,
)
from llm_continuation.core.continuation.models import FormatDetectionResult, OutputFormat

logger = logging.getLogger(__name__)


class MergerFactory:
    """Maps output formats to merger implementations.

    Args:
        mergers: Optional initial map; defaults to the three built-in mergers
        detector: Detector used for ``auto``; defaults to ``FormatDetector()``
        ambiguity_threshold: Detection confidence below which markup is used
    """

    def __init__(
        self,
        mergers: Optional[Dict[OutputFormat, MergerContract]] = None,
        *,
        detector: Optional[FormatDetector] = None,
        ambiguity_threshold: float = AMBIGUITY_THRESHOLD,
    ) -> None:
        self._mergers: Dict[OutputFormat, MergerContract] = {}
        self._detector = detector or FormatDetector()
        self._ambiguity_threshold = ambiguity_threshold
        initial = mergers if mergers is not None else _default_mergers()
        for output_format, merger in initial.items():
            self.register(output_format, merger)

    def register(self, output_format: OutputFormat, merger: MergerContract) -> None:
        """Register (or replace) the merger for a format.

        Raises:
            ValueError: For AUTO, which is not a concrete format
            TypeError: If ``merger`` does not satisfy MergerContract
        """
        output_format = OutputFormat.parse(output_format)
        if output_format == OutputFormat.AUTO:
            raise ValueError("Cannot register a merger for AUTO")
        if not isinstance(merger, MergerContract):
            raise TypeError(f"{type(merger).__name__} does not implement MergerContract")
        self._mergers[output_format] = merger

    @property
    def supported_formats(self) -> List[OutputFormat]:
        return list(self._mergers)

    def create(self, output_format: OutputFormat) -> MergerContract:
        """Return the merger for an explicit, concrete format.

        Raises:
            ValueError: For AUTO or an unregistered format
        """
        output_format = OutputFormat.parse(output_format)
        if output_format == OutputFormat.AUTO:
            raise ValueError("AUTO needs fragments to detect from; use select()")
        try:
            return self._mergers[output_format]
        except KeyError:
            raise ValueError(
                f"No merger registered for {output_format.value}. "
                f"Supported: {', '.join(f.value for f in self._mergers)}"
            ) from None

    def select(
        self,
        output_format: OutputFormat,
        fragments: Sequence[FragmentLike],
    ) -> Tuple[MergerContract, Optional[FormatDetectionResult]]:
        """Pick a merger, detecting the format when ``output_format`` is AUTO.

        Low-confidence detection falls back to markup, the least strict
        format.

        Returns:
            (merger, detection result or None for an explicit format)
        """
        output_format = OutputFormat.parse(output_format)
        if output_format != OutputFormat.AUTO:
            return self.create(output_format), None

        detection = self._detector.detect(fragments)
        chosen = detection.format
        if detection.confidence < self._ambiguity_threshold:
            logger.info(
                "Format detection ambiguous (%s at %.2f); using markup",
                detection.format.value,
                detection.confidence,
            )
            chosen = OutputFormat.MARKUP
        else:
            logger.debug(
                "Detected %s at %.2f (%s)",
                detection.format.value,
                detection.confidence,
                detection.reason,
            )
        return self.create(chosen), detection


def _default_mergers() -> Dict[OutputFormat, MergerContract]:
    return {
        OutputFormat.TABULAR: TabularMerger(),
        OutputFormat.MARKUP: MarkupMerger(),
        OutputFormat.STRUCTURED_DATA: StructuredDataMerger(),
    }
