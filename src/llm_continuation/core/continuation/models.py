"""Data model for the continuation-and-merge engine.

Value types (fragments, detection and merge results) are frozen or plain
dataclasses; the run metadata record is a Pydantic model so it validates its
own invariants and serializes to JSON for observability collaborators.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

# =============================================================================
# Enums
# =============================================================================


class CompletionReason(str, Enum):
    """Why the transport stopped generating a fragment.

    LENGTH and INCOMPLETE mean the output budget cut the response short;
    every other value is terminal for the continuation loop.
    """

    STOP = "stop"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    CONTENT_FILTER = "content_filter"
    INCOMPLETE = "incomplete"
    ERROR = "error"
    UNKNOWN = "unknown"

    @property
    def is_truncation(self) -> bool:
        return self in (CompletionReason.LENGTH, CompletionReason.INCOMPLETE)

    @classmethod
    def from_value(cls, value: Any) -> "CompletionReason":
        """Normalize a provider-specific finish reason.

        Accepts the enum itself, its value, or common provider spellings
        (``max_tokens``, ``end_turn``, ``tool_calls``). Anything else,
        including ``None``, maps to UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        raw = getattr(value, "value", value)
        normalized = str(raw).strip().lower()
        normalized = _COMPLETION_REASON_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


_COMPLETION_REASON_ALIASES = {
    "max_tokens": "length",
    "max_output_tokens": "length",
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_call": "tool_use",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
}


class OutputFormat(str, Enum):
    """Structural grammar of the generated document."""

    TABULAR = "tabular"
    MARKUP = "markup"
    STRUCTURED_DATA = "structured_data"
    AUTO = "auto"

    @classmethod
    def parse(cls, value: Any) -> "OutputFormat":
        """Resolve a format name or alias (``csv``, ``markdown``, ``json``).

        Raises:
            ValueError: If the value names no known format
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        normalized = _FORMAT_ALIASES.get(normalized, normalized)
        return cls(normalized)


_FORMAT_ALIASES = {
    "csv": "tabular",
    "tsv": "tabular",
    "table": "tabular",
    "markdown": "markup",
    "md": "markup",
    "text": "markup",
    "json": "structured_data",
    "structured": "structured_data",
}


class FailurePolicy(str, Enum):
    """What the caller receives when the merge is degraded."""

    RETURN_PARTIAL = "return_partial"
    RAISE_ERROR = "raise_error"


class FallbackLevel(str, Enum):
    """Which recovery level of the fallback chain produced the result."""

    NONE = "none"
    SIMPLIFIED = "simplified"
    BEST_EFFORT = "best_effort"


class ControllerState(str, Enum):
    """Lifecycle states of a ``ContinuationController`` run."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    ACCUMULATING = "accumulating"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# Fragments
# =============================================================================


@dataclass(frozen=True)
class FragmentUsage:
    """Token usage reported for a single fragment."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class Fragment:
    """One unit of generated content plus its provenance.

    Attributes:
        content: Raw text of this fragment
        completion_reason: Why generation stopped
        usage: Token counts reported by the transport, if any
        response_id: Provider response id, used to chain continuations
        model: Model that produced the fragment
    """

    content: str
    completion_reason: CompletionReason = CompletionReason.STOP
    usage: Optional[FragmentUsage] = None
    response_id: Optional[str] = None
    model: Optional[str] = None

    def __post_init__(self) -> None:
        if self.content is None:
            object.__setattr__(self, "content", "")
        if not isinstance(self.content, str):
            raise TypeError(f"Fragment content must be str, got {type(self.content).__name__}")
        object.__setattr__(self, "completion_reason", CompletionReason.from_value(self.completion_reason))

    @property
    def is_truncated(self) -> bool:
        return self.completion_reason.is_truncation

    @property
    def size(self) -> int:
        return len(self.content)


class ContinuationRun:
    """The ordered fragments of one logical request.

    Owned by a single controller while the loop runs; ``freeze()`` hands an
    immutable tuple to the merge layer and rejects further appends.
    """

    def __init__(self) -> None:
        self._fragments: List[Fragment] = []
        self._frozen = False

    def append(self, fragment: Fragment) -> None:
        if self._frozen:
            raise RuntimeError("ContinuationRun is frozen; no fragments can be appended")
        if not isinstance(fragment, Fragment):
            raise TypeError(f"Expected Fragment, got {type(fragment).__name__}")
        self._fragments.append(fragment)

    def freeze(self) -> Tuple[Fragment, ...]:
        self._frozen = True
        return tuple(self._fragments)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return tuple(self._fragments)

    @property
    def last(self) -> Optional[Fragment]:
        return self._fragments[-1] if self._fragments else None

    def text(self) -> str:
        """Raw concatenation of every fragment, in receipt order."""
        return "".join(f.content for f in self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(tuple(self._fragments))


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class FormatDetectionResult:
    """Outcome of format detection on a fragment.

    Attributes:
        format: Detected format (never AUTO)
        confidence: Heuristic confidence in [0, 1]
        reason: Short label for the heuristic that matched
    """

    format: OutputFormat
    confidence: float
    reason: str = ""

    def __post_init__(self) -> None:
        if self.format == OutputFormat.AUTO:
            raise ValueError("Detection result cannot be AUTO")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass
class MergeResult:
    """Result of merging a fragment sequence.

    ``content`` is the parsed value (dicts/lists) for structured data and
    raw text for the other formats. ``error_detail`` keeps diagnostic text,
    e.g. the unrepaired concatenation when structured data would not parse.
    ``details`` is the merger's own metadata suffix.
    """

    success: bool
    content: Union[str, Any, None] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None
    format: Optional[OutputFormat] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def text(self) -> str:
        """Render the content as text (structured values are JSON-encoded)."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, ensure_ascii=False)


class ContinuationMetadata(BaseModel):
    """Finalized record of a continuation run.

    The three per-fragment sequences always have ``attempt_count`` entries.
    """

    run_id: str = Field(..., description="ULID identifying the run")
    was_continued: bool = Field(default=False)
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=1, ge=1)
    fragment_sizes: List[int] = Field(default_factory=list)
    completion_reasons: List[CompletionReason] = Field(default_factory=list)
    format_used: Optional[OutputFormat] = Field(default=None)
    detection_confidence: Optional[float] = Field(default=None)
    fallback_level_used: FallbackLevel = Field(default=FallbackLevel.NONE)
    total_input_tokens: int = Field(default=0, ge=0)
    total_output_tokens: int = Field(default=0, ge=0)
    estimated_cost: Decimal = Field(default=Decimal("0"))
    merge_success: bool = Field(default=False)
    error_detail: Optional[str] = Field(default=None)
    max_attempts_reached: bool = Field(default=False)
    truncation_points: List[str] = Field(default_factory=list)
    truncated_at_tokens: List[int] = Field(default_factory=list)
    cancelled: bool = Field(default=False)
    final_state: ControllerState = Field(default=ControllerState.IDLE)
    model: Optional[str] = Field(default=None)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = Field(default=None)
    details: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _sequences_match_attempts(self) -> "ContinuationMetadata":
        if not (len(self.fragment_sizes) == len(self.completion_reasons) == self.attempt_count):
            raise ValueError(
                "fragment_sizes, completion_reasons and attempt_count disagree: "
                f"{len(self.fragment_sizes)}, {len(self.completion_reasons)}, {self.attempt_count}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dictionary (decimals and datetimes as strings)."""
        return self.model_dump(mode="json")
