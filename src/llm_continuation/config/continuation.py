"""ContinuationConfig dataclass.

Holds the values the continuation engine consumes: attempt cap, target
format, failure policy, transport timeout, hint overlap and cost rates.
Loading from TOML and the environment lives in ``loader.py``.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from llm_continuation.config.loader import _ContinuationConfigLoader
from llm_continuation.config.parsing import _closest_choice, _normalize_choice
from llm_continuation.core.continuation.models import (
    _FORMAT_ALIASES,
    FailurePolicy,
    OutputFormat,
)
from llm_continuation.core.errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_CEILING = 20
DEFAULT_MAX_ATTEMPTS = 10

_VALID_FORMATS = tuple(f.value for f in OutputFormat)
_VALID_FAILURE_POLICIES = tuple(p.value for p in FailurePolicy)


@dataclass
class ContinuationConfig(_ContinuationConfigLoader):
    """Configuration for one continuation-enabled request.

    Attributes:
        max_attempts: Cap on transport requests per run (clamped to 20)
        output_format: Target format, or ``auto`` to detect
        on_failure: ``return_partial`` or ``raise_error``
        timeout_seconds: Per-call transport timeout
        hint_overlap_lines: Lines of prior output echoed in continuation hints
        input_cost_per_1k: Cost per 1000 input tokens
        output_cost_per_1k: Cost per 1000 output tokens
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    output_format: OutputFormat = OutputFormat.AUTO
    on_failure: FailurePolicy = FailurePolicy.RETURN_PARTIAL
    timeout_seconds: float = 120.0
    hint_overlap_lines: int = 5
    input_cost_per_1k: float = 0.0
    output_cost_per_1k: float = 0.0

    def __post_init__(self) -> None:
        self.max_attempts = self._validate_max_attempts(self.max_attempts)
        self.output_format = self._validate_format(self.output_format)
        self.on_failure = self._validate_failure_policy(self.on_failure)

        if isinstance(self.timeout_seconds, bool) or not isinstance(self.timeout_seconds, (int, float)):
            raise InvalidConfigurationError(
                f"timeout_seconds must be a number, got {self.timeout_seconds!r}",
                field="timeout_seconds",
                value=self.timeout_seconds,
            )
        if self.timeout_seconds <= 0:
            raise InvalidConfigurationError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}",
                field="timeout_seconds",
                value=self.timeout_seconds,
            )
        self.timeout_seconds = float(self.timeout_seconds)

        if isinstance(self.hint_overlap_lines, bool) or not isinstance(self.hint_overlap_lines, int):
            raise InvalidConfigurationError(
                f"hint_overlap_lines must be an integer, got {self.hint_overlap_lines!r}",
                field="hint_overlap_lines",
                value=self.hint_overlap_lines,
            )
        if self.hint_overlap_lines < 0:
            raise InvalidConfigurationError(
                f"hint_overlap_lines must not be negative, got {self.hint_overlap_lines}",
                field="hint_overlap_lines",
                value=self.hint_overlap_lines,
            )

        for name in ("input_cost_per_1k", "output_cost_per_1k"):
            rate = getattr(self, name)
            if isinstance(rate, bool) or not isinstance(rate, (int, float, Decimal)):
                raise InvalidConfigurationError(f"{name} must be a number, got {rate!r}", field=name, value=rate)
            if rate < 0:
                raise InvalidConfigurationError(f"{name} must not be negative, got {rate}", field=name, value=rate)

    @staticmethod
    def _validate_max_attempts(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfigurationError(
                f"max_attempts must be a positive integer, got {value!r}",
                field="max_attempts",
                value=value,
            )
        if value < 1:
            raise InvalidConfigurationError(
                f"max_attempts must be a positive integer, got {value}",
                field="max_attempts",
                value=value,
            )
        if value > MAX_ATTEMPTS_CEILING:
            logger.warning(
                "max_attempts %d exceeds the ceiling of %d; clamping",
                value,
                MAX_ATTEMPTS_CEILING,
            )
            return MAX_ATTEMPTS_CEILING
        return value

    @staticmethod
    def _validate_format(value: Any) -> OutputFormat:
        resolved = _normalize_choice(value, _VALID_FORMATS, _FORMAT_ALIASES)
        if resolved is None:
            raise InvalidConfigurationError(
                f"Invalid output_format {value!r}. Valid options: {', '.join(_VALID_FORMATS)}",
                field="output_format",
                value=value,
                suggestion=_closest_choice(value, tuple(_VALID_FORMATS) + tuple(_FORMAT_ALIASES)),
            )
        return OutputFormat(resolved)

    @staticmethod
    def _validate_failure_policy(value: Any) -> FailurePolicy:
        resolved = _normalize_choice(value, _VALID_FAILURE_POLICIES)
        if resolved is None:
            raise InvalidConfigurationError(
                f"Invalid on_failure {value!r}. Valid options: {', '.join(_VALID_FAILURE_POLICIES)}",
                field="on_failure",
                value=value,
                suggestion=_closest_choice(value, _VALID_FAILURE_POLICIES),
            )
        return FailurePolicy(resolved)

    def to_dict(self) -> Dict[str, Any]:
        """Resolved values as plain JSON-compatible data."""
        return {
            "max_attempts": self.max_attempts,
            "output_format": self.output_format.value,
            "on_failure": self.on_failure.value,
            "timeout_seconds": self.timeout_seconds,
            "hint_overlap_lines": self.hint_overlap_lines,
            "input_cost_per_1k": float(self.input_cost_per_1k),
            "output_cost_per_1k": float(self.output_cost_per_1k),
        }
