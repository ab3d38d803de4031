"""Parsing and normalization helpers for configuration values.

Provides numeric parsing for environment strings, choice normalization with
aliases, and closest-match suggestions used by ``ContinuationConfig``.
"""

import difflib
import logging
from typing import Any, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)


def _normalize_name(raw: Any) -> str:
    """Normalize option names across TOML and env inputs."""
    raw = getattr(raw, "value", raw)
    return str(raw).strip().lower().replace("-", "_")


def _closest_choice(value: Any, choices: Iterable[str]) -> Optional[str]:
    """Best close match for a mistyped choice, or None."""
    matches = difflib.get_close_matches(_normalize_name(value), list(choices), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _normalize_choice(
    value: Any,
    choices: Iterable[str],
    aliases: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """Resolve ``value`` to one of ``choices`` (aliases allowed), or None."""
    normalized = _normalize_name(value)
    if aliases:
        normalized = aliases.get(normalized, normalized)
    return normalized if normalized in set(choices) else None


def _try_parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _try_parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None
