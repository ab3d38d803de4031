"""Bracket scanning and best-effort repair for near-valid JSON.

``scan_json`` is the bracket and string tracker shared by the detector, the
hint builder and the structured-data merger. ``repair_json`` hands the text
to the ``json_repair`` library after two checks of its own: text that stops
inside a string literal, or whose closers do not match their openers, is
left alone so the caller gets a parse failure instead of invented content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import json_repair

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}

REPAIR_STEP = "json_repair"


@dataclass
class JsonScan:
    """Bracket and string state at the end of a JSON text.

    Attributes:
        stack: Unclosed ``{`` / ``[`` in opening order
        in_string: Whether the text ends inside a string literal
        mismatched: Whether a closer did not match its opener
    """

    stack: List[str] = field(default_factory=list)
    in_string: bool = False
    mismatched: bool = False

    @property
    def depth(self) -> int:
        return len(self.stack)

    @property
    def innermost(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None


def scan_json(text: str) -> JsonScan:
    """Track open brackets outside string literals.

    Escapes are honoured so ``\\"`` never toggles the in-string flag.
    """
    scan = JsonScan()
    escape = False
    for char in text:
        if escape:
            escape = False
            continue
        if scan.in_string:
            if char == "\\":
                escape = True
            elif char == '"':
                scan.in_string = False
            continue
        if char == '"':
            scan.in_string = True
        elif char in _CLOSERS:
            scan.stack.append(char)
        elif char in ("}", "]"):
            if scan.stack and _CLOSERS[scan.stack[-1]] == char:
                scan.stack.pop()
            else:
                scan.mismatched = True
    return scan


@dataclass
class RepairOutcome:
    """Repaired text plus the names of the repairs that changed it."""

    text: str
    repairs: List[str] = field(default_factory=list)
    gave_up: Optional[str] = None

    @property
    def applied(self) -> bool:
        return bool(self.repairs)


def repair_json(text: str) -> RepairOutcome:
    """Repair ``text`` into an object or array where that is safe.

    Args:
        text: Joined fragment text that failed to parse

    Returns:
        RepairOutcome; when ``gave_up`` is set, ``text`` is the input
        unchanged and still goes to the parser as-is
    """
    outcome = RepairOutcome(text=text)
    if "{" not in text and "[" not in text:
        outcome.gave_up = "no JSON object or array found"
        return outcome

    scan = scan_json(text)
    if scan.in_string:
        outcome.gave_up = "text ends inside a string literal"
        return outcome
    if scan.mismatched:
        outcome.gave_up = "closing bracket does not match its opener"
        return outcome

    repaired = json_repair.repair_json(text)
    if not isinstance(repaired, str) or not repaired.lstrip().startswith(("{", "[")):
        logger.debug("json_repair produced no container for %d chars of input", len(text))
        outcome.gave_up = "repair produced no JSON object or array"
        return outcome

    if repaired != text:
        outcome.text = repaired
        outcome.repairs.append(REPAIR_STEP)
    return outcome
