"""JSON envelope output for CLI commands.

Every command prints exactly one success or error envelope on stdout;
errors exit with status 1.
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Dict, Mapping, NoReturn, Optional, Sequence

import click

from llm_continuation.core.responses import error_response, success_response


def _dump(payload: Dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def emit_success(
    data: Optional[Mapping[str, Any]] = None,
    *,
    warnings: Optional[Sequence[str]] = None,
    request_id: Optional[str] = None,
) -> None:
    """Print a success envelope."""
    _dump(asdict(success_response(data, warnings=warnings, request_id=request_id)))


def emit_error(
    message: str,
    *,
    code: str = "INTERNAL_ERROR",
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    _dump(
        asdict(
            error_response(
                message,
                error_code=code,
                error_type=error_type,
                remediation=remediation,
                details=details,
            )
        )
    )
    sys.exit(1)


def emit_envelope(envelope: Dict[str, Any]) -> NoReturn:
    """Print a prebuilt error envelope (from ``error_to_response``) and exit 1."""
    _dump(envelope)
    sys.exit(1)
