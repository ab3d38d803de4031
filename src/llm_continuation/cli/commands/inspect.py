"""Read-only inspection commands: ``detect`` and ``hint``."""

from typing import Optional

import click

from llm_continuation.cli.commands._options import FORMAT, read_text
from llm_continuation.cli.context import get_context
from llm_continuation.cli.logging import cli_command, get_cli_logger
from llm_continuation.cli.output import emit_success
from llm_continuation.core.continuation import FormatDetector, build_continuation_hint
from llm_continuation.core.continuation.models import OutputFormat

logger = get_cli_logger()


@click.command("detect")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.pass_context
@cli_command("detect")
def detect_cmd(ctx: click.Context, path: str) -> None:
    """Guess the output format of the text in PATH ('-' for stdin)."""
    detection = FormatDetector().detect_text(read_text(path))
    emit_success(
        {
            "format": detection.format.value,
            "confidence": round(detection.confidence, 4),
            "reason": detection.reason,
        }
    )


@click.command("hint")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option("--format", "output_format", type=FORMAT, default=None, help="Format of the truncated text.")
@click.option("--overlap-lines", type=int, default=None, help="Tail lines to quote back.")
@click.pass_context
@cli_command("hint")
def hint_cmd(
    ctx: click.Context,
    path: str,
    output_format: Optional[OutputFormat],
    overlap_lines: Optional[int],
) -> None:
    """Print the continuation prompt that would follow the text in PATH."""
    config = get_context(ctx).config
    hint = build_continuation_hint(
        read_text(path),
        output_format or config.output_format,
        overlap_lines=config.hint_overlap_lines if overlap_lines is None else overlap_lines,
    )
    emit_success({"hint": hint})
