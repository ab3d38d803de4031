"""``merge`` command: merge saved fragments offline."""

from typing import Optional, Tuple

import click

from llm_continuation.cli.commands._options import FAILURE_POLICY, FORMAT, read_text
from llm_continuation.cli.context import get_context
from llm_continuation.cli.logging import cli_command, get_cli_logger
from llm_continuation.cli.output import emit_error, emit_success
from llm_continuation.core.continuation import FallbackChain, enforce_failure_policy
from llm_continuation.core.continuation.models import (
    CompletionReason,
    FailurePolicy,
    Fragment,
    OutputFormat,
)
from llm_continuation.core.responses import degradation_warnings

logger = get_cli_logger()


@click.command("merge")
@click.argument("paths", nargs=-1, type=click.Path(exists=True, dir_okay=False, allow_dash=True))
@click.option("--format", "output_format", type=FORMAT, default=None, help="Force a format instead of detecting.")
@click.option("--on-failure", type=FAILURE_POLICY, default=None, help="Override the configured failure policy.")
@click.option("--raw", is_flag=True, help="Print only the merged text instead of a JSON envelope.")
@click.pass_context
@cli_command("merge")
def merge_cmd(
    ctx: click.Context,
    paths: Tuple[str, ...],
    output_format: Optional[OutputFormat],
    on_failure: Optional[str],
    raw: bool,
) -> None:
    """Merge the fragment files PATHS, given in the order they were received.

    Every file except the last is treated as cut off by the length limit.
    """
    if not paths:
        emit_error(
            "No fragment files given",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Pass one or more fragment files in receipt order",
        )

    config = get_context(ctx).config
    fragments = [
        Fragment(
            content=read_text(path),
            completion_reason=CompletionReason.LENGTH if index < len(paths) - 1 else CompletionReason.STOP,
        )
        for index, path in enumerate(paths)
    ]
    policy = FailurePolicy(on_failure) if on_failure else config.on_failure

    outcome = FallbackChain().run(fragments, output_format or config.output_format)
    enforce_failure_policy(outcome, policy)

    if raw:
        click.echo(outcome.result.text(), nl=False)
        return

    warnings = degradation_warnings(
        merge_success=outcome.merge_success,
        fallback_level=outcome.level,
        merge_error=outcome.result.error,
    )
    emit_success(
        {
            "content": outcome.result.content,
            "format_used": outcome.format_used.value if outcome.format_used else None,
            "detection_confidence": outcome.detection.confidence if outcome.detection else None,
            "fallback_level_used": outcome.level.value,
            "merge_success": outcome.merge_success,
            "error_detail": outcome.error_detail,
            "fragment_count": len(fragments),
            "details": outcome.result.details,
        },
        warnings=warnings or None,
    )
