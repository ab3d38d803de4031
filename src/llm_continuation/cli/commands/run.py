"""``run`` command: send a prompt through the Responses API with continuation."""

import asyncio
import time
from dataclasses import replace
from typing import Optional

import click

from llm_continuation.cli.commands._options import FORMAT
from llm_continuation.cli.context import get_context
from llm_continuation.cli.logging import cli_command, get_cli_logger
from llm_continuation.cli.output import emit_error, emit_success
from llm_continuation.core.continuation import (
    ConversationState,
    ProviderTransport,
    run_with_continuation,
)
from llm_continuation.core.continuation.models import OutputFormat
from llm_continuation.core.providers import API_KEY_ENV_VAR, DEFAULT_BASE_URL, ResponsesAPIProvider
from llm_continuation.core.responses import degradation_warnings

logger = get_cli_logger()


@click.command("run")
@click.argument("prompt")
@click.option("--system", default=None, help="System instructions.")
@click.option("--model", default=None, help="Model name; provider default when omitted.")
@click.option("--max-tokens", type=int, default=4096, show_default=True, help="Output budget per request.")
@click.option("--format", "output_format", type=FORMAT, default=None, help="Expected output format.")
@click.option("--deadline", type=float, default=None, help="Overall time budget in seconds for the whole run.")
@click.option("--base-url", default=DEFAULT_BASE_URL, show_default=True, help="Responses API base URL.")
@click.option("--raw", is_flag=True, help="Print only the merged text.")
@click.pass_context
@cli_command("run")
def run_cmd(
    ctx: click.Context,
    prompt: str,
    system: Optional[str],
    model: Optional[str],
    max_tokens: int,
    output_format: Optional[OutputFormat],
    deadline: Optional[float],
    base_url: str,
    raw: bool,
) -> None:
    """Generate a response to PROMPT, continuing it until it completes."""
    config = get_context(ctx).config
    if output_format is not None:
        config = replace(config, output_format=output_format)

    try:
        provider = ResponsesAPIProvider(base_url=base_url)
    except ValueError as e:
        emit_error(
            str(e),
            code="UNAUTHORIZED",
            error_type="authentication",
            remediation=f"Set {API_KEY_ENV_VAR}",
        )

    transport = ProviderTransport(provider, model=model, max_tokens=max_tokens)
    state = ConversationState.from_prompt(prompt, system=system)
    stop_at = time.monotonic() + deadline if deadline is not None else None
    outcome = asyncio.run(run_with_continuation(transport, state, config, deadline=stop_at))

    if raw:
        click.echo(outcome.text())
        return

    metadata = outcome.metadata
    warnings = degradation_warnings(
        merge_success=metadata.merge_success,
        fallback_level=metadata.fallback_level_used,
        max_attempts_reached=metadata.max_attempts_reached,
        max_attempts=metadata.max_attempts,
        cancelled=metadata.cancelled,
        transport_errors=metadata.details.get("transport_errors", ()),
    )
    emit_success(
        {"content": outcome.content, "metadata": metadata.to_dict()},
        warnings=warnings or None,
        request_id=metadata.run_id,
    )
