"""``config`` command: show the effective configuration."""

import click

from llm_continuation.cli.context import get_context
from llm_continuation.cli.logging import cli_command
from llm_continuation.cli.output import emit_success
from llm_continuation.config.loader import CONFIG_FILE_ENV_VAR


@click.command("config")
@click.pass_context
@cli_command("config")
def config_cmd(ctx: click.Context) -> None:
    """Print the configuration after file and environment layering."""
    cli_ctx = get_context(ctx)
    emit_success(
        {
            "config": cli_ctx.config.to_dict(),
            "config_file": str(cli_ctx.config_file) if cli_ctx.config_file else None,
            "config_file_env_var": CONFIG_FILE_ENV_VAR,
        }
    )
