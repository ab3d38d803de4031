"""Entry point: ``llm-continuation`` click group."""

from pathlib import Path
from typing import Optional

import click

from llm_continuation import __version__
from llm_continuation.cli.commands import config_cmd, detect_cmd, hint_cmd, merge_cmd, run_cmd
from llm_continuation.cli.context import CLIContext
from llm_continuation.cli.logging import configure_logging


@click.group()
@click.version_option(__version__, prog_name="llm-continuation")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with a [continuation] table.",
)
@click.option("-v", "--verbose", count=True, help="Log to stderr (-v info, -vv debug).")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], verbose: int) -> None:
    """Detect, merge and continue truncated LLM output."""
    configure_logging(verbose)
    ctx.obj = CLIContext(config_file=config_file, verbose=verbose)


cli.add_command(detect_cmd)
cli.add_command(hint_cmd)
cli.add_command(merge_cmd)
cli.add_command(config_cmd)
cli.add_command(run_cmd)


if __name__ == "__main__":
    cli()
