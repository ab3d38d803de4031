"""CLI command implementations."""

from llm_continuation.cli.commands.config import config_cmd
from llm_continuation.cli.commands.inspect import detect_cmd, hint_cmd
from llm_continuation.cli.commands.merge import merge_cmd
from llm_continuation.cli.commands.run import run_cmd

__all__ = [
    "config_cmd",
    "detect_cmd",
    "hint_cmd",
    "merge_cmd",
    "run_cmd",
]
