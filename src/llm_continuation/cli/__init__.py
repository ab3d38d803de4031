"""Command-line interface for llm-continuation."""

from llm_continuation.cli.main import cli

__all__ = ["cli"]
