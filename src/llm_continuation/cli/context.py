"""Per-invocation CLI context stored on ``click.Context.obj``."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from llm_continuation.config import ContinuationConfig


@dataclass
class CLIContext:
    config_file: Optional[Path] = None
    verbose: int = 0
    _config: Optional[ContinuationConfig] = None

    @property
    def config(self) -> ContinuationConfig:
        """Configuration loaded lazily so a bad file only fails commands that need it."""
        if self._config is None:
            self._config = ContinuationConfig.from_env(self.config_file)
        return self._config


def get_context(ctx: click.Context) -> CLIContext:
    obj = ctx.find_object(CLIContext)
    if obj is None:
        obj = ctx.ensure_object(CLIContext)
    return obj
