"""Option types shared by several commands."""

from typing import Any, Optional

import click

from llm_continuation.core.continuation.models import FailurePolicy, OutputFormat


class FormatChoice(click.ParamType):
    """Output format name or alias (``csv``, ``markdown``, ``json``...)."""

    name = "format"

    def convert(self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]) -> OutputFormat:
        try:
            return OutputFormat.parse(value)
        except ValueError:
            valid = ", ".join(f.value for f in OutputFormat)
            self.fail(f"{value!r} is not a known format (expected one of: {valid})", param, ctx)


FORMAT = FormatChoice()
FAILURE_POLICY = click.Choice([p.value for p in FailurePolicy])


def read_text(path: str) -> str:
    """Read a file, or stdin for ``-``, preserving line endings."""
    if path == "-":
        return click.get_text_stream("stdin").read()
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()
