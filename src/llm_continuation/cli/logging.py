"""CLI logging helpers.

``cli_command`` wraps a command so that known engine errors become error
envelopes instead of tracebacks.
"""

import functools
import logging
import time
from typing import Any, Callable, TypeVar

from llm_continuation.cli.output import emit_envelope, emit_error
from llm_continuation.core.errors import error_to_response

T = TypeVar("T")

CLI_LOGGER_NAME = "llm_continuation.cli"


def get_cli_logger() -> logging.Logger:
    return logging.getLogger(CLI_LOGGER_NAME)


def configure_logging(verbose: int) -> None:
    """Send library logs to stderr; ``-v`` for INFO, ``-vv`` for DEBUG."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cli_command(name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Log command timing and render known errors as envelopes."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        logger = get_cli_logger()

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.perf_counter()
            logger.debug(f"Running command {name}")
            try:
                return func(*args, **kwargs)
            except Exception as e:
                envelope = error_to_response(e)
                if envelope is None:
                    logger.exception(f"Command {name} failed")
                    emit_error(f"{type(e).__name__}: {e}", code="INTERNAL_ERROR", error_type="internal")
                emit_envelope(envelope)
            finally:
                logger.debug(
                    f"Command {name} finished",
                    extra={"command": name, "duration_ms": round((time.perf_counter() - start) * 1000, 2)},
                )

        return wrapper

    return decorator
