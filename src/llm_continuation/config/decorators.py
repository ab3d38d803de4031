"""Logging and timing decorators for engine entry points.

Both decorators accept plain and ``async`` callables, so the same one can
sit on ``FallbackChain.run`` and ``ContinuationController.run``.
"""

import functools
import inspect
import logging
import time
from typing import Any, Callable, Optional, TypeVar

from llm_continuation.core.observability import MetricsCollector, get_metrics

T = TypeVar("T")

Hooks = Callable[[tuple, dict], Callable[[Optional[BaseException]], None]]


def _wrap(func: Callable[..., T], hooks: Hooks) -> Callable[..., T]:
    """Wrap ``func`` so ``hooks(args, kwargs)`` runs before it and the
    callback it returns runs after it with the raised exception, if any."""
    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            finish = hooks(args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                finish(e)
                raise
            finish(None)
            return result

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        finish = hooks(args, kwargs)
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            finish(e)
            raise
        finish(None)
        return result

    return wrapper


def log_call(
    logger_name: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Log entry and exit at DEBUG, and failures at ERROR, with structured extras.

    Args:
        logger_name: Logger to use; defaults to the function's module
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        log = logging.getLogger(logger_name or func.__module__)
        qualname = func.__qualname__

        def hooks(args: tuple, kwargs: dict) -> Callable[[Optional[BaseException]], None]:
            log.debug(
                f"Calling {qualname}",
                extra={"function": qualname, "args_count": len(args), "kwargs_keys": list(kwargs)},
            )

            def finish(error: Optional[BaseException]) -> None:
                if error is None:
                    log.debug(f"Completed {qualname}", extra={"function": qualname, "success": True})
                else:
                    log.error(
                        f"Error in {qualname}: {error}",
                        extra={"function": qualname, "error": str(error), "error_type": type(error).__name__},
                    )

            return finish

        return _wrap(func, hooks)

    return decorator


def timed(
    metric_name: Optional[str] = None,
    *,
    metrics: Optional[MetricsCollector] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Emit a timer metric for every call, labelled ``status=success|error``.

    Args:
        metric_name: Metric name; defaults to the function name
        metrics: Collector to emit to; defaults to the global collector at
            call time
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = metric_name or func.__name__

        def hooks(args: tuple, kwargs: dict) -> Callable[[Optional[BaseException]], None]:
            start = time.perf_counter()

            def finish(error: Optional[BaseException]) -> None:
                (metrics or get_metrics()).timer(
                    name,
                    round((time.perf_counter() - start) * 1000, 2),
                    labels={"status": "success" if error is None else "error"},
                )

            return finish

        return _wrap(func, hooks)

    return decorator
