"""Bounded continuation loop.

One ``ContinuationController`` drives one logical request: it sends the
initial request, keeps asking for more while the transport reports
truncation and attempts remain, then hands the frozen fragments to a
``FallbackChain``. Transport failures, timeouts, cancellation and deadlines
all end the loop early and merging proceeds over what was collected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from llm_continuation.config.continuation import ContinuationConfig
from llm_continuation.config.decorators import log_call
from llm_continuation.core.continuation.factory import MergerFactory
from llm_continuation.core.continuation.fallback import FallbackChain, enforce_failure_policy
from llm_continuation.core.continuation.hints import build_continuation_hint
from llm_continuation.core.continuation.metadata import CostRates, MetadataAccumulator
from llm_continuation.core.continuation.models import (
    CompletionReason,
    ContinuationMetadata,
    ContinuationRun,
    ControllerState,
    FailurePolicy,
    Fragment,
    MergeResult,
)
from llm_continuation.core.continuation.transport import ConversationState, Transport
from llm_continuation.core.errors import CompleteDegradationError, TransportError, TransportTimeoutError
from llm_continuation.core.observability import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[ControllerState, Tuple[ControllerState, ...]] = {
    ControllerState.IDLE: (ControllerState.AWAITING_RESPONSE, ControllerState.MERGING),
    ControllerState.AWAITING_RESPONSE: (ControllerState.ACCUMULATING, ControllerState.MERGING),
    ControllerState.ACCUMULATING: (ControllerState.AWAITING_RESPONSE, ControllerState.MERGING),
    ControllerState.MERGING: (ControllerState.DONE, ControllerState.FAILED),
    ControllerState.DONE: (),
    ControllerState.FAILED: (),
}

_WARN_REASONS = (CompletionReason.CONTENT_FILTER, CompletionReason.INCOMPLETE)


@dataclass
class ContinuationOutcome:
    """Merged result of a run plus its finalized metadata."""

    result: MergeResult
    metadata: ContinuationMetadata
    fragments: Tuple[Fragment, ...] = ()

    @property
    def content(self) -> Any:
        return self.result.content

    @property
    def success(self) -> bool:
        return self.metadata.merge_success

    def text(self) -> str:
        return self.result.text()


class ContinuationController:
    """Single-use driver of one continuation run.

    Args:
        transport: Object implementing ``Transport.send``
        config: Engine configuration; defaults to ``ContinuationConfig()``
        factory: Merger factory shared across runs (mergers are stateless)
        rates: Cost rates; defaults to the rates in ``config``
        logger: Logger for this run; defaults to the module logger
        metrics: Metrics collector; defaults to the global collector
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[ContinuationConfig] = None,
        *,
        factory: Optional[MergerFactory] = None,
        rates: Optional[CostRates] = None,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        if not isinstance(transport, Transport):
            raise TypeError(f"{type(transport).__name__} does not implement Transport.send")
        self._transport = transport
        self._config = config or ContinuationConfig()
        self._factory = factory
        self._logger = logger or logging.getLogger(__name__)
        self._metrics = metrics or get_metrics()
        self._state = ControllerState.IDLE
        self._run = ContinuationRun()
        self._metadata = MetadataAccumulator(
            max_attempts=self._config.max_attempts,
            rates=rates
            or CostRates(
                input_per_1k=self._config.input_cost_per_1k,
                output_per_1k=self._config.output_cost_per_1k,
            ),
        )
        self._started = False

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def run_id(self) -> str:
        return self._metadata.run_id

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return self._run.fragments

    def _transition(self, target: ControllerState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal controller transition {self._state.value} -> {target.value}")
        self._state = target

    @log_call()
    async def run(
        self,
        request: Union[ConversationState, str],
        *,
        cancel: Optional[asyncio.Event] = None,
        deadline: Optional[float] = None,
    ) -> ContinuationOutcome:
        """Drive the loop to completion and merge the fragments.

        Args:
            request: Conversation state, or a bare user prompt
            cancel: Event that, once set, stops the loop and merges
            deadline: Absolute ``time.monotonic()`` value after which the
                loop stops and merges

        Returns:
            ContinuationOutcome

        Raises:
            RuntimeError: If the controller was already used
            CompleteDegradationError: If no fragment was received at all
            MergeError: If the merge degraded and ``on_failure`` is raise_error
        """
        if self._started:
            raise RuntimeError("ContinuationController is single-use; create a new one per request")
        self._started = True

        conversation = request if isinstance(request, ConversationState) else ConversationState.from_prompt(request)
        started = time.perf_counter()
        try:
            await self._loop(conversation, cancel, deadline)
        except asyncio.CancelledError:
            self._state = ControllerState.FAILED
            self._logger.warning("Run %s cancelled by its caller; %d fragment(s) dropped", self.run_id, len(self._run))
            raise
        finally:
            self._metrics.timer(
                "continuation.duration_ms",
                round((time.perf_counter() - started) * 1000, 2),
                labels={"run_id": self.run_id},
            )
        return self._merge()

    async def _loop(
        self,
        conversation: ConversationState,
        cancel: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        config = self._config
        hint: Optional[str] = None
        while True:
            if self._stop_requested(cancel, deadline):
                self._metadata.mark_cancelled()
                self._logger.info("Run %s stopped before attempt %d", self.run_id, len(self._run) + 1)
                break

            conversation.attempt = len(self._run) + 1
            self._logger.debug(
                "Attempt %d/%d (previous response %s)",
                conversation.attempt,
                config.max_attempts,
                conversation.previous_response_id,
            )
            self._transition(ControllerState.AWAITING_RESPONSE)
            fragment = await self._send(conversation, hint, cancel, deadline)
            if fragment is None:
                self._metadata.mark_cancelled()
                self._logger.info("Run %s stopped during attempt %d", self.run_id, conversation.attempt)
                break

            self._transition(ControllerState.ACCUMULATING)
            self._run.append(fragment)
            self._metadata.record_fragment(fragment)
            reason_label = {"reason": fragment.completion_reason.value}
            self._metrics.counter("continuation.attempts", labels=reason_label)
            self._metrics.histogram("continuation.fragment_chars", fragment.size, labels=reason_label)
            self._log_reason(fragment, conversation.attempt)

            if not fragment.is_truncated:
                break
            if len(self._run) >= config.max_attempts:
                self._logger.warning(
                    "Run %s still truncated after %d attempt(s); merging what was received",
                    self.run_id,
                    len(self._run),
                )
                break

            conversation.accumulated += fragment.content
            conversation.previous_response_id = fragment.response_id or conversation.previous_response_id
            hint = build_continuation_hint(
                conversation.accumulated,
                config.output_format,
                overlap_lines=config.hint_overlap_lines,
            )

    async def _send(
        self,
        conversation: ConversationState,
        hint: Optional[str],
        cancel: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> Optional[Fragment]:
        """One transport call raced against the timeout and cancel token.

        Returns:
            The fragment (an ERROR fragment on failure or timeout), or None
            when the cancel token or the deadline ended the call
        """
        timeout = self._config.timeout_seconds
        deadline_bound = False
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= timeout:
                timeout, deadline_bound = max(remaining, 0.0), True

        send_task = asyncio.ensure_future(self._transport.send(conversation, hint))
        waiters = {send_task}
        cancel_task = None
        if cancel is not None:
            cancel_task = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_task)

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()

        if send_task in done:
            try:
                return send_task.result()
            except TransportError as e:
                return self._error_fragment(e, conversation.attempt)
            except Exception as e:
                # a misbehaving transport still ends the run like a transport error
                self._logger.warning("Transport raised %s outside its contract", type(e).__name__)
                return self._error_fragment(e, conversation.attempt)
        if cancel_task is not None and cancel_task in done:
            return None
        if deadline_bound:
            return None
        return self._error_fragment(
            TransportTimeoutError(
                f"Transport call exceeded {timeout:.1f}s",
                attempt=conversation.attempt,
                timeout=timeout,
            ),
            conversation.attempt,
        )

    def _error_fragment(self, error: Exception, attempt: int) -> Fragment:
        self._logger.error("Transport failed on attempt %d: %s", attempt, error)
        self._metadata.details.setdefault("transport_errors", []).append(
            {"attempt": attempt, "type": type(error).__name__, "message": str(error)}
        )
        return Fragment(content="", completion_reason=CompletionReason.ERROR)

    def _stop_requested(self, cancel: Optional[asyncio.Event], deadline: Optional[float]) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    def _log_reason(self, fragment: Fragment, attempt: int) -> None:
        reason = fragment.completion_reason
        if reason in _WARN_REASONS:
            self._logger.warning("Attempt %d ended with %s", attempt, reason.value)
        elif reason == CompletionReason.ERROR:
            self._logger.error("Attempt %d ended with a transport error", attempt)
        else:
            self._logger.debug("Attempt %d ended with %s (%d chars)", attempt, reason.value, fragment.size)

    def _merge(self) -> ContinuationOutcome:
        fragments = self._run.freeze()
        self._transition(ControllerState.MERGING)
        self._metrics.gauge("continuation.fragments", len(fragments), labels={"run_id": self.run_id})

        chain = FallbackChain(self._factory, logger=self._logger, metrics=self._metrics)
        try:
            outcome = chain.run(fragments, self._config.output_format)
        except CompleteDegradationError as e:
            self._transition(ControllerState.FAILED)
            e.metadata = self._metadata.finalize(
                merge_success=False,
                error_detail=str(e),
                final_state=ControllerState.FAILED,
            )
            raise

        policy_escalates = not outcome.merge_success and self._config.on_failure == FailurePolicy.RAISE_ERROR
        final_state = ControllerState.FAILED if policy_escalates else ControllerState.DONE
        metadata = self._metadata.finalize(
            format_used=outcome.format_used,
            detection=outcome.detection,
            fallback_level=outcome.level,
            merge_success=outcome.merge_success,
            error_detail=outcome.error_detail,
            final_state=final_state,
        )
        self._transition(final_state)
        enforce_failure_policy(outcome, self._config.on_failure, metadata)
        return ContinuationOutcome(result=outcome.result, metadata=metadata, fragments=fragments)


async def run_with_continuation(
    transport: Transport,
    request: Union[ConversationState, str],
    config: Optional[ContinuationConfig] = None,
    **kwargs: Any,
) -> ContinuationOutcome:
    """Run one request through a fresh controller.

    Keyword arguments other than ``cancel`` and ``deadline`` go to the
    controller constructor.
    """
    run_kwargs = {key: kwargs.pop(key) for key in ("cancel", "deadline") if key in kwargs}
    controller = ContinuationController(transport, config, **kwargs)
    return await controller.run(request, **run_kwargs)
