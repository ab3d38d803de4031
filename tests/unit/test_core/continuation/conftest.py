"""Shared fixtures for continuation engine tests."""

import asyncio
from typing import List, Optional, Sequence, Union

import pytest

from llm_continuation.config import ContinuationConfig
from llm_continuation.core.continuation.models import CompletionReason, Fragment, FragmentUsage
from llm_continuation.core.continuation.transport import ConversationState
from llm_continuation.core.errors import TransportError
from llm_continuation.core.observability import MetricsCollector

Step = Union[Fragment, Exception, float]


class ScriptedTransport:
    """Transport returning a scripted sequence of fragments.

    A float entry sleeps that many seconds before answering with the next
    entry; an exception entry is raised from ``send``.
    """

    def __init__(self, steps: Sequence[Step]):
        self._steps: List[Step] = list(steps)
        self.calls: List[ConversationState] = []
        self.hints: List[Optional[str]] = []

    async def send(self, state: ConversationState, hint: Optional[str]) -> Fragment:
        self.calls.append(
            ConversationState(
                messages=list(state.messages),
                accumulated=state.accumulated,
                attempt=state.attempt,
                previous_response_id=state.previous_response_id,
            )
        )
        self.hints.append(hint)
        if not self._steps:
            raise AssertionError("ScriptedTransport ran out of steps")
        step = self._steps.pop(0)
        while isinstance(step, float):
            await asyncio.sleep(step)
            step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def _truncated(content: str, *, response_id: Optional[str] = None, output_tokens: int = 100) -> Fragment:
    return Fragment(
        content=content,
        completion_reason=CompletionReason.LENGTH,
        usage=FragmentUsage(input_tokens=50, output_tokens=output_tokens),
        response_id=response_id,
        model="test-model",
    )


def _finished(content: str, *, response_id: Optional[str] = None, output_tokens: int = 40) -> Fragment:
    return Fragment(
        content=content,
        completion_reason=CompletionReason.STOP,
        usage=FragmentUsage(input_tokens=50, output_tokens=output_tokens),
        response_id=response_id,
        model="test-model",
    )


@pytest.fixture
def truncated():
    """Factory for fragments cut off by the length limit."""
    return _truncated


@pytest.fixture
def finished():
    """Factory for fragments that completed normally."""
    return _finished


@pytest.fixture
def scripted():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def config():
    return ContinuationConfig(max_attempts=5, timeout_seconds=2.0)


@pytest.fixture
def metrics():
    return MetricsCollector(prefix="test")


@pytest.fixture
def transport_error():
    return TransportError("connection reset", provider="scripted")
