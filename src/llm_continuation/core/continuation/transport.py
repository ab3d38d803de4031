"""Transport boundary between the continuation loop and a model provider.

The controller only ever calls ``Transport.send``. ``ProviderTransport``
adapts any ``LLMProvider`` to that contract.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

from llm_continuation.core.continuation.models import CompletionReason, Fragment, FragmentUsage
from llm_continuation.core.errors import ContentFilterError, LLMError, TransportError
from llm_continuation.core.llm_provider import (
    ChatMessage,
    ChatRequest,
    ChatRole,
    FinishReason,
    LLMProvider,
)

logger = logging.getLogger(__name__)

FINISH_REASON_MAP = {
    FinishReason.STOP: CompletionReason.STOP,
    FinishReason.LENGTH: CompletionReason.LENGTH,
    FinishReason.INCOMPLETE: CompletionReason.INCOMPLETE,
    FinishReason.TOOL_CALL: CompletionReason.TOOL_USE,
    FinishReason.CONTENT_FILTER: CompletionReason.CONTENT_FILTER,
    FinishReason.ERROR: CompletionReason.ERROR,
}


@dataclass
class ConversationState:
    """What a transport needs to issue the next request of a run.

    Attributes:
        messages: The original request messages
        accumulated: Raw text of every fragment received so far
        attempt: 1-based number of the request about to be sent
        previous_response_id: Response id of the last fragment, if any
    """

    messages: List[ChatMessage] = field(default_factory=list)
    accumulated: str = ""
    attempt: int = 1
    previous_response_id: Optional[str] = None

    @classmethod
    def from_prompt(cls, prompt: str, *, system: Optional[str] = None) -> "ConversationState":
        messages = []
        if system:
            messages.append(ChatMessage(role=ChatRole.SYSTEM, content=system))
        messages.append(ChatMessage(role=ChatRole.USER, content=prompt))
        return cls(messages=messages)


@runtime_checkable
class Transport(Protocol):
    """Sends one request and reports one fragment.

    Implementations must report ``completion_reason`` and usage truthfully;
    truncation cannot be detected otherwise. Failures raise
    ``TransportError``.
    """

    async def send(self, state: ConversationState, hint: Optional[str]) -> Fragment:
        ...


class ProviderTransport:
    """Adapts an ``LLMProvider`` to the Transport contract.

    On a continuation request the partial output is replayed as an assistant
    turn followed by the hint as a user turn. Providers that support
    response chaining receive only the hint plus ``previous_response_id``.

    Args:
        provider: Chat provider to call
        model: Model override for every request
        max_tokens: Output budget per request
        temperature: Optional sampling temperature
    """

    def __init__(
        self,
        provider: LLMProvider,
        *,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    def build_request(self, state: ConversationState, hint: Optional[str]) -> ChatRequest:
        chain = bool(hint and state.previous_response_id and self._provider.supports_response_chaining)
        if hint is None:
            messages = list(state.messages)
        elif chain:
            messages = [ChatMessage(role=ChatRole.USER, content=hint)]
        else:
            messages = list(state.messages)
            if state.accumulated:
                messages.append(ChatMessage(role=ChatRole.ASSISTANT, content=state.accumulated))
            messages.append(ChatMessage(role=ChatRole.USER, content=hint))
        return ChatRequest(
            messages=messages,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
            model=self._model,
            previous_response_id=state.previous_response_id if chain else None,
        )

    async def send(self, state: ConversationState, hint: Optional[str]) -> Fragment:
        request = self.build_request(state, hint)
        try:
            response = await self._provider.chat(request)
        except ContentFilterError as e:
            logger.warning("Provider %s filtered attempt %d: %s", self._provider.name, state.attempt, e)
            return Fragment(content="", completion_reason=CompletionReason.CONTENT_FILTER)
        except LLMError as e:
            raise TransportError(
                f"{self._provider.name} request failed: {e}",
                provider=self._provider.name,
                attempt=state.attempt,
            ) from e

        if response.truncated:
            logger.debug(
                "Provider %s truncated attempt %d at %d output tokens",
                self._provider.name,
                state.attempt,
                response.usage.output_tokens,
            )
        return Fragment(
            content=response.text,
            completion_reason=FINISH_REASON_MAP.get(response.finish_reason, CompletionReason.UNKNOWN),
            usage=FragmentUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            response_id=response.response_id,
            model=response.model,
        )
