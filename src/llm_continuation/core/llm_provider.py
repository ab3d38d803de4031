"""
Chat types shared by providers and ``ProviderTransport``.

A provider turns a ``ChatRequest`` into a ``ChatResponse``. The
continuation loop needs four things back from each call: the generated
text, why generation stopped, the token usage, and (for providers that
keep conversations server-side) the response id to chain the next turn
from.

Example:
    from llm_continuation.core.llm_provider import ChatRequest, ChatResponse, LLMProvider

    class EchoProvider(LLMProvider):
        name = "echo"

        async def chat(self, request: ChatRequest) -> ChatResponse:
            self.validate_request(request)
            return ChatResponse(text=request.messages[-1].content or "")
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from llm_continuation.core.errors.llm import InvalidRequestError

logger = logging.getLogger(__name__)


class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Why a provider stopped generating.

    LENGTH and INCOMPLETE both mean the output budget ran out and the
    response can be continued; INCOMPLETE is what Responses-style APIs
    report instead of LENGTH.
    """

    STOP = "stop"
    LENGTH = "length"
    INCOMPLETE = "incomplete"
    TOOL_CALL = "tool_call"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


@dataclass
class ChatMessage:
    role: ChatRole
    content: Optional[str] = None


@dataclass
class ChatRequest:
    """One generation call.

    Attributes:
        messages: Messages to send; on a chained continuation this is just
            the hint message
        max_tokens: Output-token budget for this call
        temperature: Sampling temperature, provider default when None
        model: Model identifier, provider default when None
        previous_response_id: Response to continue from server-side
    """

    messages: List[ChatMessage]
    max_tokens: int = 4096
    temperature: Optional[float] = None
    model: Optional[str] = None
    previous_response_id: Optional[str] = None


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ChatResponse:
    """Result of one generation call.

    Attributes:
        text: Generated text (empty when nothing was produced)
        finish_reason: Why generation stopped
        usage: Token counts reported by the provider
        model: Model that produced the text
        response_id: Provider id of this response, used for chaining
        raw: Decoded provider payload, kept for debugging
    """

    text: str = ""
    finish_reason: FinishReason = FinishReason.STOP
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: Optional[str] = None
    response_id: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason in (FinishReason.LENGTH, FinishReason.INCOMPLETE)


class LLMProvider(ABC):
    """Base class for chat providers driven by the continuation loop.

    Attributes:
        name: Provider name used in logs and errors
        default_model: Model used when a request names none
        supports_response_chaining: True when ``previous_response_id`` lets
            the provider recall earlier turns, so continuation requests can
            omit the history and the partial output
    """

    name: str = "base"
    default_model: str = ""
    supports_response_chaining: bool = False

    @abstractmethod
    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Run one generation call.

        Raises:
            ContentFilterError: If the provider refused to produce any text
            LLMError: On any other API or network failure
        """

    def validate_request(self, request: ChatRequest) -> None:
        """Reject requests the provider cannot send.

        Raises:
            InvalidRequestError: On empty messages, a non-positive token
                budget, or a chained request to a provider without chaining
        """
        if not request.messages:
            raise InvalidRequestError("Messages cannot be empty", provider=self.name)
        if request.max_tokens < 1:
            raise InvalidRequestError("max_tokens must be positive", provider=self.name, param="max_tokens")
        if request.previous_response_id and not self.supports_response_chaining:
            raise InvalidRequestError(
                f"Provider '{self.name}' cannot chain from a previous response",
                provider=self.name,
                param="previous_response_id",
            )

    def get_model(self, requested: Optional[str] = None) -> str:
        return requested or self.default_model


__all__ = [
    "ChatRole",
    "FinishReason",
    "ChatMessage",
    "ChatRequest",
    "TokenUsage",
    "ChatResponse",
    "LLMProvider",
]
