"""HTTP chat provider for Responses-style APIs.

Speaks the ``POST {base_url}/responses`` shape: ``input`` messages,
``max_output_tokens``, optional ``previous_response_id``. Truncation is
reported through ``status: incomplete`` plus ``incomplete_details``, which
is mapped onto ``FinishReason``.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from llm_continuation.core.errors.llm import ContentFilterError, LLMError, error_for_status
from llm_continuation.core.llm_provider import (
    ChatRequest,
    ChatResponse,
    ChatRole,
    FinishReason,
    LLMProvider,
    TokenUsage,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 120.0
RESPONSES_ENDPOINT = "/responses"
API_KEY_ENV_VAR = "OPENAI_API_KEY"


class ResponsesAPIProvider(LLMProvider):
    """Chat provider over a Responses-style HTTP API.

    Args:
        api_key: API key; read from OPENAI_API_KEY when omitted
        base_url: API base URL
        default_model: Model used when a request names none
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)

    Raises:
        ValueError: If no API key is provided or found in environment
    """

    name = "responses"
    supports_response_chaining = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        default_model: str = "gpt-4.1-mini",
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key or os.environ.get(API_KEY_ENV_VAR)
        if not self._api_key:
            raise ValueError(
                "API key required. Provide via api_key parameter "
                f"or {API_KEY_ENV_VAR} environment variable."
            )
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self.default_model = default_model

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self.validate_request(request)
        payload = self._build_payload(request)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self._base_url}{RESPONSES_ENDPOINT}"

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
            except httpx.TimeoutException as e:
                raise LLMError(f"Request timed out: {e}", provider=self.name, retryable=True) from e
            except httpx.RequestError as e:
                raise LLMError(f"Request failed: {e}", provider=self.name, retryable=True) from e

        self._raise_for_status(response)
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(
                f"Response body is not JSON (HTTP {response.status_code}): {response.text[:200]}",
                provider=self.name,
                retryable=True,
            ) from e
        if not isinstance(data, dict):
            raise LLMError(
                f"Expected a JSON object, got {type(data).__name__}",
                provider=self.name,
            )
        try:
            return self._parse_response(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise LLMError(f"Malformed response payload: {e}", provider=self.name) from e

    def _build_payload(self, request: ChatRequest) -> Dict[str, Any]:
        instructions = [m.content for m in request.messages if m.role == ChatRole.SYSTEM and m.content]
        payload: Dict[str, Any] = {
            "model": self.get_model(request.model),
            "input": [
                {"role": m.role.value, "content": m.content or ""}
                for m in request.messages
                if m.role != ChatRole.SYSTEM
            ],
            "max_output_tokens": request.max_tokens,
        }
        if instructions:
            payload["instructions"] = "\n\n".join(instructions)
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.previous_response_id:
            payload["previous_response_id"] = request.previous_response_id
        return payload

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        error = error_for_status(
            response.status_code,
            self._extract_error_message(response),
            provider=self.name,
            retry_after=self._parse_retry_after(response),
        )
        logger.debug("%s returned HTTP %d (retryable=%s)", self.name, response.status_code, error.retryable)
        raise error

    def _parse_response(self, data: Dict[str, Any]) -> ChatResponse:
        finish_reason = _infer_finish_reason(data)
        text = _output_text(data)
        if finish_reason == FinishReason.CONTENT_FILTER and not text:
            raise ContentFilterError(provider=self.name)

        usage = data.get("usage") or {}
        return ChatResponse(
            text=text,
            finish_reason=finish_reason,
            usage=TokenUsage(
                input_tokens=int(usage.get("input_tokens") or 0),
                output_tokens=int(usage.get("output_tokens") or 0),
            ),
            model=data.get("model"),
            response_id=data.get("id"),
            raw=data,
        )

    def _parse_retry_after(self, response: httpx.Response) -> Optional[float]:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return None

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text[:200] if response.text else "Unknown error"
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict):
            return str(error.get("message", error))
        if error:
            return str(error)
        return response.text[:200]


def _infer_finish_reason(data: Dict[str, Any]) -> FinishReason:
    """Map Responses status fields onto FinishReason."""
    status = data.get("status")
    details = data.get("incomplete_details") or {}
    if data.get("truncation") in (True, "true"):
        return FinishReason.LENGTH
    if status == "incomplete" or details:
        if details.get("reason") == "content_filter":
            return FinishReason.CONTENT_FILTER
        return FinishReason.INCOMPLETE
    if status == "failed":
        return FinishReason.ERROR
    for item in data.get("output") or []:
        if item.get("type") == "function_call":
            return FinishReason.TOOL_CALL
    return FinishReason.STOP


def _output_text(data: Dict[str, Any]) -> str:
    """Concatenate every ``output_text`` part of every output message."""
    if isinstance(data.get("output_text"), str):
        return data["output_text"]
    parts: List[str] = []
    for item in data.get("output") or []:
        if item.get("type") != "message":
            continue
        for content in item.get("content") or []:
            if content.get("type") == "output_text" and isinstance(content.get("text"), str):
                parts.append(content["text"])
    return "".join(parts)
