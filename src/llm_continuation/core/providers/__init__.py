"""Concrete chat providers."""

from llm_continuation.core.providers.responses_api import (
    API_KEY_ENV_VAR,
    DEFAULT_BASE_URL,
    ResponsesAPIProvider,
)

__all__ = ["API_KEY_ENV_VAR", "DEFAULT_BASE_URL", "ResponsesAPIProvider"]
