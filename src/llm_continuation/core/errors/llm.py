"""Errors raised by chat providers.

None of these reach callers of the continuation loop directly:
``ProviderTransport`` turns ``ContentFilterError`` into a ``content_filter``
fragment and wraps every other ``LLMError`` in a ``TransportError``.
"""

from typing import Optional


class LLMError(Exception):
    """A provider call failed.

    Attributes:
        provider: Name of the provider that failed
        retryable: Whether repeating the same call may succeed
        status_code: HTTP status when the failure came from an HTTP reply
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        retryable: bool = False,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable
        self.status_code = status_code


class RateLimitError(LLMError):
    """The provider throttled the call; ``retry_after`` is in seconds."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider=provider, retryable=True, status_code=429)
        self.retry_after = retry_after


class AuthenticationError(LLMError):
    def __init__(self, message: str = "Authentication failed", *, provider: Optional[str] = None):
        super().__init__(message, provider=provider, status_code=401)


class InvalidRequestError(LLMError):
    """The request was rejected before or by the provider.

    ``param`` names the offending request field when it is known.
    """

    def __init__(self, message: str, *, provider: Optional[str] = None, param: Optional[str] = None):
        super().__init__(message, provider=provider, status_code=400)
        self.param = param


class ContentFilterError(LLMError):
    """The provider's content policy stopped generation before any text."""

    def __init__(self, message: str = "Content filtered", *, provider: Optional[str] = None):
        super().__init__(message, provider=provider)


def error_for_status(
    status_code: int,
    message: str,
    *,
    provider: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> LLMError:
    """Build the ``LLMError`` subclass matching an HTTP error status."""
    if status_code in (401, 403):
        return AuthenticationError(message, provider=provider)
    if status_code == 429:
        return RateLimitError(message, provider=provider, retry_after=retry_after)
    if status_code in (400, 422):
        return InvalidRequestError(message, provider=provider)
    return LLMError(
        f"API error {status_code}: {message}",
        provider=provider,
        retryable=status_code >= 500 or status_code == 408,
        status_code=status_code,
    )
