"""Translate SDK and HTTP failures into the ragline error hierarchy.

Adapters call these helpers so every provider reports rate limits,
timeouts and server errors the same way, and :func:`ragline.utils.retry.with_retry`
can decide what to retry without knowing which SDK was involved.
"""

from __future__ import annotations

import httpx
import openai

from ragline.utils.errors import (
    NetworkTimeoutError,
    ProviderError,
    RaglineError,
    RateLimitError,
)


def from_openai_error(exc: openai.OpenAIError, provider_name: str, operation: str) -> RaglineError:
    """Map an ``openai`` SDK exception to a :class:`RaglineError`."""
    if isinstance(exc, openai.APITimeoutError):
        return NetworkTimeoutError(message=f"{operation} timed out", provider_name=provider_name)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(message=f"{operation} rate limited: {exc}", provider_name=provider_name)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError(
            message=f"{operation} connection failed: {exc}",
            provider_name=provider_name,
            retryable=True,
        )
    if isinstance(exc, openai.APIStatusError):
        return ProviderError(
            message=f"{operation} failed with status {exc.status_code}: {exc.message}",
            provider_name=provider_name,
            retryable=exc.status_code >= 500,
            status_code=exc.status_code,
        )
    return ProviderError(message=f"{operation} failed: {exc}", provider_name=provider_name)


def from_http_status(response: httpx.Response, provider_name: str, operation: str) -> RaglineError:
    """Map a non-success ``httpx`` response to a :class:`RaglineError`."""
    status = response.status_code
    if status == 429:
        return RateLimitError(message=f"{operation} rate limited", provider_name=provider_name)
    return ProviderError(
        message=f"{operation} failed with status {status}: {response.text[:200]}",
        provider_name=provider_name,
        retryable=status >= 500,
        status_code=status,
    )


def from_httpx_error(exc: httpx.HTTPError, provider_name: str, operation: str) -> RaglineError:
    """Map an ``httpx`` transport exception to a :class:`RaglineError`."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkTimeoutError(message=f"{operation} timed out", provider_name=provider_name)
    return ProviderError(
        message=f"{operation} transport error: {exc}",
        provider_name=provider_name,
        retryable=True,
    )
