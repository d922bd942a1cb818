"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When a custom ``base_url`` is configured (e.g. TogetherAI, Groq, a local
vLLM server), the client points at that URL instead of the default OpenAI
endpoint.
"""

from __future__ import annotations

import openai
import structlog

from ragline.interfaces.llm_provider import ILLMProvider
from ragline.providers.error_mapping import from_openai_error
from ragline.utils.errors import ProviderError
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default.  Each request is bounded by *timeout*
    and transient failures (timeouts, rate limits, 5xx) are retried with
    backoff.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "",
        timeout: float = 15.0,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or "gpt-4o-mini"
        self._timeout = timeout
        self._retry_policy = retry_policy

        if client is None:
            client_kwargs: dict = {
                "api_key": api_key,
                "timeout": openai.Timeout(timeout, connect=5.0),
                "max_retries": 0,
            }
            if base_url:
                client_kwargs["base_url"] = base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._provider_label = "openai-compatible" if base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        history: list[dict[str, str]] | None = None,
    ) -> str:
        """Generate a completion from system prompt, prior turns and question."""
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(
            {"role": turn["role"], "content": turn["content"]}
            for turn in history or []
            if turn.get("role") in ("user", "assistant") and turn.get("content")
        )
        messages.append({"role": "user", "content": user_prompt})

        return await with_retry(
            lambda: self._create(messages, temperature, max_tokens),
            policy=self._retry_policy,
            operation="openai_completion",
        )

    def get_provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def _create(self, messages: list[dict[str, str]], temperature: float, max_tokens: int) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as exc:
            raise from_openai_error(exc, self.get_provider_name(), "Chat completion") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._model,
            provider=self._provider_label,
            messages=len(messages),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content
