"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible servers via a custom
``base_url``.
"""

from __future__ import annotations

import openai
import structlog

from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.models.embedding import EmbeddingConfig
from ragline.providers.error_mapping import from_openai_error
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  Each request
    is bounded by ``config.request_timeout`` and transient failures are
    retried with backoff.
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = config.api_key
        self._model = config.model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)
        self._retry_policy = retry_policy

        if client is None:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(config.request_timeout, connect=5.0),
                # Retries are handled by with_retry.
                "max_retries": 0,
            }
            if config.base_url:
                client_kwargs["base_url"] = config.base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches of 2048 if the input exceeds the
        per-call limit.
        """
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
            batch = texts[start : start + _OPENAI_BATCH_LIMIT]
            all_embeddings.extend(
                await with_retry(
                    lambda batch=batch: self._create(batch),
                    policy=self._retry_policy,
                    operation="openai_embedding",
                )
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "openai"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    async def _create(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=batch, model=self._model)
        except openai.OpenAIError as exc:
            raise from_openai_error(exc, self.get_provider_name(), "Embedding request") from exc

        vectors = [item.embedding for item in sorted(response.data, key=lambda item: item.index)]
        if vectors:
            self._dimension = len(vectors[0])
        logger.debug(
            "openai_embedding_batch",
            model=self._model,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return vectors
