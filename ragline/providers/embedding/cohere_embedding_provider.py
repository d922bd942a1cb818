"""Cohere embedding provider adapter.

Calls the Cohere ``/v1/embed`` REST endpoint with ``httpx``.  Documents
are embedded with ``input_type=search_document``; Cohere recommends the
same model for queries, so questions use the same call.
"""

from __future__ import annotations

import httpx
import structlog

from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.models.embedding import EmbeddingConfig
from ragline.providers.error_mapping import from_http_status, from_httpx_error
from ragline.utils.errors import ProviderError
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

logger = structlog.get_logger(logger_name=__name__)

COHERE_EMBED_URL = "https://api.cohere.ai/v1/embed"
_COHERE_BATCH_LIMIT = 96

_MODEL_DIMENSIONS: dict[str, int] = {
    "embed-english-v3.0": 1024,
    "embed-multilingual-v3.0": 1024,
    "embed-english-light-v3.0": 384,
    "embed-multilingual-light-v3.0": 384,
}


class CohereEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by Cohere's embed API (``embed-english-v3.0`` by default)."""

    def __init__(
        self,
        config: EmbeddingConfig,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = config.api_key
        self._model = config.model or "embed-english-v3.0"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1024)
        self._retry_policy = retry_policy
        self._client = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), _COHERE_BATCH_LIMIT):
            batch = texts[start : start + _COHERE_BATCH_LIMIT]
            all_embeddings.extend(
                await with_retry(
                    lambda batch=batch: self._post(batch),
                    policy=self._retry_policy,
                    operation="cohere_embedding",
                )
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "cohere"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def _post(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._client.post(
                COHERE_EMBED_URL,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "texts": batch,
                    "model": self._model,
                    "input_type": "search_document",
                },
            )
        except httpx.HTTPError as exc:
            raise from_httpx_error(exc, self.get_provider_name(), "Embedding request") from exc

        if response.status_code != 200:
            raise from_http_status(response, self.get_provider_name(), "Embedding request")

        vectors = response.json().get("embeddings")
        if not isinstance(vectors, list) or len(vectors) != len(batch):
            raise ProviderError(
                message="Embedding response did not contain one vector per input",
                provider_name=self.get_provider_name(),
            )
        logger.debug("cohere_embedding_batch", model=self._model, batch_size=len(batch))
        return vectors
