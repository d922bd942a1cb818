"""Hugging Face Inference API embedding provider adapter.

Posts to the hosted ``feature-extraction`` pipeline for a
sentence-transformers model.  The API answers 503 while a cold model
loads; that status is retryable like any other 5xx.
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

HUGGINGFACE_PIPELINE_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction/{model}"

_MODEL_DIMENSIONS: dict[str, int] = {
    "sentence-transformers/all-MiniLM-L6-v2": 384,
    "sentence-transformers/all-mpnet-base-v2": 768,
    "BAAI/bge-small-en-v1.5": 384,
}


class HuggingFaceEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Hugging Face Inference API."""

    def __init__(
        self,
        config: EmbeddingConfig,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = config.api_key
        self._model = config.model or "sentence-transformers/all-MiniLM-L6-v2"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 384)
        self._url = HUGGINGFACE_PIPELINE_URL.format(model=self._model)
        self._retry_policy = retry_policy
        self._client = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await with_retry(
            lambda: self._post(texts),
            policy=self._retry_policy,
            operation="huggingface_embedding",
        )

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "huggingface"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def _post(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"inputs": texts, "options": {"wait_for_model": True}},
            )
        except httpx.HTTPError as exc:
            raise from_httpx_error(exc, self.get_provider_name(), "Embedding request") from exc

        if response.status_code != 200:
            raise from_http_status(response, self.get_provider_name(), "Embedding request")

        vectors = response.json()
        if not isinstance(vectors, list) or len(vectors) != len(texts):
            raise ProviderError(
                message="Embedding response did not contain one vector per input",
                provider_name=self.get_provider_name(),
            )
        logger.debug("huggingface_embedding_batch", model=self._model, batch_size=len(texts))
        return [[float(value) for value in vector] for vector in vectors]
