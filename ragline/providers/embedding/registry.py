"""Build an :class:`IEmbeddingProvider` from an :class:`EmbeddingConfig`.

The provider key in the config is opaque to the services; this is the
only place that maps it to a concrete adapter.
"""

from __future__ import annotations

import httpx

from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.models.embedding import EmbeddingConfig
from ragline.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from ragline.providers.embedding.huggingface_embedding_provider import HuggingFaceEmbeddingProvider
from ragline.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragline.utils.errors import ConfigurationError
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy

_HTTP_PROVIDERS = {
    "cohere": CohereEmbeddingProvider,
    "huggingface": HuggingFaceEmbeddingProvider,
}

SUPPORTED_PROVIDERS = ("openai", *_HTTP_PROVIDERS)


def build_embedding_provider(
    config: EmbeddingConfig,
    retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    http_client: httpx.AsyncClient | None = None,
) -> IEmbeddingProvider:
    """Instantiate the adapter named by ``config.provider``.

    Raises
    ------
    ConfigurationError
        If the provider key is not one of :data:`SUPPORTED_PROVIDERS`.
    """
    key = config.provider.strip().lower()
    if key == "openai":
        return OpenAIEmbeddingProvider(config, retry_policy=retry_policy)
    provider_cls = _HTTP_PROVIDERS.get(key)
    if provider_cls is None:
        raise ConfigurationError(
            message=(
                f"Unsupported embedding provider: {config.provider!r} "
                f"(expected one of {', '.join(SUPPORTED_PROVIDERS)})"
            ),
            provider_name=config.provider,
        )
    return provider_cls(config, retry_policy=retry_policy, http_client=http_client)
