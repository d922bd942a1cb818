"""Embedding provider adapters.

Concrete implementations of :class:`~ragline.interfaces.embedding_provider.IEmbeddingProvider`
for OpenAI-compatible, Cohere and Hugging Face Inference APIs.
"""

from ragline.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from ragline.providers.embedding.huggingface_embedding_provider import HuggingFaceEmbeddingProvider
from ragline.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragline.providers.embedding.registry import SUPPORTED_PROVIDERS, build_embedding_provider

__all__ = [
    "CohereEmbeddingProvider",
    "HuggingFaceEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "SUPPORTED_PROVIDERS",
    "build_embedding_provider",
]
