"""Abstract base class for text-embedding service providers.

Defines the contract for converting text into dense vectors.  Concrete
adapters live in :mod:`ragline.providers.embedding` (OpenAI, Cohere,
Hugging Face) and are selected by an opaque string key, so nothing in the
ingestion or retrieval services branches on which provider is in use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval.

    One provider instance is bound to one model, and that model always
    produces vectors of the same length (:meth:`get_dimension`).
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed.  An empty list returns an empty list.

        Returns
        -------
        list[list[float]]
            One vector per input text, in input order.

        Raises
        ------
        ragline.utils.errors.ProviderError
            If the provider returns a non-success response.
        ragline.utils.errors.NetworkTimeoutError
            If the request exceeds its timeout.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text.

        Parameters
        ----------
        text:
            The text to embed.

        Returns
        -------
        list[float]
            The embedding vector.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the length of vectors produced by this provider's model."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the provider key, e.g. ``"openai"``."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier used for every request."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (e.g. has an API key)."""
