"""Abstract base class for vector-store service providers.

The vector store owns embedding records and the nearest-neighbour search.
Records are keyed by ``(chunk_id, provider, model)`` so a chunk can carry
embeddings from several models side by side.  Implementations may wrap
ChromaDB (the default, see :mod:`ragline.providers.vector_store`), pgvector,
Qdrant, or anything else that can score cosine similarity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragline.models.embedding import EmbeddingRecord
from ragline.models.retrieval import SearchResult


class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the pipeline.

    Similarity values are normalised so that higher means more similar and
    ``1.0`` is an exact match.
    """

    @abstractmethod
    async def upsert_embedding(self, record: EmbeddingRecord) -> None:
        """Insert or replace one embedding record.

        Writes are at-least-once: upserting the same
        ``(chunk_id, provider, model)`` twice leaves a single record.

        Raises
        ------
        ragline.utils.errors.VectorStoreError
            If the store rejects the write.
        """

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        similarity_threshold: float,
        match_count: int,
    ) -> list[SearchResult]:
        """Return up to *match_count* records scoring at least *similarity_threshold*.

        Parameters
        ----------
        query_vector:
            The question embedding.
        similarity_threshold:
            Minimum similarity (0.0 - 1.0) a record must reach.
        match_count:
            Maximum number of results.

        Returns
        -------
        list[SearchResult]
            Ordered by similarity, highest first.  Empty when nothing clears
            the threshold.
        """

    @abstractmethod
    async def count_embeddings(self, document_id: str) -> int:
        """Return how many searchable embedding records *document_id* has.

        Only records of the provider/model that searches use are counted.
        """

    @abstractmethod
    async def get_document_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        """Return the searchable embedding records of *document_id*."""

    @abstractmethod
    async def delete_document_embeddings(self, document_id: str) -> int:
        """Delete every embedding of *document_id* and return how many were removed."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""
