"""Batch embedding of chunks with per-item failure isolation.

:class:`EmbeddingGenerator` walks a document's chunks in fixed-size
batches, embeds each chunk on its own and upserts the resulting
:class:`~ragline.models.embedding.EmbeddingRecord` straight away, so a
crash mid-document leaves every earlier embedding durable.

One failing chunk never aborts its batch: the error is logged, the chunk
is skipped and the return value (the success count) falls short of the
chunk count.  Transient provider errors are retried inside the provider
adapters, not here.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence

import structlog

from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.chunk import Chunk
from ragline.models.embedding import EmbeddingConfig, EmbeddingRecord
from ragline.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

ProgressCallback = Callable[[float], None]


class EmbeddingGenerator:
    """Embeds chunks batch by batch and stores each vector immediately.

    Parameters
    ----------
    provider:
        Embedding provider bound to ``config.model``.
    vector_store:
        Destination for embedding records.
    config:
        Provider key, model, API key, batch size and inter-batch delay.
        Validated here; an unusable config raises
        :class:`~ragline.utils.errors.ConfigurationError`.
    sleep:
        Awaitable used for the inter-batch delay (injectable for tests).
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        config: EmbeddingConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._validate(config)
        self._provider = provider
        self._vector_store = vector_store
        self._config = config
        self._sleep = sleep

    @staticmethod
    def _validate(config: EmbeddingConfig) -> None:
        if not config.api_key:
            raise ConfigurationError(
                message=f"No API key provided for {config.provider} embedding provider",
                provider_name=config.provider,
            )
        if not config.model:
            raise ConfigurationError(
                message=f"No model specified for {config.provider} embedding provider",
                provider_name=config.provider,
            )
        if config.batch_size <= 0:
            raise ConfigurationError(
                message="Batch size must be greater than 0",
                provider_name=config.provider,
            )

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_batch(
        self,
        chunks: Sequence[Chunk],
        document_title: str = "",
        progress: ProgressCallback | None = None,
        timeout: float | None = None,
    ) -> int:
        """Embed and store *chunks*, returning how many succeeded.

        Parameters
        ----------
        chunks:
            Chunks in document order.
        document_title:
            Copied into each record so search results can name the source.
        progress:
            Called with a 0-100 percentage after each batch.
        timeout:
            Overall budget in seconds, checked before each batch.  Once it
            is spent the remaining batches are skipped and the count so
            far is returned.

        Returns
        -------
        int
            Number of records stored.  Empty chunks and failed items are not
            counted.
        """
        if not chunks:
            return 0

        batch_size = self._config.batch_size
        batches = [chunks[i : i + batch_size] for i in range(0, len(chunks), batch_size)]
        expires_at = None if timeout is None else time.monotonic() + timeout

        stored = 0
        failed = 0
        for batch_index, batch in enumerate(batches):
            if expires_at is not None and time.monotonic() >= expires_at:
                logger.warning(
                    "embedding_deadline_exceeded",
                    batch_index=batch_index,
                    batches_remaining=len(batches) - batch_index,
                    stored=stored,
                )
                break
            if batch_index > 0 and self._config.batch_delay > 0:
                await self._sleep(self._config.batch_delay)

            for position, chunk in enumerate(batch):
                if not chunk.content.strip():
                    logger.warning("embedding_empty_chunk_skipped", chunk_id=chunk.chunk_id)
                    continue
                try:
                    vector = await self._provider.embed_single(chunk.content)
                    await self._vector_store.upsert_embedding(
                        self._build_record(chunk, vector, document_title, batch_index, position, len(batch))
                    )
                    stored += 1
                except Exception as exc:
                    failed += 1
                    logger.error(
                        "embedding_item_failed",
                        chunk_id=chunk.chunk_id,
                        document_id=chunk.document_id,
                        batch_index=batch_index,
                        position_in_batch=position,
                        error=str(exc),
                    )

            logger.debug(
                "embedding_batch_complete",
                batch_index=batch_index,
                total_batches=len(batches),
                stored=stored,
            )
            if progress is not None:
                progress((batch_index + 1) / len(batches) * 100.0)

        logger.info(
            "embedding_complete",
            provider=self._config.provider,
            model=self._config.model,
            chunks=len(chunks),
            stored=stored,
            failed=failed,
        )
        return stored

    async def get_document_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        """Return the stored embeddings of *document_id*."""
        return await self._vector_store.get_document_embeddings(document_id)

    async def delete_document_embeddings(self, document_id: str) -> int:
        """Delete the stored embeddings of *document_id*, returning how many were removed."""
        removed = await self._vector_store.delete_document_embeddings(document_id)
        logger.info("embeddings_deleted", document_id=document_id, removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_record(
        self,
        chunk: Chunk,
        vector: list[float],
        document_title: str,
        batch_index: int,
        position: int,
        batch_size: int,
    ) -> EmbeddingRecord:
        return EmbeddingRecord(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            document_title=document_title,
            chunk_index=chunk.index,
            content=chunk.content,
            vector=vector,
            provider=self._config.provider,
            model=self._config.model,
            similarity_threshold=self._config.similarity_threshold,
            metadata={
                "batch_index": batch_index,
                "position_in_batch": position,
                "batch_size": batch_size,
                "chunk_length": len(chunk.content),
                "embedding_dimensions": len(vector),
            },
        )
