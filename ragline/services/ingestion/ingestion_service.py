"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **fetch -> extract -> chunk -> store chunks -> embed**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the blob provider, text extractor, chunker, embedding
generator and the two stores without any of them knowing about each other.
It is also the only writer of document status:

    pending -> processing -> completed | failed

A document that already has chunks and embeddings is marked completed
without any further work, so re-running ingestion never duplicates data.
Any stage failure is caught here and recorded on the document as its
``error_message``; a batch of documents keeps going after one fails.

All dependencies are injected via constructor (Dependency Injection), so
providers can be swapped without changing this class.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Sequence

import structlog

from ragline.interfaces.blob_provider import IBlobProvider
from ragline.interfaces.document_store import IDocumentStore
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.chunk import ChunkingConfig
from ragline.models.document import Document, DocumentStatus
from ragline.models.extraction import ExtractionFailureReason
from ragline.models.ingestion import IngestionResult, IngestionStage
from ragline.pipeline.progress_tracker import STAGE_PROGRESS, ProgressTracker
from ragline.services.extraction.text_extractor import DEFAULT_EXTRACTION_TIMEOUT, TextExtractor
from ragline.services.ingestion.chunker import Chunker
from ragline.services.ingestion.embedding_generator import EmbeddingGenerator
from ragline.utils.errors import (
    ExtractionError,
    ExtractionTimeoutError,
    IngestionError,
    NetworkTimeoutError,
    RaglineError,
)
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_FETCH_TIMEOUT = 30.0


class IngestionService:
    """Drives documents through fetch, extraction, chunking and embedding.

    Parameters
    ----------
    document_store:
        Document registry and chunk persistence.
    vector_store:
        Embedding records; consulted for the idempotency check and to drop
        stale embeddings before a document is re-chunked.
    blob_provider:
        Source of raw document bytes.
    extractor:
        PDF text extraction.
    chunker:
        Splits extracted text into chunks.
    embedding_generator:
        Embeds and stores chunks.
    progress_tracker:
        Receives stage updates; a private tracker is used when omitted.
    chunking_config:
        Overrides the chunker's default configuration.
    retry_policy:
        Backoff policy for blob fetches.
    fetch_timeout:
        Seconds allowed per fetch attempt.
    extraction_timeout:
        Seconds allowed for text extraction.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        blob_provider: IBlobProvider,
        extractor: TextExtractor,
        chunker: Chunker,
        embedding_generator: EmbeddingGenerator,
        progress_tracker: ProgressTracker | None = None,
        chunking_config: ChunkingConfig | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        extraction_timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
    ) -> None:
        self._document_store = document_store
        self._vector_store = vector_store
        self._blob_provider = blob_provider
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_generator = embedding_generator
        self._progress = progress_tracker or ProgressTracker()
        self._chunking_config = chunking_config
        self._retry_policy = retry_policy
        self._fetch_timeout = fetch_timeout
        self._extraction_timeout = extraction_timeout

    @property
    def progress_tracker(self) -> ProgressTracker:
        return self._progress

    # ------------------------------------------------------------------
    # Document registry
    # ------------------------------------------------------------------

    async def register_document(
        self,
        title: str,
        source_url: str,
        mime_type: str = "application/pdf",
        document_id: str | None = None,
    ) -> Document:
        """Register a new ``pending`` document for later ingestion."""
        document = Document(
            document_id=document_id or str(uuid.uuid4()),
            title=title,
            source_url=source_url,
            mime_type=mime_type,
        )
        stored = await self._document_store.add_document(document)
        logger.info("document_registered", document_id=stored.document_id, title=title)
        return stored

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document with its chunks and embeddings."""
        removed = await self._embedding_generator.delete_document_embeddings(document_id)
        deleted = await self._document_store.delete_document(document_id)
        logger.info("document_deleted", document_id=document_id, embeddings_removed=removed, deleted=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest_document(self, document: Document) -> IngestionResult:
        """Ingest one document and record the outcome on it.

        Never raises for a pipeline failure: the document is marked
        ``failed`` with the error message and the result carries it too.

        Returns
        -------
        IngestionResult
            Final status, chunk/embedding counts and elapsed time.
            ``skipped`` is set when existing chunks and embeddings
            short-circuited the run.
        """
        start = time.perf_counter()
        document_id = document.document_id
        log = logger.bind(document_id=document_id, title=document.title)

        chunks_created = 0
        embeddings_created = 0
        page_count = 0
        strategy: str | None = None
        try:
            existing_chunks = await self._document_store.count_chunks(document_id)
            existing_embeddings = await self._vector_store.count_embeddings(document_id)
            if existing_chunks > 0 and existing_embeddings > 0:
                await self._document_store.update_status(document_id, DocumentStatus.COMPLETED)
                self._progress.update(document_id, IngestionStage.COMPLETED, 100.0, "Already processed")
                log.info("ingestion_skipped", chunks=existing_chunks, embeddings=existing_embeddings)
                return IngestionResult(
                    document_id=document_id,
                    title=document.title,
                    status=DocumentStatus.COMPLETED,
                    chunks_created=existing_chunks,
                    embeddings_created=existing_embeddings,
                    skipped=True,
                    ingestion_time=time.perf_counter() - start,
                )

            await self._document_store.update_status(document_id, DocumentStatus.PROCESSING)

            # Stage 1: fetch + extract.
            self._report(document_id, IngestionStage.EXTRACTION, "Fetching document")
            data = await with_retry(
                lambda: self._fetch(document.source_url),
                policy=self._retry_policy,
                operation="blob_fetch",
            )
            extraction = await self._extractor.extract_async(
                data,
                timeout=self._extraction_timeout,
                progress=self._threadsafe_callback(document_id, IngestionStage.EXTRACTION),
            )
            if not extraction.success:
                if extraction.failure_reason is ExtractionFailureReason.TIMEOUT:
                    raise ExtractionTimeoutError(extraction.error or "Text extraction timed out")
                raise ExtractionError(extraction.error or "No text could be extracted from the document")
            page_count = extraction.page_count
            strategy = extraction.strategy
            self._report(document_id, IngestionStage.EXTRACTION, "Text extracted", end=True)

            # Stage 2: chunk.
            self._report(document_id, IngestionStage.CHUNKING, "Chunking text")
            chunks = self._chunker.chunk_detailed(
                extraction.text,
                self._chunking_config,
                document_id=document_id,
            )
            if not chunks:
                raise IngestionError("No chunks were produced from the extracted text")
            self._report(document_id, IngestionStage.CHUNKING, f"{len(chunks)} chunks", end=True)

            # Stale embeddings from an interrupted run point at chunk ids
            # that are about to be replaced.
            await self._vector_store.delete_document_embeddings(document_id)
            chunks_created = await self._document_store.replace_chunks(document_id, chunks)

            # Stage 3: embed.
            self._report(document_id, IngestionStage.EMBEDDING, "Generating embeddings")
            embeddings_created = await self._embedding_generator.embed_batch(
                chunks,
                document_title=document.title,
                progress=self._progress.stage_callback(document_id, IngestionStage.EMBEDDING),
            )
            if embeddings_created == 0:
                raise IngestionError("No embeddings were generated for the document chunks")

            # Stage 4: finalize.
            self._report(document_id, IngestionStage.STORAGE, "Finalizing")
            await self._document_store.update_status(document_id, DocumentStatus.COMPLETED)
            self._progress.update(document_id, IngestionStage.COMPLETED, 100.0, "Completed")

            if embeddings_created < chunks_created:
                log.warning(
                    "ingestion_partial",
                    chunks=chunks_created,
                    embeddings=embeddings_created,
                )
            elapsed = time.perf_counter() - start
            log.info(
                "ingestion_complete",
                chunks=chunks_created,
                embeddings=embeddings_created,
                page_count=page_count,
                extraction_strategy=strategy,
                elapsed_s=round(elapsed, 2),
            )
            return IngestionResult(
                document_id=document_id,
                title=document.title,
                status=DocumentStatus.COMPLETED,
                chunks_created=chunks_created,
                embeddings_created=embeddings_created,
                page_count=page_count,
                extraction_strategy=strategy,
                ingestion_time=elapsed,
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, RaglineError) else str(exc)
            log.error("ingestion_failed", error=message, error_type=type(exc).__name__)
            await self._mark_failed(document_id, message)
            return IngestionResult(
                document_id=document_id,
                title=document.title,
                status=DocumentStatus.FAILED,
                chunks_created=chunks_created,
                embeddings_created=embeddings_created,
                error=message,
                page_count=page_count,
                extraction_strategy=strategy,
                ingestion_time=time.perf_counter() - start,
            )

    async def ingest_documents(self, documents: Sequence[Document]) -> list[IngestionResult]:
        """Ingest *documents* one after another, in submission order.

        A failing document is recorded and the batch continues.
        """
        results: list[IngestionResult] = []
        for document in documents:
            results.append(await self.ingest_document(document))

        logger.info(
            "ingestion_batch_complete",
            documents=len(results),
            completed=sum(1 for r in results if r.status is DocumentStatus.COMPLETED),
            failed=sum(1 for r in results if r.status is DocumentStatus.FAILED),
            skipped=sum(1 for r in results if r.skipped),
        )
        return results

    async def ingest_pending(self) -> list[IngestionResult]:
        """Ingest every document currently in ``pending`` status."""
        pending = await self._document_store.list_documents([DocumentStatus.PENDING])
        return await self.ingest_documents(pending)

    async def reconcile(self) -> list[str]:
        """Correct documents whose status disagrees with their stored data.

        * ``completed`` without chunks or embeddings -> ``pending``
        * ``pending``/``failed`` with both chunks and embeddings -> ``completed``

        Returns
        -------
        list[str]
            Ids of the documents whose status changed.
        """
        corrected: list[str] = []
        for document in await self._document_store.list_documents():
            chunks = await self._document_store.count_chunks(document.document_id)
            embeddings = await self._vector_store.count_embeddings(document.document_id)
            has_content = chunks > 0 and embeddings > 0

            target: DocumentStatus | None = None
            if document.status is DocumentStatus.COMPLETED and not has_content:
                target = DocumentStatus.PENDING
            elif document.status in (DocumentStatus.PENDING, DocumentStatus.FAILED) and has_content:
                target = DocumentStatus.COMPLETED

            if target is not None:
                await self._document_store.update_status(document.document_id, target)
                corrected.append(document.document_id)
                logger.info(
                    "document_status_reconciled",
                    document_id=document.document_id,
                    previous=document.status.value,
                    status=target.value,
                    chunks=chunks,
                    embeddings=embeddings,
                )
        return corrected

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch(self, locator: str) -> bytes:
        try:
            return await asyncio.wait_for(self._blob_provider.fetch(locator), timeout=self._fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise NetworkTimeoutError(
                message=f"Fetching {locator} timed out after {self._fetch_timeout:.0f}s",
                provider_name=self._blob_provider.get_provider_name(),
            ) from exc

    async def _mark_failed(self, document_id: str, message: str) -> None:
        self._progress.update(document_id, IngestionStage.FAILED, 100.0, message)
        try:
            await self._document_store.update_status(document_id, DocumentStatus.FAILED, message)
        except Exception as exc:
            logger.error("document_status_update_failed", document_id=document_id, error=str(exc))

    def _report(self, document_id: str, stage: IngestionStage, message: str, end: bool = False) -> None:
        start, finish = STAGE_PROGRESS[stage]
        self._progress.update(document_id, stage, finish if end else start, message)

    def _threadsafe_callback(self, document_id: str, stage: IngestionStage):  # noqa: ANN202
        """Stage callback that can be called from the extraction worker thread."""
        loop = asyncio.get_running_loop()
        report = self._progress.stage_callback(document_id, stage)

        def _callback(percent: float) -> None:
            loop.call_soon_threadsafe(report, percent)

        return _callback
