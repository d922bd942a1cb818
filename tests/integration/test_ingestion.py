"""Integration tests for IngestionService.

Real TextExtractor, Chunker and EmbeddingGenerator against in-memory
stores, a mock blob provider and a hash-based embedding provider.
"""

from __future__ import annotations

import pytest

from ragline.models.chunk import Chunk, ChunkingConfig
from ragline.models.document import Document, DocumentStatus
from ragline.models.embedding import EmbeddingConfig, EmbeddingRecord
from ragline.models.ingestion import IngestionStage
from ragline.pipeline.progress_tracker import ALL_DOCUMENTS
from ragline.services.extraction.text_extractor import TextExtractor
from ragline.services.ingestion.chunker import Chunker
from ragline.services.ingestion.embedding_generator import EmbeddingGenerator
from ragline.services.ingestion.ingestion_service import IngestionService
from ragline.utils.errors import NetworkTimeoutError
from tests.conftest import (
    FAST_RETRY,
    MockBlobProvider,
    MockDocumentStore,
    MockEmbeddingProvider,
    MockVectorStore,
)

CHUNKING = ChunkingConfig(chunk_size=120, overlap=20, min_chunk_size=10)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _FlakyBlobProvider(MockBlobProvider):
    """Times out on the first fetch of each locator, then serves it."""

    async def fetch(self, locator: str) -> bytes:
        first = locator not in self.fetches
        self.fetches.append(locator)
        if first:
            raise NetworkTimeoutError(message="slow drive", provider_name="mock")
        return self.blobs[locator]  # type: ignore[return-value]


def _service(
    document_store: MockDocumentStore,
    vector_store: MockVectorStore,
    blob_provider: MockBlobProvider,
    embedding_provider: MockEmbeddingProvider | None = None,
) -> IngestionService:
    config = EmbeddingConfig(provider="mock", model="mock-embed-v1", api_key="k", batch_size=4, batch_delay=0.0)
    generator = EmbeddingGenerator(embedding_provider or MockEmbeddingProvider(), vector_store, config)
    return IngestionService(
        document_store=document_store,
        vector_store=vector_store,
        blob_provider=blob_provider,
        extractor=TextExtractor(),
        chunker=Chunker(CHUNKING),
        embedding_generator=generator,
        retry_policy=FAST_RETRY,
    )


async def _register(service: IngestionService, document_id: str, url: str) -> Document:
    return await service.register_document(title=f"Doc {document_id}", source_url=url, document_id=document_id)


# ---------------------------------------------------------------------------
# Happy path and idempotency
# ---------------------------------------------------------------------------


class TestIngestDocument:
    async def test_full_pipeline(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://report": report_pdf}))
        events: list[tuple[IngestionStage, float]] = []
        service.progress_tracker.register_listener(ALL_DOCUMENTS, lambda d, s, p, m: events.append((s, p)))
        document = await _register(service, "d1", "mem://report")

        result = await service.ingest_document(document)

        assert result.status is DocumentStatus.COMPLETED
        assert result.chunks_created > 1
        assert result.embeddings_created == result.chunks_created
        assert not result.partial
        assert result.page_count == 1
        assert result.extraction_strategy is not None

        stored = mock_document_store.documents["d1"]
        assert stored.status is DocumentStatus.COMPLETED
        assert stored.processed_at is not None
        assert [s for _, s in mock_document_store.status_history] == [
            DocumentStatus.PROCESSING,
            DocumentStatus.COMPLETED,
        ]
        chunks = await mock_document_store.get_chunks("d1")
        assert chunks[0].content.startswith("The annual report")
        assert await mock_vector_store.count_embeddings("d1") == result.chunks_created

        stages = {stage for stage, _ in events}
        assert {IngestionStage.EXTRACTION, IngestionStage.CHUNKING, IngestionStage.EMBEDDING} <= stages
        assert events[-1] == (IngestionStage.COMPLETED, 100.0)

    async def test_second_run_is_skipped(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        provider = MockEmbeddingProvider()
        blobs = MockBlobProvider({"mem://report": report_pdf})
        service = _service(mock_document_store, mock_vector_store, blobs, provider)
        document = await _register(service, "d1", "mem://report")

        first = await service.ingest_document(document)
        calls_after_first = provider.call_count
        records_after_first = dict(mock_vector_store.records)

        second = await service.ingest_document(mock_document_store.documents["d1"])

        assert second.skipped
        assert second.status is DocumentStatus.COMPLETED
        assert second.chunks_created == first.chunks_created
        assert second.embeddings_created == first.embeddings_created
        assert provider.call_count == calls_after_first
        assert mock_vector_store.records == records_after_first
        assert blobs.fetches == ["mem://report"]

    async def test_stale_embeddings_replaced(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://report": report_pdf}))
        document = await _register(service, "d1", "mem://report")
        await mock_vector_store.upsert_embedding(
            EmbeddingRecord(chunk_id="old-chunk", document_id="d1", vector=[1.0], provider="mock", model="mock-embed-v1")
        )

        result = await service.ingest_document(document)

        assert result.status is DocumentStatus.COMPLETED
        assert not any(r.chunk_id == "old-chunk" for r in mock_vector_store.records.values())


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestIngestionFailures:
    async def test_invalid_pdf_marks_document_failed(
        self,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://bad": b"<html></html>"}))
        document = await _register(service, "d1", "mem://bad")

        result = await service.ingest_document(document)

        assert result.status is DocumentStatus.FAILED
        assert result.error == "Invalid PDF format: missing %PDF- header"
        assert mock_document_store.documents["d1"].error_message == result.error
        assert await mock_document_store.count_chunks("d1") == 0
        assert service.progress_tracker.get_status("d1")["stage"] == "failed"

    async def test_batch_continues_after_failure(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        blobs = MockBlobProvider({"mem://a": report_pdf, "mem://c": report_pdf})
        service = _service(mock_document_store, mock_vector_store, blobs)
        documents = [
            await _register(service, "a", "mem://a"),
            await _register(service, "b", "mem://missing"),
            await _register(service, "c", "mem://c"),
        ]

        results = await service.ingest_documents(documents)

        assert [r.status for r in results] == [
            DocumentStatus.COMPLETED,
            DocumentStatus.FAILED,
            DocumentStatus.COMPLETED,
        ]
        assert "not found" in (results[1].error or "")
        # Not-found is terminal, so it is fetched exactly once.
        assert blobs.fetches.count("mem://missing") == 1

    async def test_transient_fetch_failure_is_retried(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        blobs = _FlakyBlobProvider({"mem://report": report_pdf})
        service = _service(mock_document_store, mock_vector_store, blobs)

        result = await service.ingest_document(await _register(service, "d1", "mem://report"))

        assert result.status is DocumentStatus.COMPLETED
        assert blobs.fetches == ["mem://report", "mem://report"]

    async def test_partial_embeddings_still_complete(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        provider = MockEmbeddingProvider(fail_on_odd_calls=True)
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://r": report_pdf}), provider)

        result = await service.ingest_document(await _register(service, "d1", "mem://r"))

        assert result.status is DocumentStatus.COMPLETED
        assert 0 < result.embeddings_created < result.chunks_created
        assert result.partial

    async def test_no_embeddings_fails_document(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.fail_upserts = True
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://r": report_pdf}))

        result = await service.ingest_document(await _register(service, "d1", "mem://r"))

        assert result.status is DocumentStatus.FAILED
        assert result.error == "No embeddings were generated for the document chunks"
        assert result.chunks_created > 0


# ---------------------------------------------------------------------------
# Registry maintenance
# ---------------------------------------------------------------------------


class TestRegistry:
    async def test_ingest_pending_only(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://r": report_pdf}))
        await _register(service, "new", "mem://r")
        await mock_document_store.add_document(
            Document(document_id="broken", title="Broken", source_url="mem://r", status=DocumentStatus.FAILED)
        )

        results = await service.ingest_pending()

        assert [r.document_id for r in results] == ["new"]

    async def test_reconcile(
        self,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider())
        for document_id, status in (
            ("hollow", DocumentStatus.COMPLETED),
            ("recovered", DocumentStatus.FAILED),
            ("busy", DocumentStatus.PROCESSING),
            ("fine", DocumentStatus.COMPLETED),
        ):
            await mock_document_store.add_document(Document(document_id=document_id, title=document_id, status=status))
        for document_id in ("recovered", "busy", "fine"):
            await mock_document_store.replace_chunks(
                document_id, [Chunk(chunk_id=f"{document_id}-0", document_id=document_id, index=0, content="text")]
            )
            await mock_vector_store.upsert_embedding(
                EmbeddingRecord(
                    chunk_id=f"{document_id}-0",
                    document_id=document_id,
                    vector=[1.0],
                    provider="mock",
                    model="mock-embed-v1",
                )
            )

        changed = await service.reconcile()

        assert sorted(changed) == ["hollow", "recovered"]
        assert mock_document_store.documents["hollow"].status is DocumentStatus.PENDING
        assert mock_document_store.documents["recovered"].status is DocumentStatus.COMPLETED
        assert mock_document_store.documents["busy"].status is DocumentStatus.PROCESSING

    async def test_delete_document(
        self,
        report_pdf: bytes,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider({"mem://r": report_pdf}))
        await service.ingest_document(await _register(service, "d1", "mem://r"))

        assert await service.delete_document("d1") is True
        assert mock_vector_store.records == {}
        assert await mock_document_store.count_chunks("d1") == 0
        assert await service.delete_document("d1") is False

    async def test_register_generates_ids(
        self,
        mock_document_store: MockDocumentStore,
        mock_vector_store: MockVectorStore,
    ) -> None:
        service = _service(mock_document_store, mock_vector_store, MockBlobProvider())
        first = await service.register_document("One", "mem://1")
        second = await service.register_document("Two", "mem://2")

        assert first.document_id != second.document_id
        assert first.status is DocumentStatus.PENDING


@pytest.mark.parametrize("chunk_size", [80, 200])
async def test_every_chunk_is_embedded_once(
    chunk_size: int,
    report_pdf: bytes,
    mock_document_store: MockDocumentStore,
    mock_vector_store: MockVectorStore,
) -> None:
    config = EmbeddingConfig(provider="mock", model="mock-embed-v1", api_key="k", batch_size=2, batch_delay=0.0)
    service = IngestionService(
        document_store=mock_document_store,
        vector_store=mock_vector_store,
        blob_provider=MockBlobProvider({"mem://r": report_pdf}),
        extractor=TextExtractor(),
        chunker=Chunker(),
        embedding_generator=EmbeddingGenerator(MockEmbeddingProvider(), mock_vector_store, config),
        chunking_config=ChunkingConfig(chunk_size=chunk_size, overlap=10, min_chunk_size=5),
        retry_policy=FAST_RETRY,
    )
    document = await service.register_document("Report", "mem://r", document_id="d1")

    result = await service.ingest_document(document)

    chunk_ids = {c.chunk_id for c in await mock_document_store.get_chunks("d1")}
    assert {r.chunk_id for r in mock_vector_store.records.values()} == chunk_ids
    assert result.embeddings_created == len(chunk_ids)
