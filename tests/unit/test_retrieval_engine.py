"""Unit tests for RetrievalEngine."""

from __future__ import annotations

import asyncio

import pytest

from ragline.models.chunk import Chunk
from ragline.models.document import Document, DocumentStatus
from ragline.models.embedding import EmbeddingRecord
from ragline.models.retrieval import RetrievalStrategy, SearchResult
from ragline.services.retrieval.retrieval_engine import (
    NO_DOCUMENTS_CONTEXT,
    NO_DOCUMENTS_LISTING,
    RetrievalEngine,
    document_listing_context,
    format_context,
)
from ragline.utils.errors import NetworkTimeoutError, ProviderError
from tests.conftest import (
    FAST_RETRY,
    MockDocumentStore,
    MockEmbeddingProvider,
    MockVectorStore,
    available,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _add_chunks(store: MockDocumentStore, document_id: str, contents: list[str]) -> None:
    store.chunks[document_id] = [
        Chunk(chunk_id=f"{document_id}-{i}", document_id=document_id, index=i, content=text)
        for i, text in enumerate(contents)
    ]


def _hit(document_id: str, similarity: float, index: int = 0, url: str | None = None) -> SearchResult:
    return SearchResult(
        document_id=document_id,
        document_title=document_id.title(),
        content=f"content of {document_id} #{index}",
        similarity=similarity,
        chunk_id=f"{document_id}-{index}",
        chunk_index=index,
        document_url=url,
    )


class _FailingEmbedder(MockEmbeddingProvider):
    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self.exc = exc

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        raise self.exc


class _SlowEmbedder(MockEmbeddingProvider):
    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(1.0)
        return [0.0]


@pytest.fixture
def engine(
    mock_embedding_provider: MockEmbeddingProvider,
    mock_vector_store: MockVectorStore,
    mock_document_store: MockDocumentStore,
) -> RetrievalEngine:
    return RetrievalEngine(
        mock_embedding_provider,
        mock_vector_store,
        mock_document_store,
        retry_policy=FAST_RETRY,
    )


# ---------------------------------------------------------------------------
# Listing and empty corpus
# ---------------------------------------------------------------------------


class TestListing:
    async def test_listing_uses_registry_only(
        self,
        engine: RetrievalEngine,
        mock_embedding_provider: MockEmbeddingProvider,
        mock_vector_store: MockVectorStore,
    ) -> None:
        docs = [available("a", "Annual Report", 4), available("b", "Budget Plan", 2), available("c", "Survey", 1)]

        result = await engine.retrieve("What documents do you have?", docs)

        assert result.strategy is RetrievalStrategy.DOCUMENT_LISTING
        assert "I have access to 3 processed documents" in result.context_text
        for line in ("1. Annual Report (4 chunks)", "2. Budget Plan (2 chunks)", "3. Survey (1 chunks)"):
            assert line in result.context_text
        assert mock_embedding_provider.call_count == 0
        assert mock_vector_store.searched_thresholds == []

    async def test_listing_without_documents(self, engine: RetrievalEngine) -> None:
        result = await engine.retrieve("List all documents", [])
        assert result.context_text == NO_DOCUMENTS_LISTING

    def test_singular_listing(self) -> None:
        text = document_listing_context([available("a", "Annual Report", 1)])
        assert "1 processed document that has been" in text

    async def test_no_documents_skips_search(
        self,
        engine: RetrievalEngine,
        mock_embedding_provider: MockEmbeddingProvider,
    ) -> None:
        result = await engine.retrieve("How much did the plant cost?", [])

        assert result.strategy is RetrievalStrategy.NO_MATCH
        assert result.context_text == NO_DOCUMENTS_CONTEXT
        assert mock_embedding_provider.call_count == 0


# ---------------------------------------------------------------------------
# Title match
# ---------------------------------------------------------------------------


class TestTitleMatch:
    async def test_title_match_returns_leading_chunks(
        self,
        engine: RetrievalEngine,
        mock_embedding_provider: MockEmbeddingProvider,
        mock_document_store: MockDocumentStore,
    ) -> None:
        _add_chunks(mock_document_store, "d1", [f"Section {i} of the report." for i in range(7)])
        docs = [available("d1", "Annual Report 2023", 7, url="https://example.org/annual.pdf")]

        result = await engine.retrieve("Summarize Annual Report", docs)

        assert result.strategy is RetrievalStrategy.TITLE_MATCH
        # summary profile takes five leading chunks
        assert [r.chunk_index for r in result.results] == [0, 1, 2, 3, 4]
        assert all(r.similarity == 1.0 for r in result.results)
        assert result.results[0].document_url == "https://example.org/annual.pdf"
        assert result.context_text.startswith("Document: Annual Report 2023\nContent: Section 0")
        assert mock_embedding_provider.call_count == 0

    async def test_factual_question_is_searched_not_title_matched(
        self,
        engine: RetrievalEngine,
        mock_embedding_provider: MockEmbeddingProvider,
        mock_vector_store: MockVectorStore,
    ) -> None:
        """Question words such as "was" must not pull in a title like "Wastewater"."""
        mock_vector_store.scripted_results = {0.4: [_hit("w", 0.45, 2)]}

        result = await engine.retrieve("What was the total budget?", [available("w", "Wastewater Plan", 5)])

        assert result.strategy is RetrievalStrategy.VECTOR_SEARCH
        assert mock_embedding_provider.call_count == 1
        assert [r.chunk_index for r in result.results] == [2]


# ---------------------------------------------------------------------------
# Threshold escalation
# ---------------------------------------------------------------------------


class TestEscalation:
    async def test_factual_question_walks_the_ladder(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.scripted_results = {0.2: [_hit("water", 0.25, 3)]}
        docs = [available("water", "Water Report", 10, url="https://example.org/water.pdf")]

        result = await engine.retrieve("How much did the project cost?", docs)

        assert mock_vector_store.searched_thresholds == [0.4, 0.3, 0.2]
        assert result.strategy is RetrievalStrategy.VECTOR_SEARCH
        assert result.threshold_used == 0.2
        assert result.results[0].document_url == "https://example.org/water.pdf"
        assert result.classification.is_factual

    async def test_standard_question_stops_at_first_hit(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.scripted_results = {0.6: [_hit("water", 0.7)], 0.5: [_hit("water", 0.55, 1)]}

        result = await engine.retrieve("Tell me about river restoration", [available("water", "Water Report")])

        assert mock_vector_store.searched_thresholds == [0.6]
        assert result.threshold_used == 0.6

    async def test_results_for_unknown_documents_are_ignored(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.scripted_results = {0.6: [_hit("ghost", 0.9)], 0.5: [_hit("water", 0.55)]}

        result = await engine.retrieve("Tell me about river restoration", [available("water", "Water Report")])

        assert result.threshold_used == 0.5
        assert {r.document_id for r in result.results} == {"water"}

    async def test_existing_url_is_kept(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.scripted_results = {0.6: [_hit("water", 0.9, url="https://cdn.example.org/w.pdf")]}
        docs = [available("water", "Water Report", url="https://example.org/water.pdf")]

        result = await engine.retrieve("Tell me about river restoration", docs)

        assert result.results[0].document_url == "https://cdn.example.org/w.pdf"


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------


class TestFallback:
    async def test_keyword_fallback(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        mock_vector_store.scripted_results = {}
        _add_chunks(mock_document_store, "water", ["Intro text.", "The filtration units arrived early."])

        result = await engine.retrieve("Tell me about the filtration units", [available("water", "Water Report")])

        assert result.strategy is RetrievalStrategy.KEYWORD_FALLBACK
        assert mock_vector_store.searched_thresholds == [0.6, 0.5, 0.4, 0.3]
        assert [r.chunk_index for r in result.results] == [1]
        assert result.results[0].similarity is None

    async def test_fallback_length_depends_on_document_specific(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        mock_vector_store.scripted_results = {}
        _add_chunks(mock_document_store, "water", ["filtration " * 200])
        docs = [available("water", "Water Report")]

        specific = await engine.retrieve("Summarize what the document says about filtration", docs)
        general = await engine.retrieve("Tell me about filtration", docs)

        assert len(specific.results[0].content) == 1500
        assert len(general.results[0].content) == 1000

    async def test_no_match_names_documents(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
    ) -> None:
        mock_vector_store.scripted_results = {}
        docs = [available("water", "Water Report"), available("budget", "Budget Plan")]

        result = await engine.retrieve("Tell me about volcanoes", docs)

        assert result.strategy is RetrievalStrategy.NO_MATCH
        assert result.results == []
        assert "1. Water Report" in result.context_text
        assert "2. Budget Plan" in result.context_text


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    async def test_blank_question(self, engine: RetrievalEngine) -> None:
        with pytest.raises(ValueError):
            await engine.retrieve("  ", [])

    async def test_terminal_embedding_error_propagates(
        self,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        embedder = _FailingEmbedder(ProviderError(message="bad request", provider_name="mock", status_code=400))
        engine = RetrievalEngine(embedder, mock_vector_store, mock_document_store, retry_policy=FAST_RETRY)

        with pytest.raises(ProviderError):
            await engine.retrieve("Tell me about rivers", [available("water", "Water Report")])
        assert embedder.call_count == 1

    async def test_transient_embedding_error_is_retried(
        self,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        embedder = _FailingEmbedder(ProviderError(message="upstream", provider_name="mock", retryable=True))
        engine = RetrievalEngine(embedder, mock_vector_store, mock_document_store, retry_policy=FAST_RETRY)

        with pytest.raises(ProviderError):
            await engine.retrieve("Tell me about rivers", [available("water", "Water Report")])
        assert embedder.call_count == 3

    async def test_embedding_timeout(
        self,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        engine = RetrievalEngine(
            _SlowEmbedder(),
            mock_vector_store,
            mock_document_store,
            retry_policy=FAST_RETRY,
            embedding_timeout=0.01,
        )
        with pytest.raises(NetworkTimeoutError):
            await engine.retrieve("Tell me about rivers", [available("water", "Water Report")])


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscovery:
    async def test_only_documents_with_chunks_and_embeddings(
        self,
        engine: RetrievalEngine,
        mock_vector_store: MockVectorStore,
        mock_document_store: MockDocumentStore,
    ) -> None:
        statuses = {
            "done": DocumentStatus.COMPLETED,
            "queued": DocumentStatus.PENDING,
            "broken": DocumentStatus.FAILED,
            "hollow": DocumentStatus.COMPLETED,
        }
        for document_id, status in statuses.items():
            await mock_document_store.add_document(
                Document(document_id=document_id, title=document_id.title(), status=status)
            )
            _add_chunks(mock_document_store, document_id, ["some text"])
            if document_id != "hollow":
                await mock_vector_store.upsert_embedding(
                    EmbeddingRecord(
                        chunk_id=f"{document_id}-0",
                        document_id=document_id,
                        vector=[1.0, 0.0],
                        provider="mock",
                        model="mock-embed-v1",
                    )
                )

        documents = await engine.discover_documents()

        assert sorted(d.document_id for d in documents) == ["done", "queued"]
        assert all(d.chunk_count == 1 and d.embedding_count == 1 for d in documents)


def test_format_context() -> None:
    text = format_context([_hit("a", 0.9), _hit("b", 0.8)])
    assert text == "Document: A\nContent: content of a #0\n\nDocument: B\nContent: content of b #0"
