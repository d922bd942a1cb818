"""Shared pytest fixtures for the ragline test suite."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import structlog

from ragline.interfaces.blob_provider import IBlobProvider
from ragline.interfaces.document_store import IDocumentStore
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.chunk import Chunk
from ragline.models.document import AvailableDocument, Document, DocumentStatus
from ragline.models.embedding import EmbeddingConfig, EmbeddingRecord
from ragline.models.retrieval import SearchResult
from ragline.utils.errors import BlobNotFoundError, ProviderError, VectorStoreError
from ragline.utils.retry import RetryPolicy


def configure_test_logging() -> None:
    """Uncached loggers resolve sys.stdout per call, so capsys streams never
    outlive the test that replaced them.
    """
    structlog.reset_defaults()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        cache_logger_on_first_use=False,
    )


configure_test_logging()

# Zero-delay policy so retry paths run instantly.
FAST_RETRY = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    Same text always produces the same vector.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(byte - 127.5) / 127.5 for byte in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = (sum(x * x for x in a) ** 0.5) * (sum(y * y for y in b) ** 0.5)
    return dot / norm if norm else 0.0


# ---------------------------------------------------------------------------
# Provider fakes
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider.

    ``fail_on_odd_calls`` makes the 2nd, 4th, ... call raise a
    :class:`ProviderError`.
    """

    def __init__(self, fail_on_odd_calls: bool = False) -> None:
        self.fail_on_odd_calls = fail_on_odd_calls
        self.calls: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        call_index = len(self.calls)
        self.calls.append(text)
        if self.fail_on_odd_calls and call_index % 2 == 1:
            raise ProviderError(message="simulated failure", provider_name="mock")
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock"

    def get_model_name(self) -> str:
        return "mock-embed-v1"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Vector store backed by a dict keyed by record id.

    ``scripted_results`` maps a threshold to the results returned for it,
    bypassing the cosine search; every searched threshold is recorded in
    ``searched_thresholds``.
    """

    def __init__(self) -> None:
        self.records: dict[str, EmbeddingRecord] = {}
        self.searched_thresholds: list[float] = []
        self.scripted_results: dict[float, list[SearchResult]] | None = None
        self.fail_upserts = False

    async def upsert_embedding(self, record: EmbeddingRecord) -> None:
        if self.fail_upserts:
            raise VectorStoreError(message="store offline", provider_name="mock")
        self.records[record.record_id] = record

    async def search(
        self,
        query_vector: list[float],
        similarity_threshold: float,
        match_count: int,
    ) -> list[SearchResult]:
        self.searched_thresholds.append(similarity_threshold)
        if self.scripted_results is not None:
            return list(self.scripted_results.get(similarity_threshold, []))[:match_count]

        scored = []
        for record in self.records.values():
            similarity = _cosine(query_vector, record.vector)
            if similarity >= similarity_threshold:
                scored.append(
                    SearchResult(
                        document_id=record.document_id,
                        document_title=record.document_title,
                        content=record.content,
                        similarity=similarity,
                        chunk_id=record.chunk_id,
                        chunk_index=record.chunk_index,
                    )
                )
        scored.sort(key=lambda r: r.similarity or 0.0, reverse=True)
        return scored[:match_count]

    async def count_embeddings(self, document_id: str) -> int:
        return sum(1 for r in self.records.values() if r.document_id == document_id)

    async def get_document_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        return sorted(
            (r for r in self.records.values() if r.document_id == document_id),
            key=lambda r: r.chunk_index,
        )

    async def delete_document_embeddings(self, document_id: str) -> int:
        doomed = [key for key, r in self.records.items() if r.document_id == document_id]
        for key in doomed:
            del self.records[key]
        return len(doomed)

    def get_provider_name(self) -> str:
        return "mock"


class MockDocumentStore(IDocumentStore):
    """In-memory document registry and chunk table."""

    def __init__(self) -> None:
        self.documents: dict[str, Document] = {}
        self.chunks: dict[str, list[Chunk]] = {}
        self.status_history: list[tuple[str, DocumentStatus]] = []

    async def add_document(self, document: Document) -> Document:
        self.documents[document.document_id] = document
        return document

    async def get_document(self, document_id: str) -> Document | None:
        return self.documents.get(document_id)

    async def list_documents(self, statuses: list[DocumentStatus] | None = None) -> list[Document]:
        docs = sorted(self.documents.values(), key=lambda d: d.created_at)
        if statuses:
            docs = [d for d in docs if d.status in statuses]
        return docs

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> Document:
        document = self.documents.get(document_id)
        if document is None:
            raise VectorStoreError(message=f"Document {document_id} not found", provider_name="mock")
        update: dict[str, Any] = {
            "status": status,
            "error_message": error_message if status is DocumentStatus.FAILED else None,
        }
        if status is DocumentStatus.COMPLETED:
            update["processed_at"] = datetime.now(timezone.utc)
        updated = document.model_copy(update=update)
        self.documents[document_id] = updated
        self.status_history.append((document_id, status))
        return updated

    async def replace_chunks(self, document_id: str, chunks: list[Chunk]) -> int:
        self.chunks[document_id] = list(chunks)
        return len(chunks)

    async def get_chunks(self, document_id: str, limit: int | None = None) -> list[Chunk]:
        chunks = sorted(self.chunks.get(document_id, []), key=lambda c: c.index)
        return chunks if limit is None else chunks[:limit]

    async def count_chunks(self, document_id: str) -> int:
        return len(self.chunks.get(document_id, []))

    async def delete_document(self, document_id: str) -> bool:
        self.chunks.pop(document_id, None)
        return self.documents.pop(document_id, None) is not None


class MockBlobProvider(IBlobProvider):
    """Serves bytes (or raises exceptions) from a locator -> value mapping."""

    def __init__(self, blobs: dict[str, bytes | Exception] | None = None) -> None:
        self.blobs: dict[str, bytes | Exception] = dict(blobs or {})
        self.fetches: list[str] = []

    async def fetch(self, locator: str) -> bytes:
        self.fetches.append(locator)
        value = self.blobs.get(locator)
        if value is None:
            raise BlobNotFoundError(message=f"Document not found at {locator}", provider_name="mock")
        if isinstance(value, Exception):
            raise value
        return value

    def get_provider_name(self) -> str:
        return "mock"


class MockLLM(ILLMProvider):
    """Records every completion request and returns a canned answer."""

    def __init__(self, answer: str = "Mock answer.") -> None:
        self.answer = answer
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        history: list[dict[str, str]] | None = None,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "history": history,
            }
        )
        return self.answer

    def get_provider_name(self) -> str:
        return "mock-llm"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# PDF builders
# ---------------------------------------------------------------------------


def _escape_literal(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _assemble_pdf(objects: list[bytes]) -> bytes:
    """Wrap object bodies in a PDF with a valid cross-reference table."""
    out = bytearray(b"%PDF-1.4\n")
    offsets: list[int] = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_at,
    )
    return bytes(out)


def build_text_pdf(lines: list[str]) -> bytes:
    """A one-page PDF showing *lines* with ``Tj`` inside a ``BT ... ET`` block."""
    content = "BT\n/F1 12 Tf\n72 720 Td\n"
    content += "".join(f"({_escape_literal(line)}) Tj\n0 -14 Td\n" for line in lines)
    content += "ET"
    content_bytes = content.encode("latin-1")
    return _assemble_pdf(
        [
            b"<< /Type /Catalog /Pages 2 0 R >>",
            b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
            b"/Resources << /Font << /F1 5 0 R >> >> >>",
            b"<< /Length %d >>\nstream\n" % len(content_bytes) + content_bytes + b"\nendstream",
            b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        ]
    )


def build_utf16_pdf(text: str) -> bytes:
    """A PDF whose only text is a ``<FEFF...>`` UTF-16BE hex string outside any text object."""
    hex_body = text.encode("utf-16-be").hex().upper()
    return _assemble_pdf(
        [
            b"<< /Type /Catalog /Pages 2 0 R >>",
            b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>",
            b"<< /Title <FEFF" + hex_body.encode("ascii") + b"> >>",
        ]
    )


REPORT_LINES = [
    "The annual report describes the regional water project in detail.",
    "Construction of the treatment plant started in spring and finished in autumn.",
    "The project budget was four million euros and the final cost stayed within it.",
    "Local volunteers planted trees along the river banks during the summer months.",
]

SWEEP_WORDS = (
    "quarterly revenue increased because customers renewed their service contracts "
    "while operating costs declined across every regional office during the period "
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    """Mock IVectorStoreProvider backed by an in-memory dict."""
    return MockVectorStore()


@pytest.fixture
def mock_document_store() -> MockDocumentStore:
    return MockDocumentStore()


@pytest.fixture
def mock_llm() -> MockLLM:
    return MockLLM()


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(
        provider="mock",
        model="mock-embed-v1",
        api_key="test-key",
        batch_size=4,
        batch_delay=0.0,
    )


@pytest.fixture
def report_pdf() -> bytes:
    return build_text_pdf(REPORT_LINES)


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph report text for chunker tests."""
    return (
        "The regional water project began in January. Engineers surveyed the river "
        "and mapped every inlet. Dr. Lindqvist led the survey team.\n\n"
        "Construction of the treatment plant started in spring. The contractor "
        "delivered the filtration units ahead of schedule! Was the schedule realistic? "
        "Most observers thought so.\n\n"
        "The final cost was four million euros. The project was completed in October "
        "and handed over to the municipality.\n\n"
        "Volunteers planted trees along the banks. Schools visited the plant during "
        "the autumn term."
    )


def available(document_id: str, title: str, chunks: int = 3, url: str = "") -> AvailableDocument:
    """Shorthand for building an AvailableDocument in tests."""
    return AvailableDocument(
        document_id=document_id,
        title=title,
        source_url=url,
        chunk_count=chunks,
        embedding_count=chunks,
    )
