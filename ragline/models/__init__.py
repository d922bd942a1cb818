"""Pydantic v2 data models for the ragline pipeline.

- **document** -- Document lifecycle and the retrieval-side availability view.
- **chunk** -- Chunking configuration and chunk records.
- **embedding** -- Embedding provider config and stored embedding records.
- **extraction** -- Extraction candidates and results.
- **ingestion** -- Ingestion stages and per-document results.
- **retrieval** -- Query classification, search results and composed answers.
"""

from ragline.models.chunk import Chunk, ChunkingConfig, ChunkStrategy
from ragline.models.document import AvailableDocument, Document, DocumentStatus
from ragline.models.embedding import EmbeddingConfig, EmbeddingRecord
from ragline.models.extraction import (
    ExtractionCandidate,
    ExtractionFailureReason,
    ExtractionResult,
)
from ragline.models.ingestion import IngestionResult, IngestionStage
from ragline.models.retrieval import (
    ComposedAnswer,
    ComposerConfig,
    DocumentReference,
    QueryClassification,
    QueryKind,
    RetrievalResult,
    RetrievalStrategy,
    SearchResult,
)

__all__ = [
    "AvailableDocument",
    "Chunk",
    "ChunkStrategy",
    "ChunkingConfig",
    "ComposedAnswer",
    "ComposerConfig",
    "Document",
    "DocumentReference",
    "DocumentStatus",
    "EmbeddingConfig",
    "EmbeddingRecord",
    "ExtractionCandidate",
    "ExtractionFailureReason",
    "ExtractionResult",
    "IngestionResult",
    "IngestionStage",
    "QueryClassification",
    "QueryKind",
    "RetrievalResult",
    "RetrievalStrategy",
    "SearchResult",
]
