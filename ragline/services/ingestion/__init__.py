"""Document ingestion pipeline.

Orchestrates the full pipeline: **fetch -> extract -> chunk -> embed**.

1. **Fetch** (via IBlobProvider) -- raw bytes for the document locator,
   retried with backoff on transient failures.

2. **Extract** (services/extraction) -- competing heuristics recover the
   text of malformed or oddly encoded PDFs.

3. **Chunk** (chunker.py / Chunker) -- splits cleaned text into
   character-sized chunks with a configurable strategy.

4. **Embed** (embedding_generator.py / EmbeddingGenerator) -- embeds chunks
   in batches and stores each vector immediately, isolating per-item
   failures.

The IngestionService class runs these stages and owns document status.
"""

from ragline.services.ingestion.chunker import Chunker, clean_text
from ragline.services.ingestion.embedding_generator import EmbeddingGenerator
from ragline.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "Chunker",
    "EmbeddingGenerator",
    "IngestionService",
    "clean_text",
]
