"""Abstract interfaces (adapter seams) for every external capability.

- **blob_provider** -- raw bytes for a document locator.
- **document_store** -- document registry and chunk persistence.
- **embedding_provider** -- text to fixed-length vectors.
- **llm_provider** -- black-box chat completion.
- **vector_store_provider** -- embedding upsert and similarity search.
"""

from ragline.interfaces.blob_provider import IBlobProvider
from ragline.interfaces.document_store import IDocumentStore
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.llm_provider import ILLMProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IBlobProvider",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
