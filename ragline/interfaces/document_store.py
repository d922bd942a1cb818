"""Abstract base class for the document registry and chunk store.

Documents and their chunks are relational data: a document owns its
chunks and deleting it cascades.  The ingestion pipeline is the only
writer of document status; retrieval only reads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragline.models.chunk import Chunk
from ragline.models.document import Document, DocumentStatus


class IDocumentStore(ABC):
    """Contract for document and chunk persistence."""

    @abstractmethod
    async def add_document(self, document: Document) -> Document:
        """Register a new document (status ``pending``) and return it."""

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def list_documents(
        self,
        statuses: list[DocumentStatus] | None = None,
    ) -> list[Document]:
        """Return documents, optionally restricted to *statuses*, oldest first."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> Document:
        """Transition *document_id* to *status* and return the updated document.

        Reaching ``completed`` stamps ``processed_at``; any status other than
        ``failed`` clears ``error_message``.

        Raises
        ------
        ragline.utils.errors.VectorStoreError
            If the document does not exist.
        """

    @abstractmethod
    async def replace_chunks(self, document_id: str, chunks: list[Chunk]) -> int:
        """Replace every chunk of *document_id* with *chunks*; return the count stored."""

    @abstractmethod
    async def get_chunks(self, document_id: str, limit: int | None = None) -> list[Chunk]:
        """Return chunks of *document_id* ordered by index, at most *limit*."""

    @abstractmethod
    async def count_chunks(self, document_id: str) -> int:
        """Return the number of chunks stored for *document_id*."""

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Delete the document and (cascading) its chunks."""
