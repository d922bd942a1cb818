"""Document lifecycle models.

A :class:`Document` is registered when ingestion is requested and is only
ever mutated by the ingestion pipeline.  Retrieval reads documents through
:class:`AvailableDocument`, a read-only view that also carries chunk and
embedding counts.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Lifecycle status of a document.

    ``pending -> processing -> completed | failed``.  A completed document
    always has at least one chunk and one embedding; pending and failed
    documents have none unless reconciliation has yet to correct them.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Document(BaseModel):
    """A source document registered for ingestion."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Unique identifier of the document.")
    title: str = Field(description="Human-readable document title.")
    source_url: str = Field(default="", description="Blob locator (URL, file path or Drive link).")
    mime_type: str = Field(default="application/pdf", description="Declared MIME type of the blob.")
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    error_message: str | None = Field(
        default=None,
        description="Failure reason recorded when status is ``failed``.",
    )
    processed_at: datetime | None = Field(
        default=None,
        description="When the document last reached ``completed``.",
    )
    created_at: datetime = Field(default_factory=_utcnow)


class AvailableDocument(BaseModel):
    """A document that retrieval may draw from.

    Only documents that actually have both chunks and embeddings are
    considered available, regardless of their recorded status.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    source_url: str = ""
    status: DocumentStatus = DocumentStatus.COMPLETED
    chunk_count: int = Field(default=0, ge=0)
    embedding_count: int = Field(default=0, ge=0)
