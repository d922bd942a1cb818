"""Ingestion stage and result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ragline.models.document import DocumentStatus


class IngestionStage(str, Enum):
    """Progress stages reported while a document is ingested."""

    QUEUED = "queued"
    EXTRACTION = "extraction"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORAGE = "storage"
    COMPLETED = "completed"
    FAILED = "failed"


class IngestionResult(BaseModel):
    """Summary of one document's ingestion run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str = ""
    status: DocumentStatus
    chunks_created: int = Field(default=0, ge=0)
    embeddings_created: int = Field(default=0, ge=0)
    skipped: bool = Field(
        default=False,
        description="True when existing chunks and embeddings short-circuited the run.",
    )
    error: str | None = None
    page_count: int = Field(default=0, ge=0)
    extraction_strategy: str | None = None
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")

    @property
    def partial(self) -> bool:
        """Fewer embeddings than chunks: completed, but worth surfacing."""
        return (
            self.status is DocumentStatus.COMPLETED
            and not self.skipped
            and self.embeddings_created < self.chunks_created
        )
