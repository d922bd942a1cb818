"""Embedding configuration and stored embedding records."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingConfig(BaseModel):
    """Settings for one embedding provider/model pair.

    Deliberately permissive: :class:`~ragline.services.ingestion.embedding_generator.EmbeddingGenerator`
    validates the values eagerly and refuses to be built with a missing
    key, a missing model or a non-positive batch size.
    """

    model_config = ConfigDict(frozen=True)

    provider: str = Field(default="openai", description='Opaque provider key, e.g. "openai", "cohere".')
    model: str = Field(default="text-embedding-3-small")
    api_key: str = Field(default="", repr=False)
    base_url: str = Field(default="", description="Override endpoint for OpenAI-compatible servers.")
    batch_size: int = Field(default=10, description="Chunks per batch.")
    batch_delay: float = Field(default=0.1, ge=0.0, description="Pause between batches (seconds).")
    similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Similarity threshold hint recorded on every embedding.",
    )
    request_timeout: float = Field(default=15.0, gt=0.0, description="Per-request timeout (seconds).")


class EmbeddingRecord(BaseModel):
    """One stored embedding, keyed by ``(chunk_id, provider, model)``."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    document_title: str = ""
    chunk_index: int = Field(default=0, ge=0)
    content: str = ""
    vector: list[float]
    provider: str
    model: str
    similarity_threshold: float = 0.7
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def record_id(self) -> str:
        return f"{self.chunk_id}:{self.provider}:{self.model}"

    @property
    def dimensions(self) -> int:
        return len(self.vector)
