"""Chunking configuration and chunk models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChunkStrategy(str, Enum):
    """How the chunker splits cleaned text."""

    FIXED_SIZE = "fixed_size"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    RECURSIVE = "recursive"
    # Accepted for compatibility with stored configurations; behaves like
    # FIXED_SIZE.
    SEMANTIC = "semantic"


class ChunkingConfig(BaseModel):
    """Every recognised chunking option with its default.

    ``overlap`` must be strictly smaller than ``chunk_size``; this is
    checked when the config is built rather than when chunking runs.
    """

    model_config = ConfigDict(frozen=True)

    strategy: ChunkStrategy = Field(default=ChunkStrategy.FIXED_SIZE)
    chunk_size: int = Field(default=1000, gt=0, description="Target chunk size in characters.")
    overlap: int = Field(default=200, ge=0, description="Characters shared by consecutive fixed-size windows.")
    preserve_sentence_boundaries: bool = Field(
        default=True,
        description="Snap fixed-size window ends forward to a sentence terminator when cheap.",
    )
    min_chunk_size: int = Field(
        default=50,
        ge=0,
        description="Chunks whose trimmed length is below this are dropped.",
    )

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkingConfig:
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})"
            )
        return self


class Chunk(BaseModel):
    """A bounded substring of a document's cleaned extracted text.

    ``start_offset``/``end_offset`` index into the cleaned text the chunker
    produced.  Offsets never decrease with ``index``; overlapping ranges
    between neighbours are intentional when ``overlap > 0``.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier of this chunk.")
    document_id: str = Field(default="", description="Owning document.")
    index: int = Field(ge=0, description="Zero-based position in document order.")
    content: str
    start_offset: int = Field(default=0, ge=0)
    end_offset: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def size(self) -> int:
        return len(self.content)
