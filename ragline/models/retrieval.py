"""Query classification and retrieval result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QueryKind(str, Enum):
    """The retrieval profile a question is served with."""

    STANDARD = "standard"
    FACTUAL = "factual"
    SUMMARY = "summary"
    EXTENSIVE_SUMMARY = "extensive_summary"


class QueryClassification(BaseModel):
    """Flags derived purely from the question text.

    ``is_document_specific`` is orthogonal to the other flags and may
    co-occur with any of them.  ``is_extensive_summary`` implies
    ``is_summary``.
    """

    model_config = ConfigDict(frozen=True)

    is_summary: bool = False
    is_extensive_summary: bool = False
    is_document_specific: bool = False
    is_factual: bool = False
    is_document_listing: bool = False

    @property
    def kind(self) -> QueryKind:
        if self.is_extensive_summary:
            return QueryKind.EXTENSIVE_SUMMARY
        if self.is_summary:
            return QueryKind.SUMMARY
        if self.is_factual:
            return QueryKind.FACTUAL
        return QueryKind.STANDARD


class SearchResult(BaseModel):
    """One retrieved chunk with its provenance.

    Ordering between results with equal similarity is not stable.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_title: str
    content: str
    similarity: float | None = Field(default=None, description="None for non-vector matches.")
    chunk_id: str | None = None
    chunk_index: int | None = None
    document_url: str | None = None


class RetrievalStrategy(str, Enum):
    DOCUMENT_LISTING = "document_listing"
    TITLE_MATCH = "title_match"
    VECTOR_SEARCH = "vector_search"
    KEYWORD_FALLBACK = "keyword_fallback"
    NO_MATCH = "no_match"


class RetrievalResult(BaseModel):
    """Context text plus the results it was built from."""

    model_config = ConfigDict(frozen=True)

    context_text: str
    results: list[SearchResult] = Field(default_factory=list)
    classification: QueryClassification = Field(default_factory=QueryClassification)
    strategy: RetrievalStrategy
    threshold_used: float | None = None
    duration_ms: float = 0.0


class DocumentReference(BaseModel):
    """A cited source shown alongside an answer."""

    model_config = ConfigDict(frozen=True)

    title: str
    view_url: str = ""
    download_url: str | None = None
    is_google_drive: bool = False
    excerpt: str = ""


class ComposedAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    answer: str
    context_text: str
    references: list[DocumentReference] = Field(default_factory=list)
    strategy: RetrievalStrategy


class ComposerConfig(BaseModel):
    """Prompt and sampling settings for answer composition."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str = Field(default="You are a helpful assistant.")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)
    excerpt_length: int = Field(default=300, gt=0, description="Characters kept in reference excerpts.")
