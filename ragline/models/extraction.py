"""Text extraction result models (ephemeral, never persisted)."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ExtractionFailureReason(str, Enum):
    INVALID_FORMAT = "invalid_format"
    NO_TEXT = "no_text"
    TIMEOUT = "timeout"


class ExtractionCandidate(BaseModel):
    """Cleaned output of one heuristic and its score."""

    model_config = ConfigDict(frozen=True)

    strategy: str
    text: str = ""
    score: float = 0.0


class ExtractionResult(BaseModel):
    """Outcome of one extraction attempt.

    Produced once per ingestion attempt and handed straight to the chunker.
    A failed result is a normal return value: callers inspect
    ``success``/``failure_reason`` instead of catching exceptions.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    text: str = ""
    page_count: int = Field(default=0, ge=0)
    error: str | None = None
    failure_reason: ExtractionFailureReason | None = None
    strategy: str | None = Field(default=None, description="Heuristic whose candidate won.")
    candidates: dict[str, float] = Field(
        default_factory=dict,
        description="Score per heuristic, for diagnostics.",
    )

    @property
    def timed_out(self) -> bool:
        return self.failure_reason is ExtractionFailureReason.TIMEOUT
