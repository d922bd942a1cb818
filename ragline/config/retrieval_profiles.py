"""Per-classification retrieval parameters.

Every number the retrieval engine uses to search and diversify lives in
one :class:`RetrievalProfile` per :class:`~ragline.models.retrieval.QueryKind`.
The engine looks the profile up by kind and never branches on kind
elsewhere.

Factual questions start at a lower threshold, walk a wider ladder and pull
many more raw candidates, because diversification needs material to sample
from.  Summary profiles rank documents by average similarity rather than
their single best chunk.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ragline.models.retrieval import QueryKind


class RetrievalProfile(BaseModel):
    """Search and diversification parameters for one query kind."""

    model_config = ConfigDict(frozen=True)

    thresholds: tuple[float, ...] = Field(
        description="Similarity thresholds tried in order, strictest first.",
    )
    match_count: int = Field(gt=0, description="Raw candidates requested per threshold.")
    max_per_document: int = Field(gt=0, description="Upper bound on chunks from any one document.")
    max_total: int = Field(gt=0, description="Upper bound on chunks overall.")
    leading_chunks: int = Field(gt=0, description="Chunks taken per title-matched document.")
    rank_by: Literal["best", "average"] = Field(
        default="best",
        description="How documents are ranked against each other.",
    )
    region_weights: tuple[float, float, float] | None = Field(
        default=None,
        description=(
            "Share of a document's picks drawn from the start, middle and end "
            "of its chunk range.  None selects by similarity alone."
        ),
    )
    fallback_max_chars: int = Field(default=1000, gt=0, description="Per-result cap in keyword fallback.")

    @field_validator("thresholds")
    @classmethod
    def _strictest_first(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if not value:
            raise ValueError("at least one threshold is required")
        if any(t < 0.0 or t > 1.0 for t in value):
            raise ValueError("thresholds must lie in [0, 1]")
        if list(value) != sorted(value, reverse=True):
            raise ValueError("thresholds must be ordered from strictest to least strict")
        return value

    @field_validator("region_weights")
    @classmethod
    def _weights_sum_to_one(
        cls, value: tuple[float, float, float] | None
    ) -> tuple[float, float, float] | None:
        if value is not None and abs(sum(value) - 1.0) > 1e-6:
            raise ValueError("region_weights must sum to 1.0")
        return value


# Start/middle/end shares for factual sampling.  Tuned for reports whose
# outcomes are written up near the end; override per deployment.
FACTUAL_REGION_WEIGHTS: tuple[float, float, float] = (0.2, 0.3, 0.5)

DEFAULT_PROFILES: dict[QueryKind, RetrievalProfile] = {
    QueryKind.STANDARD: RetrievalProfile(
        thresholds=(0.6, 0.5, 0.4, 0.3),
        match_count=10,
        max_per_document=3,
        max_total=8,
        leading_chunks=3,
        rank_by="best",
    ),
    QueryKind.FACTUAL: RetrievalProfile(
        thresholds=(0.4, 0.3, 0.2, 0.1),
        match_count=40,
        max_per_document=10,
        max_total=15,
        leading_chunks=3,
        rank_by="best",
        region_weights=FACTUAL_REGION_WEIGHTS,
    ),
    QueryKind.SUMMARY: RetrievalProfile(
        thresholds=(0.5, 0.4, 0.3, 0.2),
        match_count=20,
        max_per_document=5,
        max_total=12,
        leading_chunks=5,
        rank_by="average",
        fallback_max_chars=1500,
    ),
    QueryKind.EXTENSIVE_SUMMARY: RetrievalProfile(
        thresholds=(0.45, 0.35, 0.25, 0.15),
        match_count=30,
        max_per_document=8,
        max_total=20,
        leading_chunks=8,
        rank_by="average",
        fallback_max_chars=2000,
    ),
}


def build_profiles(overrides: Mapping[str, Mapping[str, Any]] | None = None) -> dict[QueryKind, RetrievalProfile]:
    """Return the default profile table with per-kind field overrides applied.

    *overrides* is keyed by kind value (``"factual"``, ``"summary"``, ...),
    typically the ``retrieval.profiles`` section of ``config/config.yaml``.
    Unknown kinds raise ``ValueError``.
    """
    profiles = dict(DEFAULT_PROFILES)
    for kind_name, fields in (overrides or {}).items():
        kind = QueryKind(kind_name)
        merged = profiles[kind].model_dump()
        merged.update(fields)
        profiles[kind] = RetrievalProfile.model_validate(merged)
    return profiles
