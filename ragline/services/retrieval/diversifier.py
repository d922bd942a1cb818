"""Spread selected chunks across documents and document regions.

Raw similarity results tend to cluster: one long document can fill every
slot.  :func:`diversify` groups results by document, ranks documents,
caps how many chunks any one document contributes and caps the total.

With ``region_weights`` set (factual questions), chunks inside a document
are sampled from the start, middle and end thirds of its chunk-index range
in those proportions instead of by similarity alone.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from ragline.config.retrieval_profiles import RetrievalProfile
from ragline.models.retrieval import SearchResult

REGION_COUNT = 3


def _similarity(result: SearchResult) -> float:
    return result.similarity if result.similarity is not None else 0.0


def per_document_cap(profile: RetrievalProfile, document_count: int) -> int:
    """``min(max_per_document, ceil(max_total / document_count))``."""
    return min(profile.max_per_document, math.ceil(profile.max_total / max(document_count, 1)))


def diversify(
    results: Sequence[SearchResult],
    profile: RetrievalProfile,
    chunk_counts: Mapping[str, int] | None = None,
) -> list[SearchResult]:
    """Select a diverse subset of *results* according to *profile*.

    Parameters
    ----------
    results:
        Raw search results, any order.
    profile:
        Caps, document ranking mode and optional region weights.
    chunk_counts:
        Total chunks per document id, used as the index range for region
        sampling.  Falls back to the highest index seen in *results*.

    Returns
    -------
    list[SearchResult]
        Grouped by document in rank order.  Within a document, similarity
        order, or chunk-index order when sampled by region.
    """
    groups: dict[str, list[SearchResult]] = {}
    for result in results:
        groups.setdefault(result.document_id, []).append(result)
    if not groups:
        return []

    def _rank(items: list[SearchResult]) -> float:
        scores = [_similarity(r) for r in items]
        if profile.rank_by == "average":
            return sum(scores) / len(scores)
        return max(scores)

    ranked = sorted(groups.items(), key=lambda item: _rank(item[1]), reverse=True)
    cap = per_document_cap(profile, len(groups))

    selected: list[SearchResult] = []
    for document_id, items in ranked:
        room = min(cap, profile.max_total - len(selected))
        if room <= 0:
            break
        if profile.region_weights is not None:
            total = (chunk_counts or {}).get(document_id) or _index_span(items)
            picks = sample_by_region(items, room, profile.region_weights, total)
        else:
            picks = sorted(items, key=_similarity, reverse=True)[:room]
        selected.extend(picks)
    return selected


def sample_by_region(
    items: Sequence[SearchResult],
    count: int,
    weights: tuple[float, float, float],
    total_chunks: int,
) -> list[SearchResult]:
    """Pick *count* items spread over start, middle and end of the index range.

    Each third receives a quota proportional to its weight (largest
    remainder rounding).  Within a region the most similar items win.
    Quota a region cannot fill passes to the other regions, heaviest
    weight first.  The picks are returned in chunk-index order.
    """
    if count >= len(items):
        return sorted(items, key=lambda r: r.chunk_index or 0)

    regions: list[list[SearchResult]] = [[] for _ in range(REGION_COUNT)]
    span = max(total_chunks, 1)
    for item in items:
        index = item.chunk_index or 0
        regions[min(REGION_COUNT - 1, index * REGION_COUNT // span)].append(item)
    for region in regions:
        region.sort(key=_similarity, reverse=True)

    quotas = _quotas(count, weights)
    picks: list[SearchResult] = []
    leftover = 0
    for region, quota in zip(regions, quotas):
        taken = region[:quota]
        picks.extend(taken)
        leftover += quota - len(taken)
        del region[: len(taken)]

    by_weight = sorted(range(REGION_COUNT), key=lambda i: weights[i], reverse=True)
    for region_index in by_weight:
        if leftover <= 0:
            break
        extra = regions[region_index][:leftover]
        picks.extend(extra)
        leftover -= len(extra)

    return sorted(picks, key=lambda r: r.chunk_index or 0)


def _quotas(count: int, weights: tuple[float, float, float]) -> list[int]:
    raw = [count * w for w in weights]
    quotas = [math.floor(r) for r in raw]
    remainder = count - sum(quotas)
    # Ties go to the later region.
    order = sorted(range(REGION_COUNT), key=lambda i: (raw[i] - quotas[i], i), reverse=True)
    for i in order[:remainder]:
        quotas[i] += 1
    return quotas


def _index_span(items: Sequence[SearchResult]) -> int:
    return max((r.chunk_index or 0) for r in items) + 1
