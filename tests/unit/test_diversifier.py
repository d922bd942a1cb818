"""Unit tests for result diversification and region sampling."""

from __future__ import annotations

from ragline.config.retrieval_profiles import DEFAULT_PROFILES
from ragline.models.retrieval import QueryKind, SearchResult
from ragline.services.retrieval.diversifier import diversify, per_document_cap, sample_by_region

STANDARD = DEFAULT_PROFILES[QueryKind.STANDARD]
FACTUAL = DEFAULT_PROFILES[QueryKind.FACTUAL]
SUMMARY = DEFAULT_PROFILES[QueryKind.SUMMARY]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result(document_id: str, index: int, similarity: float) -> SearchResult:
    return SearchResult(
        document_id=document_id,
        document_title=document_id.upper(),
        content=f"{document_id} chunk {index}",
        similarity=similarity,
        chunk_id=f"{document_id}-{index}",
        chunk_index=index,
    )


def _indices(results: list[SearchResult]) -> list[int]:
    return [r.chunk_index for r in results]


# ---------------------------------------------------------------------------
# Caps and ranking
# ---------------------------------------------------------------------------


class TestCaps:
    def test_per_document_cap(self) -> None:
        assert per_document_cap(STANDARD, 1) == 3
        assert per_document_cap(STANDARD, 5) == 2
        assert per_document_cap(FACTUAL, 1) == 10

    def test_dominant_document_is_capped(self) -> None:
        results = [_result("a", i, 0.9 - i * 0.01) for i in range(6)]
        results += [_result("b", i, 0.5) for i in range(2)]

        selected = diversify(results, STANDARD)

        assert [r.document_id for r in selected] == ["a", "a", "a", "b", "b"]
        assert _indices(selected[:3]) == [0, 1, 2]

    def test_total_cap(self) -> None:
        results = [_result(f"d{n}", i, 0.8) for n in range(10) for i in range(3)]
        selected = diversify(results, STANDARD)

        assert len(selected) == STANDARD.max_total
        # 10 documents -> ceil(8 / 10) = 1 chunk each
        assert len({r.document_id for r in selected}) == 8

    def test_empty_input(self) -> None:
        assert diversify([], STANDARD) == []


class TestRanking:
    def _results(self) -> list[SearchResult]:
        return [
            _result("spiky", 0, 0.9),
            _result("spiky", 1, 0.1),
            _result("steady", 0, 0.7),
            _result("steady", 1, 0.7),
        ]

    def test_best_ranking(self) -> None:
        assert diversify(self._results(), STANDARD)[0].document_id == "spiky"

    def test_average_ranking(self) -> None:
        assert diversify(self._results(), SUMMARY)[0].document_id == "steady"


# ---------------------------------------------------------------------------
# Region sampling
# ---------------------------------------------------------------------------


class TestRegionSampling:
    def test_factual_sampling_reaches_the_end_of_the_document(self) -> None:
        # Similarity falls with position, so similarity alone would pick 0..9.
        results = [_result("report", i, 0.9 - i * 0.02) for i in range(20)]

        selected = diversify(results, FACTUAL, {"report": 20})

        assert _indices(selected) == [0, 1, 7, 8, 9, 14, 15, 16, 17, 18]
        assert any(index >= 15 for index in _indices(selected))

    def test_unfilled_quota_moves_to_other_regions(self) -> None:
        items = [_result("r", i, 0.9 - i * 0.01) for i in (0, 1, 2, 3, 18, 19)]

        picks = sample_by_region(items, 4, (0.2, 0.3, 0.5), total_chunks=20)

        assert _indices(picks) == [0, 1, 18, 19]

    def test_everything_returned_when_count_covers_input(self) -> None:
        items = [_result("r", i, 0.5) for i in (9, 2, 5)]
        assert _indices(sample_by_region(items, 5, (0.2, 0.3, 0.5), total_chunks=10)) == [2, 5, 9]

    def test_span_falls_back_to_highest_index(self) -> None:
        results = [_result("report", i, 0.9 - i * 0.02) for i in range(20)]
        assert _indices(diversify(results, FACTUAL)) == [0, 1, 7, 8, 9, 14, 15, 16, 17, 18]
