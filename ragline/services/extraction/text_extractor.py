"""Multi-heuristic PDF text extraction.

PDFs that arrive through shared drives are often malformed: broken
cross-reference tables, text hidden in compressed streams, strings in
UTF-16 or odd single-byte encodings.  No single technique handles all of
them, so :class:`TextExtractor` runs every heuristic in
:mod:`ragline.services.extraction.heuristics`, normalizes each candidate
and keeps the one with the highest score (cleaned length times weight).

Failures are ordinary results, never exceptions: a bad signature, too
little text or an exceeded deadline each produce an
:class:`~ragline.models.extraction.ExtractionResult` with ``success=False``
and a ``failure_reason``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence

import structlog

from ragline.models.extraction import (
    ExtractionCandidate,
    ExtractionFailureReason,
    ExtractionResult,
)
from ragline.services.extraction.heuristics import (
    DEFAULT_HEURISTICS,
    Deadline,
    ExtractionHeuristic,
    PdfSource,
)
from ragline.services.extraction.text_cleaning import normalize_candidate
from ragline.utils.errors import ExtractionTimeoutError

logger = structlog.get_logger(logger_name=__name__)

PDF_SIGNATURE = b"%PDF-"
MIN_TEXT_SCORE = 100.0
DEFAULT_EXTRACTION_TIMEOUT = 25.0

INVALID_FORMAT_MESSAGE = "Invalid PDF format: missing %PDF- header"
NO_TEXT_MESSAGE = "No text could be extracted from the document"
TIMEOUT_MESSAGE = "Text extraction timed out"

ProgressCallback = Callable[[float], None]


class TextExtractor:
    """Recovers plain text from PDF bytes using competing heuristics.

    Parameters
    ----------
    heuristics:
        Heuristic instances to run, in order.  Defaults to one instance of
        each class in :data:`~ragline.services.extraction.heuristics.DEFAULT_HEURISTICS`.
    min_score:
        Best score below which extraction is reported as ``no_text``.
    """

    def __init__(
        self,
        heuristics: Sequence[ExtractionHeuristic] | None = None,
        min_score: float = MIN_TEXT_SCORE,
    ) -> None:
        self._heuristics = list(heuristics) if heuristics is not None else [
            heuristic_cls() for heuristic_cls in DEFAULT_HEURISTICS
        ]
        self._min_score = min_score

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        data: bytes,
        timeout: float | None = None,
        progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Extract text from *data*, returning a result rather than raising.

        Parameters
        ----------
        data:
            Raw document bytes.
        timeout:
            Seconds allowed for the whole extraction.  Checked between
            heuristics, sub-attempts and pages; ``None`` means no limit.
        progress:
            Called with a 0-100 percentage after each heuristic.

        Returns
        -------
        ExtractionResult
            On success, the winning candidate's cleaned text, the page
            count and every heuristic's score.
        """
        start = time.perf_counter()
        if not data.startswith(PDF_SIGNATURE):
            logger.warning("extraction_invalid_format", size=len(data))
            return ExtractionResult(
                success=False,
                error=INVALID_FORMAT_MESSAGE,
                failure_reason=ExtractionFailureReason.INVALID_FORMAT,
            )

        deadline = Deadline(timeout)
        try:
            source = PdfSource.parse(data, deadline)
            candidates = self._run_heuristics(source, deadline, progress)
        except ExtractionTimeoutError:
            logger.warning(
                "extraction_timeout",
                timeout_s=timeout,
                elapsed_ms=round((time.perf_counter() - start) * 1000),
            )
            return ExtractionResult(
                success=False,
                error=TIMEOUT_MESSAGE,
                failure_reason=ExtractionFailureReason.TIMEOUT,
            )

        scores = {c.strategy: round(c.score, 2) for c in candidates}
        best = max(candidates, key=lambda c: c.score, default=None)
        if best is None or best.score < self._min_score:
            logger.warning("extraction_no_text", scores=scores, page_count=source.page_count)
            return ExtractionResult(
                success=False,
                page_count=source.page_count,
                error=NO_TEXT_MESSAGE,
                failure_reason=ExtractionFailureReason.NO_TEXT,
                candidates=scores,
            )

        logger.info(
            "extraction_complete",
            strategy=best.strategy,
            chars=len(best.text),
            page_count=source.page_count,
            scores=scores,
            elapsed_ms=round((time.perf_counter() - start) * 1000),
        )
        return ExtractionResult(
            success=True,
            text=best.text,
            page_count=source.page_count,
            strategy=best.strategy,
            candidates=scores,
        )

    async def extract_async(
        self,
        data: bytes,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        progress: ProgressCallback | None = None,
    ) -> ExtractionResult:
        """Run :meth:`extract` in a worker thread, bounded by *timeout*.

        The worker checks the same deadline cooperatively; ``wait_for``
        guards against a single heuristic step that overruns it.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.extract, data, timeout, progress),
                timeout=timeout + 1.0,
            )
        except asyncio.TimeoutError:
            logger.warning("extraction_timeout", timeout_s=timeout, enforced_by="wait_for")
            return ExtractionResult(
                success=False,
                error=TIMEOUT_MESSAGE,
                failure_reason=ExtractionFailureReason.TIMEOUT,
            )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run_heuristics(
        self,
        source: PdfSource,
        deadline: Deadline,
        progress: ProgressCallback | None,
    ) -> list[ExtractionCandidate]:
        candidates: list[ExtractionCandidate] = []
        total = len(self._heuristics)
        for position, heuristic in enumerate(self._heuristics, start=1):
            deadline.check()
            try:
                raw = heuristic.extract(source, deadline)
            except ExtractionTimeoutError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("extraction_heuristic_failed", heuristic=heuristic.name, error=str(exc))
                raw = ""

            cleaned = normalize_candidate(raw)
            candidates.append(
                ExtractionCandidate(
                    strategy=heuristic.name,
                    text=cleaned,
                    score=len(cleaned) * heuristic.weight,
                )
            )
            logger.debug("extraction_candidate", heuristic=heuristic.name, chars=len(cleaned))
            if progress is not None:
                progress(position / total * 100.0)
        return candidates
