"""PDF text extraction.

:class:`TextExtractor` runs every heuristic in :mod:`.heuristics` over the
same parsed bytes and keeps the highest-scoring cleaned candidate.
"""

from ragline.services.extraction.heuristics import (
    ByteEncodingSweepHeuristic,
    DocumentModelHeuristic,
    ExtractionHeuristic,
    ParentheticalHeuristic,
    RawStreamHeuristic,
    TextObjectHeuristic,
)
from ragline.services.extraction.text_extractor import TextExtractor

__all__ = [
    "ByteEncodingSweepHeuristic",
    "DocumentModelHeuristic",
    "ExtractionHeuristic",
    "ParentheticalHeuristic",
    "RawStreamHeuristic",
    "TextExtractor",
    "TextObjectHeuristic",
]
