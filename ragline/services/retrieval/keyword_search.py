"""Plain keyword search over stored chunks.

Used when every similarity threshold came back empty: question words
longer than three characters, minus stopwords, are looked up in the chunk
content of every available document.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from ragline.interfaces.document_store import IDocumentStore
from ragline.models.document import AvailableDocument
from ragline.models.retrieval import SearchResult

logger = structlog.get_logger(logger_name=__name__)

MIN_KEYWORD_LENGTH = 4

STOPWORDS = frozenset(
    {
        "about", "above", "after", "again", "also", "been", "before", "being", "below",
        "between", "both", "could", "does", "doing", "down", "during", "each", "from",
        "further", "have", "having", "here", "into", "just", "more", "most", "much",
        "only", "other", "over", "same", "should", "some", "such", "than", "that",
        "their", "them", "then", "there", "these", "they", "this", "those", "through",
        "under", "until", "very", "want", "were", "what", "when", "where", "which",
        "while", "whom", "will", "with", "would", "your", "tell", "please", "know",
        "document", "documents",
        "alla", "andra", "både", "deras", "detta", "denna", "dessa", "eller", "efter",
        "från", "genom", "hade", "hans", "hennes", "innan", "inte", "kunde", "mellan",
        "mycket", "någon", "något", "några", "och", "också", "sedan", "skulle", "till",
        "under", "utan", "vara", "varit", "vilka", "vilken", "vilket", "åt", "över",
        "dokument", "dokumentet",
    }
)

_WORD_RE = re.compile(r"\w+")


def extract_keywords(question: str) -> list[str]:
    """Distinct lower-cased keywords of *question*, in order of appearance."""
    seen: dict[str, None] = {}
    for word in _WORD_RE.findall(question.lower()):
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOPWORDS:
            seen.setdefault(word, None)
    return list(seen)


async def keyword_search(
    document_store: IDocumentStore,
    documents: Sequence[AvailableDocument],
    question: str,
    max_per_document: int,
    max_total: int,
    max_chars: int,
) -> list[SearchResult]:
    """Return chunks containing the question's keywords, best-covered first.

    A chunk scores one point per distinct keyword it contains.  Content is
    truncated to *max_chars*.  ``similarity`` is ``None`` on every result.
    """
    keywords = extract_keywords(question)
    if not keywords:
        return []

    scored: list[tuple[int, SearchResult]] = []
    for document in documents:
        hits: list[tuple[int, SearchResult]] = []
        for chunk in await document_store.get_chunks(document.document_id):
            content = chunk.content.lower()
            score = sum(1 for keyword in keywords if keyword in content)
            if score == 0:
                continue
            hits.append(
                (
                    score,
                    SearchResult(
                        document_id=document.document_id,
                        document_title=document.title,
                        content=chunk.content[:max_chars],
                        chunk_id=chunk.chunk_id,
                        chunk_index=chunk.index,
                        document_url=document.source_url or None,
                    ),
                )
            )
        hits.sort(key=lambda hit: (-hit[0], hit[1].chunk_index or 0))
        scored.extend(hits[:max_per_document])

    scored.sort(key=lambda hit: -hit[0])
    results = [result for _, result in scored[:max_total]]
    logger.debug("keyword_search", keywords=keywords, matches=len(results))
    return results
