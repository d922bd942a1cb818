"""Keyword-based classification of question intent.

A pure function of the question text: no model call, no state.  English
and Swedish cues are recognised.

* **summary** -- "summarize", "overview", "sammanfatta", ...
* **extensive** -- "detailed", "comprehensive", "utförlig", ...; only
  meaningful together with summary intent.
* **document-specific** -- mentions of "the document", "summary",
  explicit listing requests; independent of every other flag.
* **document listing** -- "what documents do you have", "list the
  documents", "vilka dokument"; implies document-specific.
* **factual** -- who/when/how many/result/outcome/cost cues; only when
  the question is not a summary.
"""

from __future__ import annotations

import re

from ragline.models.retrieval import QueryClassification

SUMMARY_KEYWORDS: tuple[str, ...] = (
    "summary", "summaries", "summarize", "summarise", "summarization", "sum up",
    "overview", "recap", "outline", "main points", "key points", "gist", "tl;dr",
    "sammanfattning", "sammanfatta", "sammandrag", "översikt", "huvudpunkter",
)

EXTENSIVE_KEYWORDS: tuple[str, ...] = (
    "extensive", "detailed", "comprehensive", "thorough", "in-depth", "in depth",
    "elaborate", "complete", "full",
    "utförlig", "detaljerad", "omfattande", "grundlig", "fullständig", "djupgående",
)

FACTUAL_KEYWORDS: tuple[str, ...] = (
    "who", "when", "where", "how many", "how much", "what was", "what were",
    "which", "result", "outcome", "cost", "budget", "price", "amount", "number of",
    "total", "percent", "date", "deadline", "achieved", "completed", "delivered",
    "vem", "när", "hur många", "hur mycket", "vad var", "vilken", "vilket",
    "resultat", "utfall", "kostnad", "kostade", "belopp", "antal", "totalt",
    "datum", "uppnått", "slutfört", "genomfört", "levererat",
)

DOCUMENT_SPECIFIC_RE = re.compile(
    r"\b(?:the document|this document|document|summarize|summary"
    r"|list.*documents|what.*documents|documents.*access|dokument\w*)\b",
    re.IGNORECASE,
)

DOCUMENT_LISTING_RE = re.compile(
    r"\b(?:list|show)\b(?:\s+\S+){0,3}?\s+documents\b"
    r"|\b(?:what|which)\s+(?:\S+\s+){0,2}?documents\b"
    r"|\bdocuments\b.{0,40}\baccess\b"
    r"|\b(?:vilka|lista)\s+(?:\S+\s+){0,2}?dokument",
    re.IGNORECASE,
)


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    # Leading word boundary only, so inflections ("summarized") still match.
    alternatives = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<!\w)(?:{alternatives})", re.IGNORECASE)


_SUMMARY_RE = _keyword_pattern(SUMMARY_KEYWORDS)
_EXTENSIVE_RE = _keyword_pattern(EXTENSIVE_KEYWORDS)
_FACTUAL_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(k) for k in FACTUAL_KEYWORDS) + r")(?!\w)",
    re.IGNORECASE,
)


def classify(question: str) -> QueryClassification:
    """Classify *question* into summary/extensive/factual/listing flags.

    Raises
    ------
    ValueError
        If *question* is not a string or is blank.
    """
    if not isinstance(question, str) or not question.strip():
        raise ValueError("question must be a non-empty string")

    is_summary = bool(_SUMMARY_RE.search(question))
    is_extensive = is_summary and bool(_EXTENSIVE_RE.search(question))
    is_listing = bool(DOCUMENT_LISTING_RE.search(question))
    is_document_specific = is_listing or bool(DOCUMENT_SPECIFIC_RE.search(question))
    is_factual = not is_summary and bool(_FACTUAL_RE.search(question))

    return QueryClassification(
        is_summary=is_summary,
        is_extensive_summary=is_extensive,
        is_document_specific=is_document_specific,
        is_factual=is_factual,
        is_document_listing=is_listing,
    )
