"""Match questions against document titles.

"Summarize the Annual Report" names its document outright; matching the
title is more reliable than embedding similarity for such questions and
needs no embedding call.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from ragline.models.document import AvailableDocument

# Words stripped from the question before matching: summary verbs, request
# phrasing, question words, auxiliaries and function words in English and
# Swedish.
FILLER_WORDS = frozenset(
    {
        "summary", "summarize", "summarise", "summarized", "overview", "recap", "outline",
        "extensive", "detailed", "comprehensive", "thorough", "brief", "short", "full",
        "please", "can", "could", "would", "you", "give", "tell", "show", "provide", "me",
        "the", "this", "that", "these", "those", "document", "documents", "file", "about",
        "what", "does", "say", "says", "and", "for", "with", "from", "into", "of", "in", "on",
        "who", "whom", "whose", "how", "when", "where", "which", "why",
        "was", "were", "are", "did", "has", "have", "had", "will", "should", "been",
        "many", "much", "any", "all", "there", "their", "its",
        "sammanfattning", "sammanfatta", "översikt", "utförlig", "detaljerad",
        "kan", "du", "ge", "mig", "dokumentet", "dokument", "vad", "säger", "om", "och",
        "för", "med", "från", "det", "den", "detta", "denna",
        "hur", "vem", "när", "var", "vilken", "vilket", "vilka", "varför",
        "har", "hade", "är", "blev", "många", "mycket",
    }
)

_WORD_RE = re.compile(r"\w+")
_TITLE_SPLIT_RE = re.compile(r"[\s\-_.]+")
PREFIX_LENGTH = 4


def question_tokens(question: str) -> list[str]:
    """Lower-cased question words longer than two characters, fillers removed."""
    return [
        word
        for word in _WORD_RE.findall(question.lower())
        if len(word) > 2 and word not in FILLER_WORDS
    ]


def title_tokens(title: str) -> list[str]:
    return [
        token
        for token in _TITLE_SPLIT_RE.split(title.lower())
        if len(token) > 2 and token not in FILLER_WORDS
    ]


def _tokens_match(question_token: str, title_token: str) -> bool:
    if question_token == title_token:
        return True
    # containment and shared prefixes only count from PREFIX_LENGTH characters up
    shorter, longer = sorted((question_token, title_token), key=len)
    if len(shorter) < PREFIX_LENGTH:
        return False
    return shorter in longer or shorter[:PREFIX_LENGTH] == longer[:PREFIX_LENGTH]


def title_matches(question: str, title: str) -> bool:
    """Return True when the cleaned *question* refers to *title*."""
    tokens = question_tokens(question)
    if not tokens:
        return False
    phrase = " ".join(tokens)
    if len(phrase) >= PREFIX_LENGTH and phrase in title.lower():
        return True
    candidates = title_tokens(title)
    return any(_tokens_match(q, t) for q in tokens for t in candidates)


def match_documents(
    question: str,
    documents: Sequence[AvailableDocument],
) -> list[AvailableDocument]:
    """Return the documents whose titles the question refers to, in input order."""
    return [doc for doc in documents if title_matches(question, doc.title)]
