"""Question classification and adaptive retrieval."""

from ragline.services.retrieval.diversifier import diversify
from ragline.services.retrieval.keyword_search import extract_keywords, keyword_search
from ragline.services.retrieval.query_classifier import classify
from ragline.services.retrieval.retrieval_engine import RetrievalEngine, format_context
from ragline.services.retrieval.title_matcher import match_documents

__all__ = [
    "RetrievalEngine",
    "classify",
    "diversify",
    "extract_keywords",
    "format_context",
    "keyword_search",
    "match_documents",
]
