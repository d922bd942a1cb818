"""Core services: extraction, ingestion, retrieval and answer composition."""

from ragline.services.answer_composer import AnswerComposer
from ragline.services.extraction import TextExtractor
from ragline.services.ingestion import Chunker, EmbeddingGenerator, IngestionService
from ragline.services.retrieval import RetrievalEngine

__all__ = [
    "AnswerComposer",
    "Chunker",
    "EmbeddingGenerator",
    "IngestionService",
    "RetrievalEngine",
    "TextExtractor",
]
