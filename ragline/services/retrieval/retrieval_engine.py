"""Adaptive retrieval: from a question to a context block for the LLM.

:class:`RetrievalEngine` tries, in order:

1. **Document listing** -- "what documents do you have?" is answered from
   the document registry alone.
2. **Title match** -- a question naming a document's title gets that
   document's leading chunks, with no embedding call.
3. **Threshold escalation** -- the question is embedded and searched at
   each threshold of its profile's ladder, strictest first, stopping at
   the first threshold with results.
4. **Diversification** -- results are spread across documents (and, for
   factual questions, across document regions).
5. **Fallback** -- keyword search over chunk content, then an explicit
   "nothing relevant" context naming the available documents.

All per-kind numbers come from
:class:`~ragline.config.retrieval_profiles.RetrievalProfile`.  "No
results" is never an error; infrastructure failures (embedding provider
unreachable, vector store down) propagate.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence

import structlog

from ragline.config.retrieval_profiles import DEFAULT_PROFILES, RetrievalProfile
from ragline.interfaces.document_store import IDocumentStore
from ragline.interfaces.embedding_provider import IEmbeddingProvider
from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.document import AvailableDocument, DocumentStatus
from ragline.models.retrieval import (
    QueryClassification,
    QueryKind,
    RetrievalResult,
    RetrievalStrategy,
    SearchResult,
)
from ragline.services.retrieval.diversifier import diversify
from ragline.services.retrieval.keyword_search import keyword_search
from ragline.services.retrieval.query_classifier import classify
from ragline.services.retrieval.title_matcher import match_documents
from ragline.utils.errors import NetworkTimeoutError
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_FALLBACK_MAX_CHARS = 1000
DEFAULT_EMBEDDING_TIMEOUT = 15.0

NO_DOCUMENTS_LISTING = (
    "I currently do not have access to any processed documents. No documents have "
    "been successfully uploaded and processed yet. Please upload and process "
    "documents first, then I'll be able to help answer questions about their content."
)
NO_DOCUMENTS_CONTEXT = "I do not have access to any processed documents at the moment."


def format_context(results: Sequence[SearchResult]) -> str:
    """Render results as ``Document: <title>\\nContent: <content>`` blocks."""
    return "\n\n".join(
        f"Document: {result.document_title}\nContent: {result.content}" for result in results
    )


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def document_listing_context(documents: Sequence[AvailableDocument]) -> str:
    """Enumerate every available document with its chunk count."""
    if not documents:
        return NO_DOCUMENTS_LISTING
    count = len(documents)
    lines = "\n".join(
        f"{position}. {doc.title} ({doc.chunk_count} chunks)"
        for position, doc in enumerate(documents, start=1)
    )
    return (
        f"I have access to {count} processed document{_plural(count)} that "
        f"{'has' if count == 1 else 'have'} been successfully uploaded and processed:\n\n"
        f"{lines}\n\n"
        "I can help you with:\n"
        "• Answering questions about the content in these documents\n"
        "• Providing summaries of the documents\n"
        "• Finding specific information across all documents\n"
        "• Explaining key concepts or topics covered"
    )


def no_match_context(documents: Sequence[AvailableDocument]) -> str:
    """Explain that nothing relevant was found, naming what is available."""
    if not documents:
        return NO_DOCUMENTS_CONTEXT
    count = len(documents)
    lines = "\n".join(f"{position}. {doc.title}" for position, doc in enumerate(documents, start=1))
    return (
        f"I have access to {count} processed document{_plural(count)}:\n\n{lines}\n\n"
        "No relevant match for this question was found in their content. "
        "Try rephrasing the question or naming one of the documents above."
    )


class RetrievalEngine:
    """Builds the context block for a question.

    Parameters
    ----------
    embedding_provider:
        Embeds the question for similarity search.
    vector_store:
        Similarity search over stored embeddings.
    document_store:
        Document registry and chunk content (listing, title match,
        keyword fallback).
    profiles:
        Per-kind retrieval parameters; defaults to
        :data:`~ragline.config.retrieval_profiles.DEFAULT_PROFILES`.
    retry_policy:
        Backoff for the question-embedding call.
    embedding_timeout:
        Seconds allowed per embedding attempt.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore,
        profiles: Mapping[QueryKind, RetrievalProfile] | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        embedding_timeout: float = DEFAULT_EMBEDDING_TIMEOUT,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._document_store = document_store
        self._profiles = dict(profiles or DEFAULT_PROFILES)
        self._retry_policy = retry_policy
        self._embedding_timeout = embedding_timeout

    def profile_for(self, classification: QueryClassification) -> RetrievalProfile:
        return self._profiles[classification.kind]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def discover_documents(self) -> list[AvailableDocument]:
        """Documents that are completed or pending and have chunks AND embeddings."""
        available: list[AvailableDocument] = []
        documents = await self._document_store.list_documents(
            [DocumentStatus.COMPLETED, DocumentStatus.PENDING]
        )
        for document in documents:
            chunks = await self._document_store.count_chunks(document.document_id)
            embeddings = await self._vector_store.count_embeddings(document.document_id)
            if chunks > 0 and embeddings > 0:
                available.append(
                    AvailableDocument(
                        document_id=document.document_id,
                        title=document.title,
                        source_url=document.source_url,
                        status=document.status,
                        chunk_count=chunks,
                        embedding_count=embeddings,
                    )
                )
        logger.debug("documents_discovered", available=len(available), registered=len(documents))
        return available

    async def retrieve(
        self,
        question: str,
        available_documents: Sequence[AvailableDocument] | None = None,
    ) -> RetrievalResult:
        """Return the context text and search results for *question*.

        Parameters
        ----------
        question:
            The user's question.
        available_documents:
            Documents retrieval may draw from; discovered from the stores
            when ``None``.

        Raises
        ------
        ValueError
            If *question* is blank.
        """
        start = time.perf_counter()
        classification = classify(question)
        profile = self.profile_for(classification)
        documents = (
            list(available_documents)
            if available_documents is not None
            else await self.discover_documents()
        )
        log = logger.bind(kind=classification.kind.value, documents=len(documents))

        def _result(
            context: str,
            results: list[SearchResult],
            strategy: RetrievalStrategy,
            threshold: float | None = None,
        ) -> RetrievalResult:
            duration_ms = (time.perf_counter() - start) * 1000
            log.info(
                "retrieval_complete",
                strategy=strategy.value,
                results=len(results),
                threshold=threshold,
                context_chars=len(context),
                duration_ms=round(duration_ms, 1),
            )
            return RetrievalResult(
                context_text=context,
                results=results,
                classification=classification,
                strategy=strategy,
                threshold_used=threshold,
                duration_ms=duration_ms,
            )

        # Step 1: listing.
        if classification.is_document_listing:
            return _result(document_listing_context(documents), [], RetrievalStrategy.DOCUMENT_LISTING)

        if not documents:
            return _result(NO_DOCUMENTS_CONTEXT, [], RetrievalStrategy.NO_MATCH)

        # Step 2: title match.
        title_results = await self._title_match(question, documents, profile)
        if title_results:
            return _result(format_context(title_results), title_results, RetrievalStrategy.TITLE_MATCH)

        # Steps 3-4: threshold escalation + diversification.
        by_id = {doc.document_id: doc for doc in documents}
        raw, threshold = await self._escalating_search(question, profile, by_id)
        if raw:
            selected = diversify(raw, profile, {d: doc.chunk_count for d, doc in by_id.items()})
            return _result(format_context(selected), selected, RetrievalStrategy.VECTOR_SEARCH, threshold)

        # Step 5: keyword fallback, then an explicit no-match context.
        max_chars = (
            profile.fallback_max_chars
            if classification.is_document_specific
            else DEFAULT_FALLBACK_MAX_CHARS
        )
        keyword_results = await keyword_search(
            self._document_store,
            documents,
            question,
            max_per_document=profile.max_per_document,
            max_total=profile.max_total,
            max_chars=max_chars,
        )
        if keyword_results:
            return _result(format_context(keyword_results), keyword_results, RetrievalStrategy.KEYWORD_FALLBACK)

        return _result(no_match_context(documents), [], RetrievalStrategy.NO_MATCH)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _title_match(
        self,
        question: str,
        documents: Sequence[AvailableDocument],
        profile: RetrievalProfile,
    ) -> list[SearchResult]:
        matched = match_documents(question, documents)
        if not matched:
            return []

        results: list[SearchResult] = []
        for document in matched:
            chunks = await self._document_store.get_chunks(document.document_id, limit=profile.leading_chunks)
            results.extend(
                SearchResult(
                    document_id=document.document_id,
                    document_title=document.title,
                    content=chunk.content,
                    similarity=1.0,
                    chunk_id=chunk.chunk_id,
                    chunk_index=chunk.index,
                    document_url=document.source_url or None,
                )
                for chunk in chunks
            )
        logger.debug(
            "title_match",
            titles=[doc.title for doc in matched],
            chunks=len(results),
        )
        return results

    async def _escalating_search(
        self,
        question: str,
        profile: RetrievalProfile,
        documents: Mapping[str, AvailableDocument],
    ) -> tuple[list[SearchResult], float | None]:
        vector = await with_retry(
            lambda: self._embed_question(question),
            policy=self._retry_policy,
            operation="question_embedding",
        )
        for threshold in profile.thresholds:
            found = await self._vector_store.search(vector, threshold, profile.match_count)
            results = [
                self._with_url(result, documents[result.document_id])
                for result in found
                if result.document_id in documents
            ]
            logger.debug("threshold_search", threshold=threshold, raw=len(found), kept=len(results))
            if results:
                return results, threshold
        return [], None

    async def _embed_question(self, question: str) -> list[float]:
        try:
            return await asyncio.wait_for(
                self._embedding_provider.embed_single(question),
                timeout=self._embedding_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise NetworkTimeoutError(
                message=f"Question embedding timed out after {self._embedding_timeout:.0f}s",
                provider_name=self._embedding_provider.get_provider_name(),
            ) from exc

    @staticmethod
    def _with_url(result: SearchResult, document: AvailableDocument) -> SearchResult:
        if result.document_url or not document.source_url:
            return result
        return result.model_copy(update={"document_url": document.source_url})
