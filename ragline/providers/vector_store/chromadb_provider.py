"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local, no external
service required.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import chromadb
import structlog

from ragline.interfaces.vector_store_provider import IVectorStoreProvider
from ragline.models.embedding import EmbeddingRecord
from ragline.models.retrieval import SearchResult
from ragline.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every record is upserted with a pre-computed vector, so ChromaDB's
    built-in embedding is never invoked.  Without this, ChromaDB downloads
    its default ONNX model on collection creation.
    """

    def __init__(self) -> None:
        pass

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "ragline uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    @staticmethod
    def name() -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"

    def get_config(self) -> dict[str, Any]:
        return {}

    @staticmethod
    def build_from_config(config: dict[str, Any]) -> _NoopEmbeddingFunction:
        return _NoopEmbeddingFunction()



class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Records are stored under the id ``{chunk_id}:{provider}:{model}`` so
    re-upserting the same chunk with the same model replaces it.  When
    *provider* and *model* are given, :meth:`search`, :meth:`count_embeddings`
    and :meth:`get_document_embeddings` only consider records written by
    that pair; vectors from different models are not comparable.
    :meth:`delete_document_embeddings` removes the rows of every model.

    Parameters
    ----------
    persist_directory:
        Directory ChromaDB persists to.
    collection_name:
        Collection holding every embedding record.
    provider, model:
        Optional embedding provider/model restricting searches and counts.
    client:
        Pre-built ChromaDB client (e.g. ``chromadb.EphemeralClient()`` in
        tests); a ``PersistentClient`` is created when omitted.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "ragline_embeddings",
        provider: str | None = None,
        model: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._provider = provider
        self._model = model
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted with a different embedding function reject
        # the no-op one; fall back to whatever was persisted.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_embedding(self, record: EmbeddingRecord) -> None:
        """Insert or replace one embedding record."""
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[record.record_id],
                embeddings=[record.vector],
                documents=[record.content],
                metadatas=[self._record_to_metadata(record)],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def search(
        self,
        query_vector: list[float],
        similarity_threshold: float,
        match_count: int,
    ) -> list[SearchResult]:
        """Cosine search; similarity is ``1 - distance`` clipped to [0, 1]."""
        if match_count <= 0:
            return []
        try:
            results = await asyncio.to_thread(self._query, query_vector, match_count)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results or not results.get("documents") or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(documents)
        distances = results["distances"][0] if results.get("distances") else [0.0] * len(documents)

        matches: list[SearchResult] = []
        for content, meta, distance in zip(documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - float(distance)))
            if similarity < similarity_threshold:
                continue
            meta = meta or {}
            matches.append(
                SearchResult(
                    document_id=str(meta.get("document_id", "")),
                    document_title=str(meta.get("document_title", "")),
                    content=content or "",
                    similarity=similarity,
                    chunk_id=meta.get("chunk_id"),
                    chunk_index=meta.get("chunk_index"),
                )
            )
        matches.sort(key=lambda r: r.similarity or 0.0, reverse=True)

        logger.debug(
            "chromadb_search",
            threshold=similarity_threshold,
            raw_results=len(documents),
            results_count=len(matches),
            top_score=matches[0].similarity if matches else 0.0,
        )
        return matches[:match_count]

    async def count_embeddings(self, document_id: str) -> int:
        """Embeddings of *document_id* written by the configured provider/model."""
        return len(await self._ids_where(self._document_where(document_id)))

    async def get_document_embeddings(self, document_id: str) -> list[EmbeddingRecord]:
        try:
            existing = await asyncio.to_thread(
                self._collection.get,
                where=self._document_where(document_id),
                include=["embeddings", "documents", "metadatas"],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = existing.get("ids") or []
        embeddings = existing.get("embeddings")
        documents = existing.get("documents") or [""] * len(ids)
        metadatas = existing.get("metadatas") or [{}] * len(ids)
        records = [
            self._metadata_to_record(
                meta or {},
                content or "",
                [float(v) for v in embeddings[i]] if embeddings is not None else [],
            )
            for i, (content, meta) in enumerate(zip(documents, metadatas, strict=True))
        ]
        records.sort(key=lambda r: r.chunk_index)
        return records

    async def delete_document_embeddings(self, document_id: str) -> int:
        """Delete every embedding of *document_id*, whatever model wrote it."""
        try:
            count = len(await self._ids_where({"document_id": document_id}))
            if count > 0:
                await asyncio.to_thread(self._collection.delete, where={"document_id": document_id})
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_document", document_id=document_id, deleted_count=count)
        return count

    def get_provider_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _where(self) -> dict[str, Any] | None:
        conditions: list[dict[str, Any]] = []
        if self._provider:
            conditions.append({"provider": self._provider})
        if self._model:
            conditions.append({"model": self._model})
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def _document_where(self, document_id: str) -> dict[str, Any]:
        scope = self._where()
        if scope is None:
            return {"document_id": document_id}
        conditions = scope["$and"] if "$and" in scope else [scope]
        return {"$and": [{"document_id": document_id}, *conditions]}

    async def _ids_where(self, where: dict[str, Any]) -> list[str]:
        try:
            existing = await asyncio.to_thread(self._collection.get, where=where, include=[])
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return list(existing.get("ids") or []) if existing else []

    def _query(self, query_vector: list[float], match_count: int) -> dict[str, Any] | None:
        total = self._collection.count()
        if total == 0:
            return None
        kwargs: dict[str, Any] = {
            "query_embeddings": [query_vector],
            "n_results": min(match_count, total),
        }
        where = self._where()
        if where:
            kwargs["where"] = where
        return self._collection.query(**kwargs)

    @staticmethod
    def _record_to_metadata(record: EmbeddingRecord) -> dict[str, Any]:
        """ChromaDB metadata must be flat scalars; extra metadata is stored as JSON."""
        return {
            "chunk_id": record.chunk_id,
            "document_id": record.document_id,
            "document_title": record.document_title,
            "chunk_index": record.chunk_index,
            "provider": record.provider,
            "model": record.model,
            "similarity_threshold": record.similarity_threshold,
            "metadata_json": json.dumps(record.metadata, default=str),
        }

    @staticmethod
    def _metadata_to_record(meta: dict[str, Any], content: str, vector: list[float]) -> EmbeddingRecord:
        return EmbeddingRecord(
            chunk_id=str(meta.get("chunk_id", "")),
            document_id=str(meta.get("document_id", "")),
            document_title=str(meta.get("document_title", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            content=content,
            vector=vector,
            provider=str(meta.get("provider", "")),
            model=str(meta.get("model", "")),
            similarity_threshold=float(meta.get("similarity_threshold", 0.7)),
            metadata=json.loads(meta.get("metadata_json") or "{}"),
        )
