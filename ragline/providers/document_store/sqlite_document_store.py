"""SQLite-backed document registry and chunk store.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IDocumentStore).
#
# Database: ``data/documents.db`` with two tables:
#   - ``documents``: one row per registered document and its status.
#   - ``chunks``: the document's chunks, ``ON DELETE CASCADE``.
#
# Uses ``aiosqlite`` for async I/O and ``PRAGMA journal_mode=WAL`` for
# concurrent read safety.  Foreign keys are switched on per connection
# because SQLite defaults them off.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from ragline.interfaces.document_store import IDocumentStore
from ragline.models.chunk import Chunk
from ragline.models.document import Document, DocumentStatus
from ragline.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_DOCUMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS documents (
    document_id    TEXT PRIMARY KEY,
    title          TEXT NOT NULL,
    source_url     TEXT NOT NULL DEFAULT '',
    mime_type      TEXT NOT NULL DEFAULT 'application/pdf',
    status         TEXT NOT NULL DEFAULT 'pending',
    error_message  TEXT,
    processed_at   TEXT,
    created_at     TEXT NOT NULL
);
"""

_CREATE_CHUNKS_TABLE = """\
CREATE TABLE IF NOT EXISTS chunks (
    chunk_id      TEXT PRIMARY KEY,
    document_id   TEXT NOT NULL REFERENCES documents(document_id) ON DELETE CASCADE,
    chunk_index   INTEGER NOT NULL,
    content       TEXT NOT NULL,
    start_offset  INTEGER NOT NULL DEFAULT 0,
    end_offset    INTEGER NOT NULL DEFAULT 0,
    metadata      TEXT,
    UNIQUE(document_id, chunk_index)
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
]

# ── DML ───────────────────────────────────────────────────────────────

_DOCUMENT_COLUMNS = (
    "document_id, title, source_url, mime_type, status, error_message, processed_at, created_at"
)

_INSERT_DOCUMENT = f"""\
INSERT INTO documents ({_DOCUMENT_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_DOCUMENT = f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE document_id = ?;"

_SELECT_DOCUMENTS = f"SELECT {_DOCUMENT_COLUMNS} FROM documents"

_UPDATE_STATUS = """\
UPDATE documents SET status = ?, error_message = ?, processed_at = COALESCE(?, processed_at)
WHERE document_id = ?;
"""

_DELETE_CHUNKS = "DELETE FROM chunks WHERE document_id = ?;"

_INSERT_CHUNK = """\
INSERT INTO chunks (chunk_id, document_id, chunk_index, content, start_offset, end_offset, metadata)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_CHUNKS = """\
SELECT chunk_id, document_id, chunk_index, content, start_offset, end_offset, metadata
FROM chunks WHERE document_id = ? ORDER BY chunk_index
"""

_COUNT_CHUNKS = "SELECT COUNT(*) FROM chunks WHERE document_id = ?;"

_DELETE_DOCUMENT = "DELETE FROM documents WHERE document_id = ?;"


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document and chunk persistence.

    Call :meth:`initialize` once before use to create the schema.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            # WAL mode enables concurrent readers while a writer is active.
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_DOCUMENTS_TABLE)
            await db.execute(_CREATE_CHUNKS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(str(self._db_path))
        await db.execute("PRAGMA foreign_keys=ON;")
        return db

    # ── Documents ──────────────────────────────────────────────────────

    async def add_document(self, document: Document) -> Document:
        db = await self._connect()
        try:
            await db.execute(_INSERT_DOCUMENT, (
                document.document_id,
                document.title,
                document.source_url,
                document.mime_type,
                document.status.value,
                document.error_message,
                _to_iso(document.processed_at),
                _to_iso(document.created_at),
            ))
            await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise VectorStoreError(
                message=f"Document {document.document_id} already exists",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            await db.close()

        logger.info("document_registered", document_id=document.document_id, title=document.title)
        return document

    async def get_document(self, document_id: str) -> Document | None:
        db = await self._connect()
        try:
            cursor = await db.execute(_SELECT_DOCUMENT, (document_id,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        return self._row_to_document(row) if row else None

    async def list_documents(
        self,
        statuses: list[DocumentStatus] | None = None,
    ) -> list[Document]:
        query = _SELECT_DOCUMENTS
        params: list[Any] = []
        if statuses:
            placeholders = ", ".join("?" for _ in statuses)
            query += f" WHERE status IN ({placeholders})"
            params.extend(status.value for status in statuses)
        query += " ORDER BY created_at, rowid;"

        db = await self._connect()
        try:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [self._row_to_document(row) for row in rows]

    async def update_status(
        self,
        document_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> Document:
        processed_at = (
            datetime.now(timezone.utc).isoformat() if status == DocumentStatus.COMPLETED else None
        )
        stored_error = error_message if status == DocumentStatus.FAILED else None

        db = await self._connect()
        try:
            cursor = await db.execute(
                _UPDATE_STATUS, (status.value, stored_error, processed_at, document_id)
            )
            await db.commit()
            updated = cursor.rowcount
        finally:
            await db.close()

        if not updated:
            raise VectorStoreError(
                message=f"Document {document_id} not found",
                provider_name=self.get_provider_name(),
            )

        logger.debug("document_status_updated", document_id=document_id, status=status.value)
        document = await self.get_document(document_id)
        assert document is not None
        return document

    async def delete_document(self, document_id: str) -> bool:
        db = await self._connect()
        try:
            cursor = await db.execute(_DELETE_DOCUMENT, (document_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        finally:
            await db.close()

        logger.info("document_deleted", document_id=document_id, deleted=deleted)
        return deleted

    # ── Chunks ─────────────────────────────────────────────────────────

    async def replace_chunks(self, document_id: str, chunks: list[Chunk]) -> int:
        """Delete and re-insert the document's chunks in one transaction."""
        db = await self._connect()
        try:
            await db.execute(_DELETE_CHUNKS, (document_id,))
            await db.executemany(_INSERT_CHUNK, [
                (
                    chunk.chunk_id,
                    document_id,
                    chunk.index,
                    chunk.content,
                    chunk.start_offset,
                    chunk.end_offset,
                    json.dumps(chunk.metadata) if chunk.metadata else None,
                )
                for chunk in chunks
            ])
            await db.commit()
        except aiosqlite.IntegrityError as exc:
            await db.rollback()
            raise VectorStoreError(
                message=f"Could not store chunks for document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            await db.close()

        logger.debug("chunks_replaced", document_id=document_id, count=len(chunks))
        return len(chunks)

    async def get_chunks(self, document_id: str, limit: int | None = None) -> list[Chunk]:
        query = _SELECT_CHUNKS
        params: tuple[Any, ...] = (document_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (document_id, limit)

        db = await self._connect()
        try:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        finally:
            await db.close()

        return [
            Chunk(
                chunk_id=row[0],
                document_id=row[1],
                index=row[2],
                content=row[3],
                start_offset=row[4],
                end_offset=row[5],
                metadata=json.loads(row[6]) if row[6] else {},
            )
            for row in rows
        ]

    async def count_chunks(self, document_id: str) -> int:
        db = await self._connect()
        try:
            cursor = await db.execute(_COUNT_CHUNKS, (document_id,))
            row = await cursor.fetchone()
        finally:
            await db.close()
        return row[0] if row else 0

    # ── Helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_document(row: tuple[Any, ...]) -> Document:
        return Document(
            document_id=row[0],
            title=row[1],
            source_url=row[2],
            mime_type=row[3],
            status=DocumentStatus(row[4]),
            error_message=row[5],
            processed_at=_from_iso(row[6]),
            created_at=_from_iso(row[7]),
        )
