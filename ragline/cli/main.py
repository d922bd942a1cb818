# =============================================================================
# ragline/cli/main.py - Document pipeline CLI
# =============================================================================
#
# Subcommands:
#
#   add        Register a document (URL, Drive link or local path)
#   ingest     Ingest every pending document, or one by --id
#   status     List registered documents with chunk/embedding counts
#   reconcile  Fix statuses that disagree with stored chunks/embeddings
#   ask        Retrieve context for a question and compose an answer
#   delete     Remove a document with its chunks and embeddings
#
# Usage examples:
#   python -m ragline.cli add --title "Annual Report 2023" --url ./report.pdf
#   python -m ragline.cli ingest
#   python -m ragline.cli ask "Summarize the annual report"
# =============================================================================

"""Command-line interface for the ragline document pipeline.

Usage::

    python -m ragline.cli add --title "Annual Report 2023" --url ./report.pdf
    python -m ragline.cli ingest [--id DOCUMENT_ID]
    python -m ragline.cli status
    python -m ragline.cli reconcile
    python -m ragline.cli ask "What documents do you have?"
    python -m ragline.cli delete DOCUMENT_ID --yes
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import Any

from ragline.config.settings import Settings
from ragline.utils.errors import RaglineError


@dataclass
class Components:
    """Everything the subcommands need, wired from settings."""

    document_store: Any
    vector_store: Any
    ingestion: Any
    retrieval: Any
    composer: Any


def _build_components(app_settings: Settings, config: dict[str, Any]) -> Components:
    """Wire providers and services from settings and the YAML config.

    Imports are deferred so ``--help`` does not load chromadb or openai.
    """
    from ragline.config.retrieval_profiles import build_profiles
    from ragline.providers.blob.http_blob_provider import HttpBlobProvider
    from ragline.providers.document_store.sqlite_document_store import SQLiteDocumentStore
    from ragline.providers.embedding.registry import build_embedding_provider
    from ragline.providers.llm.openai_provider import OpenAILLMProvider
    from ragline.providers.vector_store.chromadb_provider import ChromaDBProvider
    from ragline.services.answer_composer import AnswerComposer
    from ragline.services.extraction.text_extractor import TextExtractor
    from ragline.services.ingestion.chunker import Chunker
    from ragline.services.ingestion.embedding_generator import EmbeddingGenerator
    from ragline.services.ingestion.ingestion_service import IngestionService
    from ragline.services.retrieval.retrieval_engine import RetrievalEngine

    embedding_config = app_settings.embedding_config()
    retry_policy = app_settings.retry_policy()
    embedding_provider = build_embedding_provider(embedding_config, retry_policy=retry_policy)

    document_store = SQLiteDocumentStore(app_settings.document_db_path)
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        provider=embedding_provider.get_provider_name(),
        model=embedding_provider.get_model_name(),
    )

    ingestion = IngestionService(
        document_store=document_store,
        vector_store=vector_store,
        blob_provider=HttpBlobProvider(timeout=app_settings.fetch_timeout),
        extractor=TextExtractor(),
        chunker=Chunker(app_settings.chunking_config()),
        embedding_generator=EmbeddingGenerator(embedding_provider, vector_store, embedding_config),
        retry_policy=retry_policy,
        fetch_timeout=app_settings.fetch_timeout,
        extraction_timeout=app_settings.extraction_timeout,
    )
    retrieval = RetrievalEngine(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        document_store=document_store,
        profiles=build_profiles(config.get("retrieval", {}).get("profiles")),
        retry_policy=retry_policy,
        embedding_timeout=app_settings.embedding_timeout,
    )
    composer = AnswerComposer(
        OpenAILLMProvider(
            api_key=app_settings.openai_api_key,
            model=app_settings.chat_model,
            base_url=app_settings.openai_base_url,
            timeout=app_settings.chat_timeout,
            retry_policy=retry_policy,
        ),
        app_settings.composer_config(),
    )
    return Components(
        document_store=document_store,
        vector_store=vector_store,
        ingestion=ingestion,
        retrieval=retrieval,
        composer=composer,
    )


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_add(args: argparse.Namespace, components: Components) -> int:
    document = await components.ingestion.register_document(
        title=args.title,
        source_url=args.url,
        mime_type=args.mime_type,
    )
    print(f"Registered {document.title!r} as {document.document_id} (pending)")
    return 0


def _print_progress(document_id: str, stage, progress: float, message: str) -> None:  # noqa: ANN001
    print(f"  [{progress:5.1f}%] {stage.value:<10} {message}")


async def _handle_ingest(args: argparse.Namespace, components: Components) -> int:
    """Ingest one document by id, or every pending document."""
    from ragline.pipeline.progress_tracker import ALL_DOCUMENTS

    components.ingestion.progress_tracker.register_listener(ALL_DOCUMENTS, _print_progress)

    if args.id:
        document = await components.document_store.get_document(args.id)
        if document is None:
            print(f"Error: no document with id {args.id}", file=sys.stderr)
            return 1
        results = [await components.ingestion.ingest_document(document)]
    else:
        results = await components.ingestion.ingest_pending()

    if not results:
        print("Nothing to ingest.")
        return 0

    failed = 0
    print("\nIngestion summary:")
    for result in results:
        if result.error:
            failed += 1
            print(f"  FAILED    {result.title}: {result.error}")
        elif result.skipped:
            print(f"  SKIPPED   {result.title} (already ingested)")
        else:
            note = " (partial)" if result.partial else ""
            print(
                f"  COMPLETED {result.title}: {result.chunks_created} chunks, "
                f"{result.embeddings_created} embeddings in {result.ingestion_time:.2f}s{note}"
            )
    return 1 if failed else 0


async def _handle_status(args: argparse.Namespace, components: Components) -> int:
    documents = await components.document_store.list_documents()
    if not documents:
        print("No documents registered.")
        return 0

    print(f"{'ID':<38} {'STATUS':<11} {'CHUNKS':>6} {'EMBEDS':>6}  TITLE")
    for document in documents:
        chunks = await components.document_store.count_chunks(document.document_id)
        embeddings = await components.vector_store.count_embeddings(document.document_id)
        print(
            f"{document.document_id:<38} {document.status.value:<11} "
            f"{chunks:>6} {embeddings:>6}  {document.title}"
        )
        if document.error_message:
            print(f"{'':<38} error: {document.error_message}")
    return 0


async def _handle_reconcile(args: argparse.Namespace, components: Components) -> int:
    changed = await components.ingestion.reconcile()
    print(f"Reconciled {len(changed)} document(s).")
    for document_id in changed:
        print(f"  {document_id}")
    return 0


async def _handle_ask(args: argparse.Namespace, components: Components) -> int:
    retrieval = await components.retrieval.retrieve(args.question)
    if args.context_only:
        print(retrieval.context_text)
        return 0

    answer = await components.composer.compose(args.question, retrieval)
    print(answer.answer)
    if answer.references:
        print("\nSources:")
        for reference in answer.references:
            link = reference.download_url or reference.view_url
            print(f"  - {reference.title}" + (f" ({link})" if link else ""))
    return 0


async def _handle_delete(args: argparse.Namespace, components: Components) -> int:
    if not args.yes:
        confirm = input(f"  Delete document {args.document_id}? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    if not await components.ingestion.delete_document(args.document_id):
        print(f"Error: no document with id {args.document_id}", file=sys.stderr)
        return 1
    print(f"Deleted {args.document_id}")
    return 0


_HANDLERS = {
    "add": _handle_add,
    "ingest": _handle_ingest,
    "status": _handle_status,
    "reconcile": _handle_reconcile,
    "ask": _handle_ask,
    "delete": _handle_delete,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ragline CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m ragline.cli",
        description="Ingest documents and ask questions about them.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config path")
    subparsers = parser.add_subparsers(dest="command", help="Pipeline commands")

    add_parser = subparsers.add_parser("add", help="Register a document for ingestion")
    add_parser.add_argument("--title", required=True, help="Document title")
    add_parser.add_argument("--url", required=True, help="URL, Google Drive link or local path")
    add_parser.add_argument(
        "--mime-type",
        dest="mime_type",
        default="application/pdf",
        help="Declared MIME type (default: application/pdf)",
    )

    ingest_parser = subparsers.add_parser("ingest", help="Ingest pending documents")
    ingest_parser.add_argument("--id", help="Ingest only this document")

    subparsers.add_parser("status", help="List documents and their status")
    subparsers.add_parser("reconcile", help="Repair statuses from stored content")

    ask_parser = subparsers.add_parser("ask", help="Ask a question about the documents")
    ask_parser.add_argument("question", help="The question")
    ask_parser.add_argument(
        "--context-only",
        action="store_true",
        dest="context_only",
        help="Print the retrieved context instead of calling the LLM",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("document_id", help="Document to delete")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, components: Components) -> int:
    await components.document_store.initialize()
    return await _HANDLERS[args.command](args, components)


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, wire the pipeline and run one subcommand.

    Returns the process exit code: ``0`` on success, ``1`` on failure.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    from ragline.config.loader import load_config
    from ragline.utils.logging import configure_logging

    app_settings = Settings()
    configure_logging(app_settings.log_level, app_env=app_settings.app_env)

    try:
        config = load_config(args.config, app_settings)
        components = _build_components(app_settings, config)
        return asyncio.run(_run(args, components))
    except RaglineError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
