"""Unit tests for the ragline.cli entry point.

The component graph is replaced with in-memory fakes, so every subcommand
runs end to end without chromadb, SQLite files or network access.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from ragline.cli.main import Components, build_parser, main
from ragline.models.chunk import ChunkingConfig
from ragline.models.document import DocumentStatus
from ragline.models.embedding import EmbeddingConfig
from ragline.services.answer_composer import AnswerComposer
from ragline.services.extraction.text_extractor import TextExtractor
from ragline.services.ingestion.chunker import Chunker
from ragline.services.ingestion.embedding_generator import EmbeddingGenerator
from ragline.services.ingestion.ingestion_service import IngestionService
from ragline.services.retrieval.retrieval_engine import RetrievalEngine
from tests.conftest import (
    FAST_RETRY,
    MockBlobProvider,
    MockDocumentStore,
    MockEmbeddingProvider,
    MockLLM,
    MockVectorStore,
    REPORT_LINES,
    build_text_pdf,
)


# ======================================================================
# Shared helpers
# ======================================================================


class _InitializingDocumentStore(MockDocumentStore):
    """MockDocumentStore with the schema hook the CLI calls first."""

    def __init__(self) -> None:
        super().__init__()
        self.initialized = 0

    async def initialize(self) -> None:
        self.initialized += 1


def _components(blobs: dict[str, bytes] | None = None) -> Components:
    document_store = _InitializingDocumentStore()
    vector_store = MockVectorStore()
    embedding_provider = MockEmbeddingProvider()
    embedding_config = EmbeddingConfig(
        provider="mock", model="mock-embed-v1", api_key="k", batch_size=4, batch_delay=0.0
    )
    ingestion = IngestionService(
        document_store=document_store,
        vector_store=vector_store,
        blob_provider=MockBlobProvider(blobs),
        extractor=TextExtractor(),
        chunker=Chunker(ChunkingConfig(chunk_size=120, overlap=20, min_chunk_size=10)),
        embedding_generator=EmbeddingGenerator(embedding_provider, vector_store, embedding_config),
        retry_policy=FAST_RETRY,
    )
    retrieval = RetrievalEngine(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        document_store=document_store,
        retry_policy=FAST_RETRY,
    )
    return Components(
        document_store=document_store,
        vector_store=vector_store,
        ingestion=ingestion,
        retrieval=retrieval,
        composer=AnswerComposer(MockLLM("The plant was finished in autumn.")),
    )


@pytest.fixture
def components() -> Components:
    return _components({"mem://report": build_text_pdf(REPORT_LINES)})


@pytest.fixture
def run_cli(components: Components):
    """Call ``main`` with the fake components and no logging setup."""

    def _run(*argv: str) -> int:
        with (
            patch("ragline.cli.main._build_components", return_value=components),
            patch("ragline.config.loader.load_config", return_value={}),
            patch("ragline.utils.logging.configure_logging"),
        ):
            return main(list(argv))

    return _run


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_add_arguments(self) -> None:
        args = build_parser().parse_args(["add", "--title", "Report", "--url", "./r.pdf"])
        assert args.command == "add"
        assert args.title == "Report"
        assert args.url == "./r.pdf"
        assert args.mime_type == "application/pdf"
        assert args.config == "config/config.yaml"

    def test_ask_context_only(self) -> None:
        args = build_parser().parse_args(["ask", "What is new?", "--context-only"])
        assert args.question == "What is new?"
        assert args.context_only is True

    def test_delete_short_yes_flag(self) -> None:
        args = build_parser().parse_args(["delete", "doc-1", "-y"])
        assert args.document_id == "doc-1"
        assert args.yes is True

    def test_ingest_optional_id(self) -> None:
        assert build_parser().parse_args(["ingest"]).id is None
        assert build_parser().parse_args(["ingest", "--id", "d1"]).id == "d1"

    def test_add_requires_title(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add", "--url", "./r.pdf"])


# ======================================================================
# main()
# ======================================================================


class TestMain:
    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_full_workflow(self, run_cli, components: Components, capsys) -> None:
        assert run_cli("add", "--title", "Field Notes Q3", "--url", "mem://report") == 0
        out = capsys.readouterr().out
        assert "Registered 'Field Notes Q3'" in out
        assert "(pending)" in out
        (document_id,) = components.document_store.documents

        assert run_cli("ingest") == 0
        out = capsys.readouterr().out
        assert "Ingestion summary:" in out
        assert "COMPLETED Field Notes Q3" in out
        assert "[100.0%] completed" in out
        assert components.document_store.documents[document_id].status is DocumentStatus.COMPLETED

        assert run_cli("status") == 0
        out = capsys.readouterr().out
        assert document_id in out
        assert "completed" in out

        assert run_cli("ask", "Summarize the field notes", "--context-only") == 0
        out = capsys.readouterr().out
        assert "Document: Field Notes Q3" in out
        assert "annual report" in out

        assert run_cli("ask", "Summarize the field notes") == 0
        out = capsys.readouterr().out
        assert "The plant was finished in autumn." in out
        assert "Sources:" in out
        assert "- Field Notes Q3 (mem://report)" in out

        assert run_cli("delete", document_id, "--yes") == 0
        assert f"Deleted {document_id}" in capsys.readouterr().out
        assert components.vector_store.records == {}
        assert components.document_store.initialized == 6

    def test_reconcile_after_ingest(self, run_cli, capsys) -> None:
        run_cli("add", "--title", "Field Notes Q3", "--url", "mem://report")
        run_cli("ingest")
        capsys.readouterr()

        run_cli("reconcile")
        assert "Reconciled 0 document(s)." in capsys.readouterr().out

    def test_ingest_failure_returns_one(self, run_cli, capsys) -> None:
        run_cli("add", "--title", "Missing", "--url", "mem://nowhere")
        capsys.readouterr()

        assert run_cli("ingest") == 1
        assert "FAILED    Missing" in capsys.readouterr().out

    def test_ingest_unknown_id(self, run_cli, capsys) -> None:
        assert run_cli("ingest", "--id", "nope") == 1
        assert "no document with id nope" in capsys.readouterr().err

    def test_ingest_nothing_pending(self, run_cli, capsys) -> None:
        assert run_cli("ingest") == 0
        assert "Nothing to ingest." in capsys.readouterr().out

    def test_status_empty(self, run_cli, capsys) -> None:
        assert run_cli("status") == 0
        assert "No documents registered." in capsys.readouterr().out

    def test_ask_without_documents(self, run_cli, capsys) -> None:
        assert run_cli("ask", "When did construction start?", "--context-only") == 0
        assert "do not have access to any processed documents" in capsys.readouterr().out

    def test_delete_missing_document(self, run_cli, capsys) -> None:
        assert run_cli("delete", "ghost", "--yes") == 1
        assert "no document with id ghost" in capsys.readouterr().err

    def test_delete_aborted_at_prompt(self, run_cli, components: Components, capsys) -> None:
        run_cli("add", "--title", "Keep Me", "--url", "mem://report")
        (document_id,) = components.document_store.documents
        capsys.readouterr()

        with patch("builtins.input", return_value="n"):
            assert run_cli("delete", document_id) == 0

        assert "Aborted." in capsys.readouterr().out
        assert document_id in components.document_store.documents

    def test_blank_question_is_an_error(self, run_cli, capsys) -> None:
        assert run_cli("ask", "   ") == 1
        assert capsys.readouterr().err.startswith("Error:")
