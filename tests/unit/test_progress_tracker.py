"""Unit tests for ProgressTracker."""

from __future__ import annotations

import asyncio

from ragline.models.ingestion import IngestionStage
from ragline.pipeline.progress_tracker import ALL_DOCUMENTS, ProgressTracker


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, IngestionStage, float, str]] = []

    def __call__(self, document_id: str, stage: IngestionStage, progress: float, message: str) -> None:
        self.events.append((document_id, stage, progress, message))


class TestProgressTracker:
    def test_update_records_status(self) -> None:
        tracker = ProgressTracker()
        tracker.update("doc-1", IngestionStage.CHUNKING, 45.0, "Chunking")

        assert tracker.get_status("doc-1") == {"stage": "chunking", "progress": 45.0, "message": "Chunking"}

    def test_unknown_document_has_defaults(self) -> None:
        assert ProgressTracker().get_status("nope") == {"stage": "queued", "progress": 0.0, "message": ""}

    def test_progress_is_clamped(self) -> None:
        tracker = ProgressTracker()
        tracker.update("doc-1", IngestionStage.EMBEDDING, 140.0)
        assert tracker.get_status("doc-1")["progress"] == 100.0

    def test_listeners_are_scoped_by_document(self) -> None:
        tracker = ProgressTracker()
        mine, everything = _Recorder(), _Recorder()
        tracker.register_listener("doc-1", mine)
        tracker.register_listener(ALL_DOCUMENTS, everything)

        tracker.update("doc-1", IngestionStage.EXTRACTION, 10.0)
        tracker.update("doc-2", IngestionStage.EXTRACTION, 10.0)

        assert [e[0] for e in mine.events] == ["doc-1"]
        assert [e[0] for e in everything.events] == ["doc-1", "doc-2"]

    def test_duplicate_registration_ignored_and_unregister(self) -> None:
        tracker = ProgressTracker()
        recorder = _Recorder()
        tracker.register_listener("doc-1", recorder)
        tracker.register_listener("doc-1", recorder)
        tracker.update("doc-1", IngestionStage.STORAGE, 90.0)
        tracker.unregister_listener("doc-1", recorder)
        tracker.update("doc-1", IngestionStage.COMPLETED, 100.0)

        assert len(recorder.events) == 1

    def test_failing_listener_does_not_break_update(self) -> None:
        tracker = ProgressTracker()
        recorder = _Recorder()

        def _broken(*_args: object) -> None:
            raise RuntimeError("listener bug")

        tracker.register_listener("doc-1", _broken)
        tracker.register_listener("doc-1", recorder)
        tracker.update("doc-1", IngestionStage.CHUNKING, 50.0)

        assert len(recorder.events) == 1

    def test_stage_callback_scales_into_band(self) -> None:
        tracker = ProgressTracker()
        recorder = _Recorder()
        tracker.register_listener("doc-1", recorder)

        report = tracker.stage_callback("doc-1", IngestionStage.EXTRACTION)
        report(0.0)
        report(50.0)
        report(100.0)

        assert [e[2] for e in recorder.events] == [10.0, 20.0, 30.0]

    async def test_coroutine_listener_is_scheduled(self) -> None:
        tracker = ProgressTracker()
        seen: list[float] = []

        async def _listener(document_id: str, stage: IngestionStage, progress: float, message: str) -> None:
            seen.append(progress)

        tracker.register_listener("doc-1", _listener)
        tracker.update("doc-1", IngestionStage.EMBEDDING, 70.0)
        await asyncio.sleep(0)

        assert seen == [70.0]

    def test_coroutine_listener_without_loop_is_dropped(self) -> None:
        tracker = ProgressTracker()

        async def _listener(*_args: object) -> None:
            raise AssertionError("should never run")

        tracker.register_listener("doc-1", _listener)
        tracker.update("doc-1", IngestionStage.EMBEDDING, 70.0)
