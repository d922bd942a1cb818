"""Ingestion progress tracking with callback-based listener notification.

Tracks the current stage and percentage for each document being ingested
and broadcasts updates to registered listeners (Observer pattern):

    IngestionService --update()--> ProgressTracker --callback()--> listener(s)

Notifications are one-way.  :meth:`ProgressTracker.update` is synchronous
and never waits on a listener: coroutine listeners are scheduled on the
running loop, and a listener that raises is logged and skipped, so progress
reporting can never change the pipeline's control flow.

Listeners registered under :data:`ALL_DOCUMENTS` receive every update.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from ragline.models.ingestion import IngestionStage
from ragline.utils.logging import get_logger

ALL_DOCUMENTS = "*"

# Percentages reported at each stage boundary, (start, end).
STAGE_PROGRESS: dict[IngestionStage, tuple[float, float]] = {
    IngestionStage.QUEUED: (0.0, 0.0),
    IngestionStage.EXTRACTION: (10.0, 30.0),
    IngestionStage.CHUNKING: (40.0, 60.0),
    IngestionStage.EMBEDDING: (70.0, 85.0),
    IngestionStage.STORAGE: (90.0, 90.0),
    IngestionStage.COMPLETED: (100.0, 100.0),
    IngestionStage.FAILED: (100.0, 100.0),
}

ProgressListener = Callable[[str, IngestionStage, float, str], object]


@dataclass
class _DocumentStatus:
    """Internal snapshot of one document's progress."""

    stage: IngestionStage = IngestionStage.QUEUED
    progress: float = 0.0
    message: str = ""


class ProgressTracker:
    """Tracks and broadcasts ingestion progress via callbacks.

    Listeners are keyed by ``document_id`` so concurrent observers of
    different documents do not see each other's updates.
    """

    def __init__(self) -> None:
        self._statuses: dict[str, _DocumentStatus] = {}
        self._listeners: dict[str, list[ProgressListener]] = {}
        # Strong references to scheduled coroutine listeners until they finish.
        self._pending: set[asyncio.Future] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update(
        self,
        document_id: str,
        stage: IngestionStage,
        progress: float,
        message: str = "",
    ) -> None:
        """Record a progress update and notify listeners without waiting on them.

        Parameters
        ----------
        document_id:
            The document being ingested.
        stage:
            The current ingestion stage.
        progress:
            Completion percentage, clamped to 0.0 - 100.0.
        message:
            Human-readable status message.
        """
        progress = max(0.0, min(100.0, progress))
        self._statuses[document_id] = _DocumentStatus(stage=stage, progress=progress, message=message)

        self._logger.debug(
            "progress_update",
            document_id=document_id,
            stage=stage.value,
            progress=round(progress, 1),
            message=message,
        )
        self._notify_listeners(document_id, stage, progress, message)

    def stage_callback(self, document_id: str, stage: IngestionStage) -> Callable[[float], None]:
        """Return a ``(percent) -> None`` callback scaled into *stage*'s band.

        Sub-components (extractor, embedding generator) report their own
        0-100 progress; this maps it onto the stage range in
        :data:`STAGE_PROGRESS`.
        """
        start, end = STAGE_PROGRESS[stage]

        def _report(percent: float) -> None:
            fraction = max(0.0, min(100.0, percent)) / 100.0
            self.update(document_id, stage, start + (end - start) * fraction)

        return _report

    def register_listener(self, document_id: str, callback: ProgressListener) -> None:
        """Register *callback* for updates on *document_id* (or :data:`ALL_DOCUMENTS`).

        The callback receives ``(document_id, stage, progress, message)``
        and may be sync or async.
        """
        listeners = self._listeners.setdefault(document_id, [])
        if callback not in listeners:
            listeners.append(callback)
            self._logger.debug(
                "listener_registered",
                document_id=document_id,
                total_listeners=len(listeners),
            )

    def unregister_listener(self, document_id: str, callback: ProgressListener) -> None:
        listeners = self._listeners.get(document_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_status(self, document_id: str) -> dict:
        """Return the latest stage, progress and message for *document_id*.

        Returns
        -------
        dict
            Keys: ``stage`` (:class:`str`), ``progress`` (:class:`float`),
            ``message`` (:class:`str`).  Zeroed defaults for unknown ids.
        """
        status = self._statuses.get(document_id, _DocumentStatus())
        return {
            "stage": status.stage.value,
            "progress": status.progress,
            "message": status.message,
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _notify_listeners(
        self,
        document_id: str,
        stage: IngestionStage,
        progress: float,
        message: str,
    ) -> None:
        listeners = [
            *self._listeners.get(document_id, []),
            *self._listeners.get(ALL_DOCUMENTS, []),
        ]
        for callback in listeners:
            try:
                result = callback(document_id, stage, progress, message)
                if asyncio.iscoroutine(result):
                    self._schedule(result)
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    document_id=document_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )

    def _schedule(self, coro) -> None:  # noqa: ANN001
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            # No running loop: nothing can run the coroutine.
            coro.close()
            self._logger.warning("listener_coroutine_dropped", reason="no running event loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._logger.warning("listener_callback_error", error=str(task.exception()))
