"""Ingestion progress observation."""

from ragline.pipeline.progress_tracker import ALL_DOCUMENTS, STAGE_PROGRESS, ProgressTracker

__all__ = ["ALL_DOCUMENTS", "STAGE_PROGRESS", "ProgressTracker"]
