"""Utility modules for ragline.

- **errors** -- Exception hierarchy rooted at RaglineError; each stage
  raises its own subclass and transient failures are flagged retryable.
- **logging** -- structlog setup with a dual renderer: coloured console
  output in development, JSON in production.
- **retry** -- tenacity-backed retry-with-backoff used at every network
  boundary.
- **urls** -- Google Drive share-link parsing and download-URL rewriting.
"""

from ragline.utils.errors import (
    BlobAccessError,
    BlobNotFoundError,
    ConfigurationError,
    DocumentFormatError,
    ExtractionError,
    ExtractionTimeoutError,
    IngestionError,
    NetworkTimeoutError,
    ProviderError,
    RaglineError,
    RateLimitError,
    VectorStoreError,
    is_retryable,
)
from ragline.utils.logging import configure_logging, get_logger
from ragline.utils.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry
from ragline.utils.urls import extract_google_drive_file_id, to_download_url

__all__ = [
    "BlobAccessError",
    "BlobNotFoundError",
    "ConfigurationError",
    "DEFAULT_RETRY_POLICY",
    "DocumentFormatError",
    "ExtractionError",
    "ExtractionTimeoutError",
    "IngestionError",
    "NetworkTimeoutError",
    "ProviderError",
    "RaglineError",
    "RateLimitError",
    "RetryPolicy",
    "VectorStoreError",
    "configure_logging",
    "extract_google_drive_file_id",
    "get_logger",
    "is_retryable",
    "to_download_url",
    "with_retry",
]
