"""Custom exception hierarchy for ragline.

All application exceptions inherit from :class:`RaglineError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "cohere", "chromadb") caused the failure.

The hierarchy is organized by pipeline stage:

    RaglineError  (base -- catch-all for any ragline error)
    +-- DocumentFormatError      (input is not a recognizable document)
    +-- ExtractionError          (no heuristic recovered usable text)
    |   +-- ExtractionTimeoutError (extraction exceeded its deadline)
    +-- IngestionError           (a stage produced no usable output)
    +-- ProviderError            (embedding / completion API failure)
    |   +-- RateLimitError       (provider rate-limit exceeded)
    +-- NetworkTimeoutError      (any network call exceeded its timeout)
    +-- BlobNotFoundError        (blob locator does not exist)
    +-- BlobAccessError          (blob exists but access is denied)
    +-- VectorStoreError         (vector store / document store failure)
    +-- ConfigurationError       (invalid or missing configuration)

Transient failures (rate limits, timeouts, 5xx provider responses) are
marked retryable; :func:`is_retryable` is the predicate used by
:mod:`ragline.utils.retry`.
"""


class RaglineError(Exception):
    """Base exception for all ragline errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class DocumentFormatError(RaglineError):
    """Raised when input bytes are not a recognizable document (terminal)."""

    def __init__(
        self,
        message: str = "Unrecognized document format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(RaglineError):
    """Raised when every extraction heuristic scored below the threshold."""

    def __init__(
        self,
        message: str = "No text could be extracted from the document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionTimeoutError(ExtractionError):
    """Raised when text extraction exceeds its caller-supplied deadline.

    Retryable by the caller, never by the extractor itself.
    """

    def __init__(
        self,
        message: str = "Text extraction timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(RaglineError):
    """Raised when an ingestion stage produces no usable output."""

    def __init__(
        self,
        message: str = "Document ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(RaglineError):
    """Raised when an embedding or completion API returns a non-success status.

    ``retryable`` is set for server-side (5xx) failures so the retry
    helper can back off and try again; 4xx failures are terminal.
    """

    def __init__(
        self,
        message: str = "Provider API call failed",
        provider_name: str | None = None,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.retryable = retryable
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code


class RateLimitError(ProviderError):
    """Raised when an API rate limit is exceeded (always retryable)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            provider_name=provider_name,
            retryable=True,
            status_code=429,
        )


class NetworkTimeoutError(RaglineError):
    """Raised when a network call (blob, embedding, completion, store) times out."""

    retryable = True

    def __init__(
        self,
        message: str = "Network call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BlobNotFoundError(RaglineError):
    """Raised when a blob locator does not resolve to any content."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class BlobAccessError(RaglineError):
    """Raised when a blob exists but access to it is denied."""

    def __init__(
        self,
        message: str = "Access to document denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class VectorStoreError(RaglineError):
    """Raised when a vector-store or document-store operation fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RaglineError):
    """Raised when configuration is invalid or missing at construction time."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def is_retryable(exc: BaseException) -> bool:
    """Return ``True`` when *exc* is a transient failure worth retrying."""
    return isinstance(exc, RaglineError) and exc.retryable
