"""Abstract base class for raw document fetching."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IBlobProvider(ABC):
    """Contract for fetching the raw bytes behind a document locator.

    Implementations must distinguish "the blob is not there / not yours"
    (:class:`~ragline.utils.errors.BlobNotFoundError`,
    :class:`~ragline.utils.errors.BlobAccessError`) from transport trouble
    (:class:`~ragline.utils.errors.NetworkTimeoutError`,
    :class:`~ragline.utils.errors.ProviderError`) so callers can report
    the right thing.
    """

    @abstractmethod
    async def fetch(self, locator: str) -> bytes:
        """Return the raw bytes stored at *locator*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"http"``."""
