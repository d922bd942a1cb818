"""Blob provider for HTTP(S) URLs and local files.

Google Drive "view" links are rewritten to their direct-download form
before fetching.  Plain paths and ``file://`` URLs are read from disk,
which is what the CLI uses for local PDFs.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
import structlog

from ragline.interfaces.blob_provider import IBlobProvider
from ragline.providers.error_mapping import from_httpx_error
from ragline.utils.errors import BlobAccessError, BlobNotFoundError, ProviderError
from ragline.utils.urls import to_download_url

logger = structlog.get_logger(logger_name=__name__)

_USER_AGENT = "ragline/0.1 (+document ingestion)"


class HttpBlobProvider(IBlobProvider):
    """Fetches document bytes over HTTP(S) or from the local filesystem.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    http_client:
        Pre-built client; one with redirects enabled is created when
        omitted.
    """

    def __init__(self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None) -> None:
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )

    async def fetch(self, locator: str) -> bytes:
        """Return the bytes behind *locator*.

        Raises
        ------
        BlobNotFoundError
            Missing file or HTTP 404/410.
        BlobAccessError
            HTTP 401/403.
        NetworkTimeoutError
            The request timed out (retryable).
        ProviderError
            Any other non-success response; retryable for 5xx.
        """
        parsed = urlparse(locator)
        if parsed.scheme in ("http", "https"):
            return await self._fetch_http(locator)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(locator)
        return await self._read_file(path)

    def get_provider_name(self) -> str:
        return "http"

    async def _fetch_http(self, locator: str) -> bytes:
        url = to_download_url(locator)
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise from_httpx_error(exc, self.get_provider_name(), "Document download") from exc

        status = response.status_code
        if status in (404, 410):
            raise BlobNotFoundError(
                message=f"Document not found at {locator}",
                provider_name=self.get_provider_name(),
            )
        if status in (401, 403):
            raise BlobAccessError(
                message=f"Access to document denied ({status})",
                provider_name=self.get_provider_name(),
            )
        if status >= 400:
            raise ProviderError(
                message=f"Document download failed with HTTP {status}",
                provider_name=self.get_provider_name(),
                retryable=status >= 500,
                status_code=status,
            )

        logger.info(
            "blob_fetched",
            url=url,
            bytes=len(response.content),
            content_type=response.headers.get("content-type"),
        )
        return response.content

    async def _read_file(self, path: Path) -> bytes:
        if not path.is_file():
            raise BlobNotFoundError(
                message=f"Document not found at {path}",
                provider_name="file",
            )
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except PermissionError as exc:
            raise BlobAccessError(
                message=f"Access to document denied: {path}",
                provider_name="file",
            ) from exc
        logger.info("blob_read", path=str(path), bytes=len(data))
        return data
