"""Turn search results into the source references shown under an answer."""

from __future__ import annotations

from collections.abc import Sequence

from ragline.models.retrieval import DocumentReference, SearchResult
from ragline.utils.urls import extract_google_drive_file_id, google_drive_download_url

DEFAULT_EXCERPT_LENGTH = 300


def make_excerpt(content: str, length: int = DEFAULT_EXCERPT_LENGTH) -> str:
    """First *length* characters of *content*, with ``...`` when truncated."""
    content = content.strip()
    if len(content) <= length:
        return content
    return content[:length] + "..."


def build_references(
    results: Sequence[SearchResult],
    excerpt_length: int = DEFAULT_EXCERPT_LENGTH,
) -> list[DocumentReference]:
    """One reference per distinct (title, url) pair, in first-seen order.

    Google Drive links additionally get a direct download URL.
    """
    references: list[DocumentReference] = []
    seen: set[tuple[str, str]] = set()
    for result in results:
        url = result.document_url or ""
        key = (result.document_title, url)
        if key in seen:
            continue
        seen.add(key)

        file_id = extract_google_drive_file_id(url) if url else None
        references.append(
            DocumentReference(
                title=result.document_title,
                view_url=url,
                download_url=google_drive_download_url(file_id) if file_id else None,
                is_google_drive=file_id is not None,
                excerpt=make_excerpt(result.content, excerpt_length),
            )
        )
    return references
