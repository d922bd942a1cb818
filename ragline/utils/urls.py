"""Helpers for document locators, mostly Google Drive share links.

Documents are frequently registered with a Drive "view" URL
(``https://drive.google.com/file/d/<id>/view``).  Those pages return HTML,
not the file, so both the blob fetcher and the reference builder rewrite
them to the ``uc?export=download`` form.
"""

from __future__ import annotations

import re

_DRIVE_HOST = "drive.google.com"
_FILE_PATTERN = re.compile(r"/file/d/([^/?#]+)")
_OPEN_PATTERN = re.compile(r"[?&]id=([^&#]+)")
_ANY_ID_PATTERN = re.compile(r"([a-zA-Z0-9_-]{25,})")


def is_google_drive_url(url: str) -> bool:
    return _DRIVE_HOST in url


def extract_google_drive_file_id(url: str) -> str | None:
    """Return the Drive file id embedded in *url*, or ``None``.

    Recognises ``/file/d/<id>/...``, ``open?id=<id>`` and, failing those,
    any id-like run of 25+ URL-safe characters.
    """
    if not is_google_drive_url(url):
        return None

    for pattern in (_FILE_PATTERN, _OPEN_PATTERN, _ANY_ID_PATTERN):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def google_drive_download_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=download&id={file_id}"


def to_download_url(url: str) -> str:
    """Return a direct-download form of *url* (unchanged for non-Drive URLs)."""
    file_id = extract_google_drive_file_id(url)
    if file_id is None:
        return url
    return google_drive_download_url(file_id)
