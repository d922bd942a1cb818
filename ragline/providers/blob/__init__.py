"""Blob provider adapters."""

from ragline.providers.blob.http_blob_provider import HttpBlobProvider

__all__ = ["HttpBlobProvider"]
