"""Storage adapter layer - abstracts over remote blob storage backends."""

from turnstore.adapters.storage.base import AbstractStorageClient, BlobMetadata
from turnstore.adapters.storage.dropbox_client import DropboxStorageClient, classify_error_summary
from turnstore.adapters.storage.factory import create_storage_client

__all__ = [
    "AbstractStorageClient",
    "BlobMetadata",
    "DropboxStorageClient",
    "classify_error_summary",
    "create_storage_client",
]
