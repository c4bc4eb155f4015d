"""Blob and document store adapters."""

from ..core.config import AppConfig
from .base import BlobStore, DocumentStore, PatchOperation, content_object_id
from .local import JsonDocumentStore, LocalBlobStore
from .memory import InMemoryBlobStore, InMemoryDocumentStore
from .r2 import R2BlobStore


def create_stores(config: AppConfig) -> tuple[BlobStore, DocumentStore]:
    """Build the blob and document stores selected by ``storage_backend``.

    Documents stay in ``storage_dir`` for the r2 backend; only bytes go to R2.
    """
    if config.storage_backend == "memory":
        return InMemoryBlobStore(), InMemoryDocumentStore()
    if config.storage_backend == "r2":
        return R2BlobStore(config.r2), JsonDocumentStore(config.storage_dir)
    return LocalBlobStore(config.storage_dir), JsonDocumentStore(config.storage_dir)


__all__ = [
    "BlobStore",
    "DocumentStore",
    "InMemoryBlobStore",
    "InMemoryDocumentStore",
    "JsonDocumentStore",
    "LocalBlobStore",
    "PatchOperation",
    "R2BlobStore",
    "content_object_id",
    "create_stores",
]
