"""Thread-safe in-memory stores."""

import copy
import logging
import threading
from typing import Any

from ..core.exceptions import AssetNotFoundError, BlobNotFoundError, StorageError
from .base import BlobStore, DocumentStore, PatchOperation, content_object_id

logger = logging.getLogger(__name__)


class InMemoryBlobStore(BlobStore):
    """Content-addressed blob store held in a dict."""

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self._names: dict[str, str] = {}
        self._lock = threading.Lock()

    def upload(
        self,
        data: bytes,
        name: str,
        content_type: str | None = None,
        scope: str | None = None,
    ) -> str:
        object_id = content_object_id(data, name, scope)
        with self._lock:
            self._objects[object_id] = bytes(data)
            self._names[object_id] = name
        logger.debug(f"Stored {name} as {object_id} ({len(data)} bytes)")
        return object_id

    def fetch(self, object_id: str) -> bytes:
        with self._lock:
            try:
                return self._objects[object_id]
            except KeyError:
                raise BlobNotFoundError(object_id) from None

    def delete(self, object_id: str) -> None:
        with self._lock:
            if object_id not in self._objects:
                raise BlobNotFoundError(object_id)
            del self._objects[object_id]
            self._names.pop(object_id, None)

    def name_of(self, object_id: str) -> str | None:
        with self._lock:
            return self._names.get(object_id)

    def __contains__(self, object_id: str) -> bool:
        with self._lock:
            return object_id in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class InMemoryDocumentStore(DocumentStore):
    """Document store held in a dict; patches apply atomically under a lock."""

    def __init__(self):
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, doc_id: str) -> dict[str, Any]:
        with self._lock:
            if doc_id not in self._documents:
                raise AssetNotFoundError(doc_id)
            return copy.deepcopy(self._documents[doc_id])

    def create(self, doc_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            if doc_id in self._documents:
                raise StorageError(f"Document already exists: {doc_id}")
            document = {**copy.deepcopy(fields), "_id": doc_id}
            self._documents[doc_id] = document
            return copy.deepcopy(document)

    def patch(self, doc_id: str, operations: list[PatchOperation]) -> dict[str, Any]:
        with self._lock:
            if doc_id not in self._documents:
                raise AssetNotFoundError(doc_id)
            document = self._documents[doc_id]
            for operation in operations:
                document = operation.apply_to(document)
            self._documents[doc_id] = document
            return copy.deepcopy(document)

    def delete(self, doc_id: str) -> None:
        with self._lock:
            if self._documents.pop(doc_id, None) is None:
                raise AssetNotFoundError(doc_id)
