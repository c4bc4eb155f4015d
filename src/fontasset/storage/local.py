"""Directory-backed stores used by the CLI."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from ..core.exceptions import AssetNotFoundError, BlobNotFoundError, StorageError
from .base import BlobStore, DocumentStore, PatchOperation, content_object_id

logger = logging.getLogger(__name__)


def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)


class LocalBlobStore(BlobStore):
    """Content-addressed blobs stored as files under ``<root>/objects``."""

    def __init__(self, root: str | Path):
        self.root = Path(root) / "objects"
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, object_id: str) -> Path:
        if "/" in object_id or "\\" in object_id or object_id.startswith("."):
            raise BlobNotFoundError(object_id)
        return self.root / object_id

    def upload(
        self,
        data: bytes,
        name: str,
        content_type: str | None = None,
        scope: str | None = None,
    ) -> str:
        object_id = content_object_id(data, name, scope)
        try:
            _atomic_write(self._path(object_id), bytes(data))
        except OSError as e:
            raise StorageError(f"Failed to write {name}: {e}") from e
        logger.debug(f"Stored {name} at {self._path(object_id)}")
        return object_id

    def fetch(self, object_id: str) -> bytes:
        path = self._path(object_id)
        if not path.exists():
            raise BlobNotFoundError(object_id)
        return path.read_bytes()

    def delete(self, object_id: str) -> None:
        path = self._path(object_id)
        try:
            path.unlink()
        except FileNotFoundError:
            raise BlobNotFoundError(object_id) from None
        except OSError as e:
            raise StorageError(f"Failed to delete {object_id}: {e}") from e


class JsonDocumentStore(DocumentStore):
    """Documents stored as ``<root>/documents/<id>.json``."""

    def __init__(self, root: str | Path):
        self.root = Path(root) / "documents"
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, doc_id: str) -> Path:
        if "/" in doc_id or "\\" in doc_id or doc_id.startswith("."):
            raise AssetNotFoundError(doc_id)
        return self.root / f"{doc_id}.json"

    def _read(self, doc_id: str) -> dict[str, Any]:
        path = self._path(doc_id)
        if not path.exists():
            raise AssetNotFoundError(doc_id)
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt document {doc_id}: {e}") from e

    def _write(self, doc_id: str, document: dict[str, Any]) -> None:
        payload = json.dumps(document, indent=2, sort_keys=True).encode("utf-8")
        _atomic_write(self._path(doc_id), payload)

    def get(self, doc_id: str) -> dict[str, Any]:
        with self._lock:
            return self._read(doc_id)

    def create(self, doc_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            if self._path(doc_id).exists():
                raise StorageError(f"Document already exists: {doc_id}")
            document = {**fields, "_id": doc_id}
            self._write(doc_id, document)
            return document

    def patch(self, doc_id: str, operations: list[PatchOperation]) -> dict[str, Any]:
        with self._lock:
            document = self._read(doc_id)
            for operation in operations:
                document = operation.apply_to(document)
            self._write(doc_id, document)
            return document

    def delete(self, doc_id: str) -> None:
        with self._lock:
            try:
                self._path(doc_id).unlink()
            except FileNotFoundError:
                raise AssetNotFoundError(doc_id) from None

    def list_ids(self) -> list[str]:
        return sorted(path.stem for path in self.root.glob("*.json"))
