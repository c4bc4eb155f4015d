"""Blob-store and document-store contracts."""

import copy
import hashlib
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PatchOperation(BaseModel):
    """A field-level document patch: set or unset one dotted path."""

    model_config = ConfigDict(frozen=True)

    op: Literal["set", "unset"]
    path: str = Field(..., min_length=1)
    value: Any = None

    @classmethod
    def set(cls, path: str, value: Any) -> "PatchOperation":
        return cls(op="set", path=path, value=value)

    @classmethod
    def unset(cls, path: str) -> "PatchOperation":
        return cls(op="unset", path=path)

    def apply_to(self, document: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of *document* with this operation applied."""
        result = copy.deepcopy(document)
        *parents, leaf = self.path.split(".")
        node = result
        for key in parents:
            child = node.get(key)
            if not isinstance(child, dict):
                if self.op == "unset":
                    return result
                child = {}
                node[key] = child
            node = child
        if self.op == "set":
            node[leaf] = copy.deepcopy(self.value)
        else:
            node.pop(leaf, None)
        return result


def content_object_id(data: bytes, name: str, scope: str | None = None) -> str:
    """
    Content-addressed object id of the form ``file-<sha1>-<ext>``.

    With a *scope* the digest also covers the scope, so identical bytes
    stored under different scopes never share an object.
    """
    hasher = hashlib.sha1(usedforsecurity=False)
    if scope:
        hasher.update(scope.encode("utf-8") + b"\0")
    hasher.update(data)
    digest = hasher.hexdigest()
    extension = PurePosixPath(name).suffix.lstrip(".").lower() or "bin"
    return f"file-{digest}-{extension}"


class BlobStore(ABC):
    """Opaque key-value store for font and stylesheet bytes."""

    @abstractmethod
    def upload(
        self,
        data: bytes,
        name: str,
        content_type: str | None = None,
        scope: str | None = None,
    ) -> str:
        """Store *data* and return its object id; see :func:`content_object_id`."""

    @abstractmethod
    def fetch(self, object_id: str) -> bytes:
        """Return the bytes of an object; raises BlobNotFoundError."""

    @abstractmethod
    def delete(self, object_id: str) -> None:
        """Delete an object; raises StorageError on failure."""


class DocumentStore(ABC):
    """Store of patchable JSON-like documents."""

    @abstractmethod
    def get(self, doc_id: str) -> dict[str, Any]:
        """Return a document; raises AssetNotFoundError."""

    @abstractmethod
    def create(self, doc_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a document with *fields* and return it."""

    @abstractmethod
    def patch(self, doc_id: str, operations: list[PatchOperation]) -> dict[str, Any]:
        """Apply field-level operations atomically and return the new document."""

    @abstractmethod
    def delete(self, doc_id: str) -> None:
        """Delete a document."""
