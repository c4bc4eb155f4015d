"""
Asset Reference Model
=====================

Immutable representation of a font asset document: one slot per format, the
cached descriptor and the editor overrides. Every operation returns a new
value and never touches a store.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.exceptions import InvalidSlotError
from ..core.models import FontDescriptor, FontStyle, FormatCode
from ..storage.base import PatchOperation

logger = logging.getLogger(__name__)

FILE_INPUT_FIELD = "fileInput"
METADATA_FIELD = "metaData"
DOCUMENT_TYPE = "font"


class FormatSlot(BaseModel):
    """A format slot: empty, or occupied by a blob-store object."""

    model_config = ConfigDict(frozen=True)

    object_id: str | None = None
    original_name: str | None = None
    # woff2 object the file was generated from; None for direct uploads
    derived_from: str | None = None

    @model_validator(mode="after")
    def validate_reference(self) -> "FormatSlot":
        if self.object_id is None and (
            self.original_name is not None or self.derived_from is not None
        ):
            raise InvalidSlotError()
        return self

    @classmethod
    def occupied(
        cls,
        object_id: str,
        original_name: str | None = None,
        derived_from: str | None = None,
    ) -> "FormatSlot":
        return cls(object_id=object_id, original_name=original_name, derived_from=derived_from)

    @property
    def is_empty(self) -> bool:
        return self.object_id is None

    def to_reference(self) -> dict[str, Any]:
        """Document representation of an occupied slot."""
        reference: dict[str, Any] = {
            "_type": "file",
            "asset": {"_type": "reference", "_ref": self.object_id},
        }
        if self.original_name:
            reference["originalFilename"] = self.original_name
        if self.derived_from:
            reference["derivedFrom"] = self.derived_from
        return reference

    @classmethod
    def from_reference(cls, reference: dict[str, Any] | None) -> "FormatSlot":
        if not reference:
            return EMPTY_SLOT
        object_id = (reference.get("asset") or {}).get("_ref")
        if not object_id:
            return EMPTY_SLOT
        return cls(
            object_id=object_id,
            original_name=reference.get("originalFilename"),
            derived_from=reference.get("derivedFrom"),
        )


EMPTY_SLOT = FormatSlot()


def slot_path(code: FormatCode) -> str:
    return f"{FILE_INPUT_FIELD}.{FormatCode(code).value}"


class FontAsset(BaseModel):
    """A font asset document with all seven format slots."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    title: str = ""
    slug: str | None = None
    descriptor: FontDescriptor | None = None
    slots: dict[FormatCode, FormatSlot] = Field(default_factory=dict, validate_default=True)
    weight_override: int | None = Field(None, ge=1, le=1000)
    style_override: FontStyle | None = None

    @field_validator("slots")
    @classmethod
    def fill_slots(cls, v: dict[FormatCode, FormatSlot]) -> dict[FormatCode, FormatSlot]:
        return {code: v.get(code, EMPTY_SLOT) for code in FormatCode}

    def slot(self, code: FormatCode | str) -> FormatSlot:
        return self.slots[FormatCode(code)]

    @property
    def occupied_codes(self) -> list[FormatCode]:
        return [code for code in FormatCode if not self.slots[code].is_empty]

    @property
    def effective_descriptor(self) -> FontDescriptor | None:
        """The cached descriptor with editor overrides applied."""
        if self.descriptor is None:
            return None
        return self.descriptor.with_overrides(self.weight_override, self.style_override)

    def with_slot(self, code: FormatCode | str, slot: FormatSlot) -> "FontAsset":
        """Return a copy with exactly one slot replaced."""
        return self.model_copy(update={"slots": {**self.slots, FormatCode(code): slot}})

    def without_slot(self, code: FormatCode | str) -> tuple["FontAsset", FormatSlot | None]:
        """Return a copy with the slot emptied, plus the previous occupant if any."""
        code = FormatCode(code)
        previous = self.slots[code]
        return self.with_slot(code, EMPTY_SLOT), (None if previous.is_empty else previous)

    def with_descriptor(self, descriptor: FontDescriptor | None) -> "FontAsset":
        return self.model_copy(update={"descriptor": descriptor})

    def slot_patch(self, code: FormatCode | str, slot: FormatSlot) -> PatchOperation:
        """Patch that writes *slot* into the document."""
        path = slot_path(FormatCode(code))
        if slot.is_empty:
            return PatchOperation.unset(path)
        return PatchOperation.set(path, slot.to_reference())

    def descriptor_patch(self) -> PatchOperation:
        """Patch that writes the cached descriptor into the document."""
        if self.descriptor is None:
            return PatchOperation.unset(METADATA_FIELD)
        return PatchOperation.set(METADATA_FIELD, self.descriptor.to_metadata())

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "_id": self.id,
            "_type": DOCUMENT_TYPE,
            "title": self.title,
            FILE_INPUT_FIELD: {
                code.value: slot.to_reference()
                for code, slot in self.slots.items()
                if not slot.is_empty
            },
        }
        if self.slug:
            document["slug"] = {"_type": "slug", "current": self.slug}
        if self.descriptor is not None:
            document[METADATA_FIELD] = self.descriptor.to_metadata()
            document["variableFont"] = self.descriptor.is_variable
        if self.weight_override is not None:
            document["weight"] = str(self.weight_override)
        if self.style_override is not None:
            document["style"] = self.style_override.value
        return document

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "FontAsset":
        file_input = document.get(FILE_INPUT_FIELD) or {}
        slots = {
            code: FormatSlot.from_reference(file_input.get(code.value)) for code in FormatCode
        }

        metadata = document.get(METADATA_FIELD)
        descriptor = None
        if metadata and metadata.get("family") and metadata.get("subfamily"):
            descriptor = FontDescriptor.from_metadata(metadata)

        style = document.get("style")
        return cls(
            id=document["_id"],
            title=document.get("title") or "",
            slug=(document.get("slug") or {}).get("current"),
            descriptor=descriptor,
            slots=slots,
            weight_override=_parse_weight_override(document.get("weight"), document["_id"]),
            style_override=FontStyle(style) if style else None,
        )


def _parse_weight_override(value: Any, asset_id: str) -> int | None:
    """Numeric weight override from a document; other values are ignored."""
    if value in (None, ""):
        return None
    try:
        weight = int(str(value).strip())
    except ValueError:
        logger.warning(f"Ignoring non-numeric weight {value!r} on asset {asset_id}")
        return None
    if not 1 <= weight <= 1000:
        logger.warning(f"Ignoring out-of-range weight {weight} on asset {asset_id}")
        return None
    return weight
