"""Pydantic models for type-safe data structures."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import (
    InvalidAxisTagError,
    InvalidDescriptorError,
    WeightOutOfRangeError,
)

WEIGHT_AXIS_TAG = "wght"


class FormatCode(str, Enum):
    """Format slots of a font asset."""

    TTF = "ttf"
    OTF = "otf"
    WOFF = "woff"
    WOFF2 = "woff2"
    EOT = "eot"
    SVG = "svg"
    CSS = "css"

    def __str__(self) -> str:
        return self.value


class FontStyle(str, Enum):
    """CSS font-style values a font can declare."""

    NORMAL = "normal"
    ITALIC = "italic"
    OBLIQUE = "oblique"


class OutlineFormat(str, Enum):
    """Glyph outline flavour of an sfnt font."""

    TRUETYPE = "truetype"
    CFF = "cff"


class VariationAxis(BaseModel):
    """One fvar axis record."""

    model_config = ConfigDict(frozen=True)

    tag: str
    minimum: float
    default: float
    maximum: float

    @field_validator("tag")
    @classmethod
    def validate_tag(cls, v: str) -> str:
        if len(v) != 4:
            raise InvalidAxisTagError(v)
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "VariationAxis":
        if not self.minimum <= self.default <= self.maximum:
            raise InvalidDescriptorError(
                f"axis {self.tag} requires min <= default <= max "
                f"({self.minimum}, {self.default}, {self.maximum})"
            )
        return self


class FontDescriptor(BaseModel):
    """Canonical metadata extracted from a font binary."""

    model_config = ConfigDict(frozen=True)

    family: str = Field(..., min_length=1, description="Family name from the name table")
    subfamily: str = Field(..., min_length=1, description="Style/weight label")
    weight: int | None = Field(None, description="OpenType weight class")
    weight_range: tuple[int, int] | None = Field(None, description="wght axis range")
    style: FontStyle = FontStyle.NORMAL
    is_variable: bool = False
    axes: tuple[VariationAxis, ...] = ()
    version: str = ""
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    container: str | None = Field(None, description="Container the metadata was read from")
    outline: OutlineFormat = OutlineFormat.TRUETYPE

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: int | None) -> int | None:
        if v is not None and not 1 <= v <= 1000:
            raise WeightOutOfRangeError(v)
        return v

    @model_validator(mode="after")
    def validate_variation(self) -> "FontDescriptor":
        if self.is_variable:
            if not self.axes:
                raise InvalidDescriptorError("a variable font needs at least one axis")
            weight_axes = [axis for axis in self.axes if axis.tag == WEIGHT_AXIS_TAG]
            if len(weight_axes) > 1:
                raise InvalidDescriptorError("more than one wght axis")
        else:
            if self.weight is None:
                raise InvalidDescriptorError("a static font needs a weight")
            if self.axes:
                raise InvalidDescriptorError("a static font cannot declare axes")
            if self.weight_range is not None:
                raise InvalidDescriptorError("a static font cannot declare a weight range")
        return self

    @property
    def weight_axis(self) -> VariationAxis | None:
        for axis in self.axes:
            if axis.tag == WEIGHT_AXIS_TAG:
                return axis
        return None

    def with_overrides(
        self, weight: int | None = None, style: FontStyle | None = None
    ) -> "FontDescriptor":
        """Apply editor overrides. Variable fonts keep their axis-derived weight."""
        update: dict[str, Any] = {}
        if weight is not None and not self.is_variable:
            update["weight"] = weight
        if style is not None:
            update["style"] = style
        if not update:
            return self
        # model_copy skips validation, so go through the constructor
        return FontDescriptor(**{**self.model_dump(), **update})

    def to_metadata(self) -> dict[str, Any]:
        """Serialise for the asset document's ``metaData`` field."""
        return {
            "family": self.family,
            "subfamily": self.subfamily,
            "weight": self.weight,
            "weightRange": list(self.weight_range) if self.weight_range else None,
            "style": self.style.value,
            "variable": self.is_variable,
            "axes": [
                {"tag": a.tag, "min": a.minimum, "default": a.default, "max": a.maximum}
                for a in self.axes
            ],
            "version": self.version,
            "genDate": self.generated_at.isoformat(),
            "container": self.container,
            "outline": self.outline.value,
        }

    @classmethod
    def from_metadata(cls, data: dict[str, Any]) -> "FontDescriptor":
        """Inverse of :meth:`to_metadata`."""
        weight_range = data.get("weightRange")
        return cls(
            family=data["family"],
            subfamily=data["subfamily"],
            weight=data.get("weight"),
            weight_range=tuple(weight_range) if weight_range else None,
            style=FontStyle(data.get("style", "normal")),
            is_variable=bool(data.get("variable", False)),
            axes=tuple(
                VariationAxis(
                    tag=a["tag"], minimum=a["min"], default=a["default"], maximum=a["max"]
                )
                for a in data.get("axes") or []
            ),
            version=data.get("version", ""),
            generated_at=datetime.fromisoformat(data["genDate"])
            if data.get("genDate")
            else datetime.now(UTC),
            container=data.get("container"),
            outline=OutlineFormat(data.get("outline", "truetype")),
        )
