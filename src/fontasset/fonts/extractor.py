"""
Metadata Extraction
===================

Reads the name, OS/2, head and fvar tables of a font binary and builds a
:class:`FontDescriptor`. Accepts sfnt, WOFF, WOFF2 and uncompressed EOT.
"""

import logging
import struct

from fontTools.misc.fixedTools import fixedToFloat
from pydantic import ValidationError as PydanticValidationError

from ..core.cancellation import CancellationEvent, raise_if_cancelled
from ..core.exceptions import MalformedFontError, UnsupportedVariantError
from ..core.models import (
    WEIGHT_AXIS_TAG,
    FontDescriptor,
    FontStyle,
    FormatCode,
    OutlineFormat,
    VariationAxis,
)
from .eot import unwrap_eot
from .utils import (
    clamp_weight,
    detect_format,
    get_font_name,
    open_font,
    outline_format,
    parse_style_weight,
)

logger = logging.getLogger(__name__)

SFNT_CONTAINERS = (FormatCode.TTF, FormatCode.OTF, FormatCode.WOFF, FormatCode.WOFF2)

FVAR_HEADER = ">8H"
FVAR_HEADER_SIZE = 16
FVAR_AXIS_RECORD = ">4slllHH"
FVAR_AXIS_RECORD_SIZE = 20

FS_SELECTION_ITALIC = 1 << 0
FS_SELECTION_OBLIQUE = 1 << 9
MAC_STYLE_ITALIC = 1 << 1


def _read_table(font, tag: str, cancellation: CancellationEvent | None):
    raise_if_cancelled(cancellation)
    if tag not in font:
        return None
    try:
        return font[tag]
    except Exception as e:
        raise MalformedFontError(f"unreadable '{tag}' table ({e})") from e


def read_axes(fvar_data: bytes) -> tuple[VariationAxis, ...]:
    """
    Parse fvar axis records from raw table bytes.

    Raises:
        UnsupportedVariantError: If the table is truncated, declares no axes
            or declares more than one wght axis
    """
    if len(fvar_data) < FVAR_HEADER_SIZE:
        raise UnsupportedVariantError(f"fvar header truncated ({len(fvar_data)} bytes)")

    (
        _major,
        _minor,
        axes_offset,
        _reserved,
        axis_count,
        axis_size,
        _instance_count,
        _instance_size,
    ) = struct.unpack_from(FVAR_HEADER, fvar_data)

    if axis_count == 0:
        raise UnsupportedVariantError("fvar declares no axes")
    if axis_size < FVAR_AXIS_RECORD_SIZE:
        raise UnsupportedVariantError(f"axis records are {axis_size} bytes, expected 20")

    end = axes_offset + axis_count * axis_size
    if axes_offset < FVAR_HEADER_SIZE or end > len(fvar_data):
        raise UnsupportedVariantError(
            f"axis records truncated: {axis_count} axes need {end} bytes, "
            f"table has {len(fvar_data)}"
        )

    axes = []
    for index in range(axis_count):
        raw_tag, minimum, default, maximum, _flags, _name_id = struct.unpack_from(
            FVAR_AXIS_RECORD, fvar_data, axes_offset + index * axis_size
        )
        tag = raw_tag.decode("latin-1")
        try:
            axes.append(
                VariationAxis(
                    tag=tag,
                    minimum=fixedToFloat(minimum, 16),
                    default=fixedToFloat(default, 16),
                    maximum=fixedToFloat(maximum, 16),
                )
            )
        except (PydanticValidationError, ValueError) as e:
            raise UnsupportedVariantError(f"invalid axis record {tag!r}: {e}") from e

    if sum(1 for axis in axes if axis.tag == WEIGHT_AXIS_TAG) > 1:
        raise UnsupportedVariantError("more than one wght axis")
    return tuple(axes)


def _resolve_style(os2, head, subfamily: str) -> FontStyle:
    fs_selection = getattr(os2, "fsSelection", 0) if os2 is not None else 0
    mac_style = getattr(head, "macStyle", 0) if head is not None else 0
    if fs_selection & FS_SELECTION_OBLIQUE:
        return FontStyle.OBLIQUE
    if fs_selection & FS_SELECTION_ITALIC or mac_style & MAC_STYLE_ITALIC:
        return FontStyle.ITALIC
    if os2 is None and head is None:
        return FontStyle(parse_style_weight(subfamily)[0])
    return FontStyle.NORMAL


def extract(data: bytes, cancellation: CancellationEvent | None = None) -> FontDescriptor:
    """
    Extract a :class:`FontDescriptor` from font bytes.

    Args:
        data: sfnt, WOFF, WOFF2 or uncompressed EOT bytes
        cancellation: Polled before each table read

    Returns:
        The descriptor of the font

    Raises:
        MalformedFontError: If the bytes are not a readable font or lack
            family/subfamily names
        UnsupportedVariantError: If an fvar table is present but unusable
        OperationCancelledError: If cancellation was signalled
    """
    container = detect_format(data)
    if container is None or container not in (*SFNT_CONTAINERS, FormatCode.EOT):
        raise MalformedFontError("missing sfnt, WOFF or WOFF2 signature")

    sfnt = data
    if container == FormatCode.EOT:
        sfnt = unwrap_eot(data)
        if detect_format(sfnt) not in (FormatCode.TTF, FormatCode.OTF):
            raise MalformedFontError("EOT payload is not an sfnt")

    raise_if_cancelled(cancellation)
    font = open_font(sfnt)

    name_table = _read_table(font, "name", cancellation)
    if name_table is None:
        raise MalformedFontError("missing 'name' table")
    family = get_font_name(name_table, 16) or get_font_name(name_table, 1)
    subfamily = get_font_name(name_table, 17) or get_font_name(name_table, 2)
    if not family:
        raise MalformedFontError("name table has no family name (ID 1 or 16)")
    if not subfamily:
        raise MalformedFontError("name table has no subfamily name (ID 2 or 17)")

    os2 = _read_table(font, "OS/2", cancellation)
    head = _read_table(font, "head", cancellation)

    if os2 is not None:
        weight = clamp_weight(os2.usWeightClass)
    else:
        weight = parse_style_weight(subfamily)[1]
    style = _resolve_style(os2, head, subfamily)

    raise_if_cancelled(cancellation)
    axes: tuple[VariationAxis, ...] = ()
    if "fvar" in font:
        axes = read_axes(font.getTableData("fvar"))

    weight_range = None
    weight_axis = next((axis for axis in axes if axis.tag == WEIGHT_AXIS_TAG), None)
    if weight_axis is not None:
        weight_range = (clamp_weight(weight_axis.minimum), clamp_weight(weight_axis.maximum))

    version = get_font_name(name_table, 5)
    if not version:
        revision = head.fontRevision if head is not None else 1.0
        version = f"Version {revision:.3f}"

    outline = outline_format(font) or OutlineFormat.TRUETYPE

    descriptor = FontDescriptor(
        family=family,
        subfamily=subfamily,
        weight=weight,
        weight_range=weight_range,
        style=style,
        is_variable=bool(axes),
        axes=axes,
        version=version,
        container=container.value,
        outline=outline,
    )
    logger.info(
        f"Extracted {descriptor.family} {descriptor.subfamily} "
        f"(weight={descriptor.weight}, variable={descriptor.is_variable}) from {container}"
    )
    return descriptor
