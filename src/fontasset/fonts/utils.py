"""
Font Utilities
==============

Utility functions for signature sniffing, name-table lookups and opening
font binaries with fontTools.
"""

import logging
import struct
from io import BytesIO

from fontTools.ttLib import TTFont, TTLibError

from ..core.exceptions import MalformedFontError
from ..core.models import FormatCode, OutlineFormat

logger = logging.getLogger(__name__)

SFNT_TRUETYPE_TAGS = (b"\x00\x01\x00\x00", b"true")
SFNT_CFF_TAG = b"OTTO"
WOFF_TAG = b"wOFF"
WOFF2_TAG = b"wOF2"

EOT_MAGIC = 0x504C
EOT_VERSIONS = (0x00010000, 0x00020001, 0x00020002)
EOT_FIXED_HEADER_SIZE = 82

# (platformID, platEncID, langID); langID None accepts any language
NAME_RECORD_PREFERENCE = (
    (3, 1, 0x409),
    (3, 1, None),
    (3, 10, None),
    (1, 0, 0),
    (1, 0, None),
)

WEIGHT_KEYWORDS = {
    "thin": 100,
    "hairline": 100,
    "extralight": 200,
    "ultralight": 200,
    "light": 300,
    "normal": 400,
    "regular": 400,
    "book": 400,
    "medium": 500,
    "semibold": 600,
    "demibold": 600,
    "extrabold": 800,
    "ultrabold": 800,
    "bold": 700,
    "black": 900,
    "heavy": 900,
}


def looks_like_eot(data: bytes) -> bool:
    """Check the fixed EOT header fields without unwrapping."""
    if len(data) < EOT_FIXED_HEADER_SIZE:
        return False
    eot_size, font_data_size, version = struct.unpack_from("<3I", data, 0)
    (magic,) = struct.unpack_from("<H", data, 34)
    return (
        magic == EOT_MAGIC
        and version in EOT_VERSIONS
        and eot_size <= len(data)
        and font_data_size <= eot_size
    )


def detect_format(data: bytes) -> FormatCode | None:
    """
    Identify the container of a font binary from its signature.

    Returns:
        The detected format, or None if the bytes are not a known container
    """
    head = bytes(data[:4])
    if head in SFNT_TRUETYPE_TAGS:
        return FormatCode.TTF
    if head == SFNT_CFF_TAG:
        return FormatCode.OTF
    if head == WOFF_TAG:
        return FormatCode.WOFF
    if head == WOFF2_TAG:
        return FormatCode.WOFF2
    if looks_like_eot(data):
        return FormatCode.EOT

    prefix = bytes(data[:1024]).lstrip(b"\xef\xbb\xbf \t\r\n")
    if prefix.startswith((b"<?xml", b"<svg", b"<!DOCTYPE svg")) and b"<font" in data:
        return FormatCode.SVG
    return None


def open_font(data: bytes, **kwargs) -> TTFont:
    """
    Open sfnt, WOFF or WOFF2 bytes with fontTools.

    Tables are decompiled lazily; untouched tables are written back as the
    exact bytes that were read.

    Raises:
        MalformedFontError: If fontTools cannot read the table directory
    """
    kwargs.setdefault("recalcBBoxes", False)
    kwargs.setdefault("recalcTimestamp", False)
    try:
        return TTFont(BytesIO(data), **kwargs)
    except (TTLibError, struct.error, AssertionError, ValueError, EOFError) as e:
        raise MalformedFontError(f"unreadable table directory ({e})") from e


def outline_format(font: TTFont) -> OutlineFormat | None:
    """Return the outline flavour of a font, or None if it has no outlines."""
    if "CFF " in font or "CFF2" in font:
        return OutlineFormat.CFF
    if "glyf" in font:
        return OutlineFormat.TRUETYPE
    return None


def get_font_name(name_table, name_id: int) -> str | None:
    """
    Extract a name string, preferring Windows Unicode records.

    Falls back to Macintosh records when no Windows record decodes.
    """
    for platform_id, encoding_id, lang_id in NAME_RECORD_PREFERENCE:
        for record in name_table.names:
            if (
                record.nameID != name_id
                or record.platformID != platform_id
                or record.platEncID != encoding_id
            ):
                continue
            if lang_id is not None and record.langID != lang_id:
                continue
            try:
                text = record.toUnicode().strip()
            except UnicodeDecodeError:
                logger.debug(f"Undecodable name record {name_id} on platform {platform_id}")
                continue
            if text:
                return text
    return None


def parse_style_weight(style_name: str) -> tuple[str, int]:
    """
    Parse a subfamily label into style and weight.

    Returns:
        Tuple of (style, weight) where style is normal, italic or oblique
        and weight is a number from 100-900
    """
    compact = style_name.lower().replace(" ", "").replace("-", "")

    if "oblique" in compact or "slanted" in compact:
        style = "oblique"
    elif "italic" in compact:
        style = "italic"
    else:
        style = "normal"

    weight = 400
    # longest keywords first so "extrabold" is not read as "bold"
    for keyword in sorted(WEIGHT_KEYWORDS, key=len, reverse=True):
        if keyword in compact:
            weight = WEIGHT_KEYWORDS[keyword]
            break

    return style, weight


def clamp_weight(weight: float) -> int:
    """Clamp a weight class to the valid OpenType range [1, 1000]."""
    return min(max(1, round(weight)), 1000)
