"""
Embedded OpenType container.

Writes uncompressed version 0x00020001 EOT files around an sfnt and unwraps
uncompressed EOT files back into the sfnt they carry. MicroType Express
compressed payloads are rejected.
"""

import logging
import struct

from fontTools.ttLib import TTFont

from ..core.exceptions import CorruptTableError, MalformedFontError, UnsupportedConversionError
from ..core.models import FontDescriptor, FontStyle
from .utils import EOT_MAGIC, get_font_name, looks_like_eot

logger = logging.getLogger(__name__)

EOT_VERSION = 0x00020001
TTEMBED_TTCOMPRESSED = 0x00000004
TTEMBED_XORENCRYPTDATA = 0x10000000
XOR_KEY = 0x50
DEFAULT_CHARSET = 0x01

# EOTSize .. Padding1, little-endian
EOT_HEADER = "<4I10sBBIHH4I2II4IH"


def _os2_fields(os2: bytes) -> dict:
    if len(os2) < 78:
        raise CorruptTableError("OS/2", f"table is {len(os2)} bytes")
    (version,) = struct.unpack_from(">H", os2, 0)
    (weight,) = struct.unpack_from(">H", os2, 4)
    (fs_type,) = struct.unpack_from(">H", os2, 8)
    (fs_selection,) = struct.unpack_from(">H", os2, 62)
    code_pages = (0, 0)
    if version >= 1 and len(os2) >= 86:
        code_pages = struct.unpack_from(">2I", os2, 78)
    return {
        "weight": weight,
        "fs_type": fs_type,
        "fs_selection": fs_selection,
        "panose": bytes(os2[32:42]),
        "unicode_ranges": struct.unpack_from(">4I", os2, 42),
        "code_pages": code_pages,
    }


def _name_field(text: str) -> bytes:
    encoded = text.encode("utf-16-le")
    return struct.pack("<H", len(encoded)) + encoded


def build_eot(sfnt: bytes, font: TTFont, descriptor: FontDescriptor | None = None) -> bytes:
    """
    Wrap plain sfnt bytes in an EOT header.

    Args:
        sfnt: Uncompressed sfnt bytes; carried verbatim as the font data
        font: The same font opened with fontTools, used for header fields
        descriptor: Extracted metadata; supplies weight and style overrides

    Returns:
        EOT file bytes
    """
    try:
        os2 = _os2_fields(font.getTableData("OS/2"))
    except KeyError:
        raise CorruptTableError("OS/2") from None
    try:
        (checksum_adjustment,) = struct.unpack_from(">I", font.getTableData("head"), 8)
    except (KeyError, struct.error):
        raise CorruptTableError("head") from None

    name_table = font["name"]
    family = get_font_name(name_table, 1) or (descriptor.family if descriptor else "")
    style = get_font_name(name_table, 2) or (descriptor.subfamily if descriptor else "")
    version = get_font_name(name_table, 5) or (descriptor.version if descriptor else "")
    full_name = get_font_name(name_table, 4) or f"{family} {style}".strip()

    weight = os2["weight"]
    italic = os2["fs_selection"] & 1
    if descriptor is not None:
        weight = descriptor.weight or weight
        italic = int(descriptor.style != FontStyle.NORMAL)

    body = (
        _name_field(family)
        + struct.pack("<H", 0)
        + _name_field(style)
        + struct.pack("<H", 0)
        + _name_field(version)
        + struct.pack("<H", 0)
        + _name_field(full_name)
        + struct.pack("<H", 0)
        + struct.pack("<H", 0)  # empty RootString
    )
    header_size = struct.calcsize(EOT_HEADER)
    eot_size = header_size + len(body) + len(sfnt)

    header = struct.pack(
        EOT_HEADER,
        eot_size,
        len(sfnt),
        EOT_VERSION,
        0,
        os2["panose"],
        DEFAULT_CHARSET,
        italic,
        weight,
        os2["fs_type"],
        EOT_MAGIC,
        *os2["unicode_ranges"],
        *os2["code_pages"],
        checksum_adjustment,
        0,
        0,
        0,
        0,
        0,
    )
    logger.debug(f"Wrapped {len(sfnt)} bytes of sfnt data as EOT ({eot_size} bytes)")
    return header + body + sfnt


def unwrap_eot(data: bytes) -> bytes:
    """
    Return the sfnt carried by an uncompressed EOT file.

    Raises:
        MalformedFontError: If the header is not a valid EOT header
        UnsupportedConversionError: If the payload is MTX compressed
    """
    if not looks_like_eot(data):
        raise MalformedFontError("invalid EOT header")

    eot_size, font_data_size, _version, flags = struct.unpack_from("<4I", data, 0)
    if flags & TTEMBED_TTCOMPRESSED:
        raise UnsupportedConversionError(
            "eot", "sfnt", "MicroType Express compressed EOT files are not supported"
        )

    font_data = bytes(data[eot_size - font_data_size : eot_size])
    if flags & TTEMBED_XORENCRYPTDATA:
        font_data = bytes(b ^ XOR_KEY for b in font_data)
    return font_data
