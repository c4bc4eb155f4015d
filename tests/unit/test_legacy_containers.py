"""Unit tests for EOT wrapping and SVG font synthesis."""

import struct
import xml.etree.ElementTree as ET

import pytest

from src.fontasset.core.config import ConverterConfig
from src.fontasset.core.exceptions import (
    MalformedFontError,
    UnsupportedConversionError,
)
from src.fontasset.core.models import FontStyle, FormatCode
from src.fontasset.fonts.converter import FormatConverter
from src.fontasset.fonts.eot import (
    EOT_VERSION,
    TTEMBED_TTCOMPRESSED,
    TTEMBED_XORENCRYPTDATA,
    XOR_KEY,
    unwrap_eot,
)
from src.fontasset.fonts.extractor import extract
from src.fontasset.fonts.utils import EOT_MAGIC, detect_format

SVG = "{http://www.w3.org/2000/svg}"


def _set_flags(eot, flags):
    data = bytearray(eot)
    struct.pack_into("<I", data, 12, flags)
    return data


@pytest.fixture
def static_eot(static_ttf):
    return FormatConverter().convert(extract(static_ttf), static_ttf, FormatCode.EOT)


class TestEotWriter:
    def test_header(self, static_eot):
        eot_size, font_data_size, version, flags = struct.unpack_from("<4I", static_eot, 0)
        (magic,) = struct.unpack_from("<H", static_eot, 34)

        assert eot_size == len(static_eot)
        assert version == EOT_VERSION
        assert flags == 0
        assert magic == EOT_MAGIC
        assert detect_format(static_eot) is FormatCode.EOT
        assert font_data_size < eot_size

    def test_weight_and_italic_from_descriptor(self, italic_ttf):
        eot = FormatConverter().convert(extract(italic_ttf), italic_ttf, FormatCode.EOT)

        italic = eot[27]
        (weight,) = struct.unpack_from("<I", eot, 28)
        assert italic == 1
        assert weight == 700

    def test_family_name_follows_header(self, static_eot):
        (size,) = struct.unpack_from("<H", static_eot, 82)

        assert static_eot[84 : 84 + size].decode("utf-16-le") == "Acme Sans"

    def test_payload_is_plain_sfnt(self, static_eot):
        sfnt = unwrap_eot(static_eot)

        assert detect_format(sfnt) is FormatCode.TTF
        assert extract(sfnt).family == "Acme Sans"

    def test_eot_back_to_woff(self, static_eot):
        woff = FormatConverter().convert(extract(static_eot), static_eot, FormatCode.WOFF)

        assert detect_format(woff) is FormatCode.WOFF


class TestEotReader:
    def test_xor_obfuscated_payload(self, static_eot):
        eot_size, font_data_size = struct.unpack_from("<2I", static_eot, 0)
        start = eot_size - font_data_size
        data = _set_flags(static_eot, TTEMBED_XORENCRYPTDATA)
        data[start:] = bytes(b ^ XOR_KEY for b in data[start:])

        assert unwrap_eot(bytes(data)) == unwrap_eot(static_eot)

    def test_mtx_compressed_payload(self, static_eot):
        data = bytes(_set_flags(static_eot, TTEMBED_TTCOMPRESSED))

        with pytest.raises(UnsupportedConversionError):
            unwrap_eot(data)

    def test_invalid_header(self, static_ttf):
        with pytest.raises(MalformedFontError):
            unwrap_eot(static_ttf)


class TestSvgFont:
    @pytest.fixture
    def svg_root(self, static_ttf):
        data = FormatConverter().convert(extract(static_ttf), static_ttf, FormatCode.SVG)
        assert data.startswith(b"<?xml")
        assert detect_format(data) is FormatCode.SVG
        return ET.fromstring(data)

    def test_font_face(self, svg_root):
        font = svg_root.find(f"{SVG}defs/{SVG}font")
        face = font.find(f"{SVG}font-face")

        assert font.get("id") == "AcmeSans"
        assert face.get("font-family") == "Acme Sans"
        assert face.get("font-weight") == "400"
        assert face.get("units-per-em") == "1000"
        assert face.get("x-height") == "500"

    def test_glyphs_in_code_point_order(self, svg_root):
        glyphs = svg_root.findall(f"{SVG}defs/{SVG}font/{SVG}glyph")

        assert [glyph.get("unicode") for glyph in glyphs] == [" ", "A", "B"]
        assert glyphs[0].get("horiz-adv-x") == "250"
        assert glyphs[0].get("d") is None
        assert glyphs[1].get("d").startswith("M")

    def test_missing_glyph(self, svg_root):
        missing = svg_root.find(f"{SVG}defs/{SVG}font/{SVG}missing-glyph")

        assert missing.get("horiz-adv-x") == "600"

    def test_configured_font_id(self, static_ttf):
        converter = FormatConverter(ConverterConfig(svg_font_id="acme"))

        root = ET.fromstring(converter.convert(extract(static_ttf), static_ttf, "svg"))

        assert root.find(f"{SVG}defs/{SVG}font").get("id") == "acme"

    def test_style_from_descriptor(self, static_ttf):
        descriptor = extract(static_ttf).with_overrides(style=FontStyle.ITALIC)

        root = ET.fromstring(FormatConverter().convert(descriptor, static_ttf, "svg"))

        face = root.find(f"{SVG}defs/{SVG}font/{SVG}font-face")
        assert face.get("font-style") == "italic"

    def test_cff_outlines(self, cff_otf):
        root = ET.fromstring(FormatConverter().convert(extract(cff_otf), cff_otf, "svg"))

        glyphs = root.findall(f"{SVG}defs/{SVG}font/{SVG}glyph")
        assert len(glyphs) == 3
