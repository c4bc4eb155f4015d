"""
SVG 1.1 font synthesis.

Draws every mapped glyph through an SVG path pen. Hinting is dropped; kerning
and layout features are not carried over.
"""

import logging
import xml.etree.ElementTree as ET

from fontTools.pens.svgPathPen import SVGPathPen
from fontTools.ttLib import TTFont

from ..core.cancellation import CancellationEvent, raise_if_cancelled
from ..core.exceptions import CorruptTableError
from ..core.models import FontDescriptor

logger = logging.getLogger(__name__)

SVG_NAMESPACE = "http://www.w3.org/2000/svg"


def _is_xml_char(codepoint: int) -> bool:
    if codepoint in (0x09, 0x0A, 0x0D):
        return True
    if codepoint < 0x20 or 0xD800 <= codepoint <= 0xDFFF:
        return False
    return codepoint not in (0xFFFE, 0xFFFF)


def _font_face_attributes(font: TTFont, descriptor: FontDescriptor) -> dict[str, str]:
    head = font["head"]
    hhea = font["hhea"]
    attributes = {
        "font-family": descriptor.family,
        "font-weight": str(descriptor.weight) if descriptor.weight else "all",
        "font-style": descriptor.style.value,
        "units-per-em": str(head.unitsPerEm),
        "ascent": str(hhea.ascent),
        "descent": str(hhea.descent),
        "bbox": f"{head.xMin} {head.yMin} {head.xMax} {head.yMax}",
    }
    if "OS/2" in font:
        os2 = font["OS/2"]
        if getattr(os2, "sxHeight", 0):
            attributes["x-height"] = str(os2.sxHeight)
        if getattr(os2, "sCapHeight", 0):
            attributes["cap-height"] = str(os2.sCapHeight)
    if "post" in font:
        post = font["post"]
        attributes["underline-position"] = str(post.underlinePosition)
        attributes["underline-thickness"] = str(post.underlineThickness)
    return attributes


def _glyph_path(glyph_set, glyph_name: str) -> str:
    pen = SVGPathPen(glyph_set)
    glyph_set[glyph_name].draw(pen)
    return pen.getCommands()


def build_svg_font(
    font: TTFont,
    descriptor: FontDescriptor,
    font_id: str | None = None,
    cancellation: CancellationEvent | None = None,
) -> bytes:
    """
    Render a font as an SVG 1.1 ``<font>`` document.

    Args:
        font: Source font opened with fontTools
        descriptor: Extracted metadata for the font-face element
        font_id: id of the ``<font>`` element; defaults to the family name
            without spaces
        cancellation: Checked before each table is read

    Returns:
        UTF-8 encoded SVG document
    """
    raise_if_cancelled(cancellation)
    cmap = font.getBestCmap()
    if not cmap:
        raise CorruptTableError("cmap", "no Unicode subtable")

    raise_if_cancelled(cancellation)
    metrics = font["hmtx"].metrics

    raise_if_cancelled(cancellation)
    glyph_set = font.getGlyphSet()
    glyph_order = font.getGlyphOrder()

    font_id = font_id or descriptor.family.replace(" ", "")
    default_advance = metrics[glyph_order[0]][0] if glyph_order else 0

    svg = ET.Element("svg", {"xmlns": SVG_NAMESPACE, "version": "1.1"})
    metadata = ET.SubElement(svg, "metadata")
    metadata.text = f"{descriptor.family} {descriptor.subfamily} {descriptor.version}".strip()
    defs = ET.SubElement(svg, "defs")
    font_element = ET.SubElement(
        defs, "font", {"id": font_id, "horiz-adv-x": str(default_advance)}
    )
    ET.SubElement(font_element, "font-face", _font_face_attributes(font, descriptor))

    if glyph_order:
        notdef = glyph_order[0]
        ET.SubElement(
            font_element,
            "missing-glyph",
            {"horiz-adv-x": str(metrics[notdef][0]), "d": _glyph_path(glyph_set, notdef)},
        )

    skipped = 0
    for codepoint in sorted(cmap):
        if not _is_xml_char(codepoint):
            skipped += 1
            continue
        glyph_name = cmap[codepoint]
        attributes = {
            "glyph-name": glyph_name,
            "unicode": chr(codepoint),
            "horiz-adv-x": str(metrics[glyph_name][0]),
        }
        path = _glyph_path(glyph_set, glyph_name)
        if path:
            attributes["d"] = path
        ET.SubElement(font_element, "glyph", attributes)

    if skipped:
        logger.debug(f"Skipped {skipped} code points that cannot appear in XML")

    document = ET.tostring(svg, encoding="unicode")
    return ('<?xml version="1.0" encoding="UTF-8"?>\n' + document + "\n").encode("utf-8")
