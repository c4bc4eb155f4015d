"""
Format Table
============

Single lookup table describing every slot format: file extension, MIME type,
CSS ``format()`` hint and position in an ``@font-face`` src list.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath

from ..core.exceptions import UnknownFormatError
from ..core.models import FormatCode


@dataclass(frozen=True)
class FormatSpec:
    """Static facts about one format."""

    code: FormatCode
    extension: str
    mime_type: str
    css_format: str | None  # value of format("...") in a src list
    src_rank: int | None  # lower ranks come first in src; None = not listed
    legacy: bool = False  # only listed when legacy formats are requested
    is_font: bool = True


FORMATS: dict[FormatCode, FormatSpec] = {
    FormatCode.WOFF2: FormatSpec(FormatCode.WOFF2, ".woff2", "font/woff2", "woff2", 0),
    FormatCode.WOFF: FormatSpec(FormatCode.WOFF, ".woff", "font/woff", "woff", 1),
    FormatCode.TTF: FormatSpec(FormatCode.TTF, ".ttf", "font/ttf", "truetype", 2),
    FormatCode.OTF: FormatSpec(FormatCode.OTF, ".otf", "font/otf", "opentype", 3, legacy=True),
    FormatCode.SVG: FormatSpec(FormatCode.SVG, ".svg", "image/svg+xml", "svg", 4, legacy=True),
    FormatCode.EOT: FormatSpec(
        FormatCode.EOT,
        ".eot",
        "application/vnd.ms-fontobject",
        "embedded-opentype",
        None,
        legacy=True,
    ),
    FormatCode.CSS: FormatSpec(FormatCode.CSS, ".css", "text/css", None, None, is_font=False),
}

FONT_FORMATS: tuple[FormatCode, ...] = tuple(code for code, spec in FORMATS.items() if spec.is_font)


def spec_for(code: FormatCode | str) -> FormatSpec:
    """Return the :class:`FormatSpec` for a code or its string value."""
    return FORMATS[parse_format_code(code)]


def parse_format_code(value: FormatCode | str) -> FormatCode:
    """Parse ``"WOFF2"``, ``".woff2"`` or ``"woff2"`` into a :class:`FormatCode`."""
    if isinstance(value, FormatCode):
        return value
    normalized = value.strip().lower().lstrip(".")
    try:
        return FormatCode(normalized)
    except ValueError:
        raise UnknownFormatError(value) from None


def format_from_filename(filename: str) -> FormatCode | None:
    """Guess a format from a file name's extension."""
    suffix = PurePosixPath(filename).suffix.lower()
    for code, spec in FORMATS.items():
        if spec.extension == suffix:
            return code
    return None


def src_formats(include_legacy: bool = False) -> list[FormatCode]:
    """Formats that may appear in a src list, most-compressed first."""
    ranked = [
        spec
        for spec in FORMATS.values()
        if spec.src_rank is not None and (include_legacy or not spec.legacy)
    ]
    return [spec.code for spec in sorted(ranked, key=lambda s: s.src_rank)]
