"""
Stylesheet Generation
=====================

Renders a font descriptor plus the occupied format slots into a single
``@font-face`` rule.
"""

import logging
import re
from collections.abc import Callable, Mapping

from ..assets.model import FormatSlot
from ..core.config import StylesheetConfig
from ..core.exceptions import CssError, MissingSourceError
from ..core.models import WEIGHT_AXIS_TAG, FontDescriptor, FormatCode
from ..fonts.formats import spec_for, src_formats

logger = logging.getLogger(__name__)

UrlResolver = Callable[[FormatCode, FormatSlot], str]

OBJECT_ID_PATTERN = re.compile(r"^file-(?P<hash>[0-9A-Za-z]+)-(?P<ext>[0-9A-Za-z]+)$")


def css_string(value: str) -> str:
    """Quote a value as a CSS string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\\a ")
    return f'"{escaped}"'


def _number(value: float) -> str:
    return f"{value:g}"


def relative_url_resolver(prefix: str = "") -> UrlResolver:
    """Resolve slots to ``<prefix>/<original file name>``."""
    base = prefix.rstrip("/")

    def resolve(code: FormatCode, slot: FormatSlot) -> str:
        name = slot.original_name or f"{slot.object_id}{spec_for(code).extension}"
        return f"{base}/{name}" if base else name

    return resolve


def cdn_url_resolver(base_url: str) -> UrlResolver:
    """Resolve ``file-<hash>-<ext>`` object ids to ``<base_url>/<hash>.<ext>``."""
    base = base_url.rstrip("/")

    def resolve(code: FormatCode, slot: FormatSlot) -> str:
        match = OBJECT_ID_PATTERN.match(slot.object_id or "")
        if match is None:
            return f"{base}/{slot.object_id}"
        return f"{base}/{match['hash']}.{match['ext']}"

    return resolve


def _src_entries(
    slots: Mapping[FormatCode, FormatSlot],
    url_resolver: UrlResolver,
    options: StylesheetConfig,
    svg_fragment: str,
) -> tuple[str | None, list[str]]:
    legacy_src = None
    entries = []

    eot = slots.get(FormatCode.EOT)
    if options.include_legacy_formats and eot is not None and not eot.is_empty:
        eot_url = url_resolver(FormatCode.EOT, eot)
        legacy_src = f"url({css_string(eot_url)})"
        entries.append(f'url({css_string(eot_url + "?#iefix")}) format("embedded-opentype")')

    for code in src_formats(options.include_legacy_formats):
        slot = slots.get(code)
        if slot is None or slot.is_empty:
            continue
        url = url_resolver(code, slot)
        if code == FormatCode.SVG:
            url = f"{url}#{svg_fragment}"
        entries.append(f'url({css_string(url)}) format("{spec_for(code).css_format}")')
    return legacy_src, entries


def _declarations(
    descriptor: FontDescriptor, family_name: str, options: StylesheetConfig
) -> tuple[list[tuple[str, str]], list[str]]:
    declarations = [("font-family", css_string(family_name))]
    comments = []

    weight_axis = descriptor.weight_axis if descriptor.is_variable else None
    if weight_axis is not None:
        low, high = descriptor.weight_range or (weight_axis.minimum, weight_axis.maximum)
        declarations.append(("font-weight", f"{_number(low)} {_number(high)}"))
    elif descriptor.weight is not None:
        declarations.append(("font-weight", str(descriptor.weight)))
    declarations.append(("font-style", descriptor.style.value))

    if options.font_display:
        declarations.append(("font-display", options.font_display))

    if descriptor.is_variable and options.emit_axis_comments:
        for axis in descriptor.axes:
            if axis.tag == WEIGHT_AXIS_TAG:
                continue
            comments.append(
                f"--font-axis-{axis.tag.strip()}: "
                f"{_number(axis.minimum)} {_number(axis.default)} {_number(axis.maximum)}"
            )
    return declarations, comments


def _render(
    declarations: list[tuple[str, str]],
    legacy_src: str | None,
    src: list[str],
    comments: list[str],
    minify: bool,
) -> str:
    if minify:
        body = "".join(f"{name}:{value};" for name, value in declarations)
        if legacy_src:
            body += f"src:{legacy_src};"
        body += f"src:{','.join(src)};"
        body += "".join(f"/* {comment} */" for comment in comments)
        return f"@font-face{{{body}}}\n"

    lines = ["@font-face {"]
    lines.extend(f"  {name}: {value};" for name, value in declarations)
    if legacy_src:
        lines.append(f"  src: {legacy_src};")
    lines.append("  src: " + ",\n       ".join(src) + ";")
    lines.extend(f"  /* {comment} */" for comment in comments)
    lines.append("}")
    return "\n".join(lines) + "\n"


def generate(
    descriptor: FontDescriptor,
    slots: Mapping[FormatCode, FormatSlot],
    family_name: str,
    url_resolver: UrlResolver,
    options: StylesheetConfig | None = None,
    *,
    svg_fragment: str | None = None,
) -> str:
    """
    Render one ``@font-face`` rule.

    Args:
        descriptor: Metadata of the font, overrides already applied
        slots: Format slots; woff2 must be occupied
        family_name: Display name for ``font-family``
        url_resolver: Maps an occupied slot to the URL written into ``src``
        options: Rendering options
        svg_fragment: Element id appended to SVG font URLs; defaults to the
            family name without spaces

    Returns:
        Stylesheet text; identical inputs give identical output

    Raises:
        MissingSourceError: If the woff2 slot is empty
        CssError: If URL resolution or rendering fails
    """
    woff2 = slots.get(FormatCode.WOFF2)
    if woff2 is None or woff2.is_empty:
        raise MissingSourceError()

    options = options or StylesheetConfig()
    try:
        declarations, comments = _declarations(descriptor, family_name, options)
        legacy_src, src = _src_entries(
            slots,
            url_resolver,
            options,
            svg_fragment or descriptor.family.replace(" ", ""),
        )
        css = _render(declarations, legacy_src, src, comments, options.minify)
    except CssError:
        raise
    except Exception as e:
        raise CssError(f"Failed to render stylesheet: {e}", details=str(e)) from e

    logger.debug(f"Generated @font-face for {family_name!r} with {len(src)} sources")
    return css
