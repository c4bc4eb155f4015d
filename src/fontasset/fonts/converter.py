"""
Format Conversion
=================

Transcodes a font between sfnt (TTF/OTF), WOFF, WOFF2, EOT and SVG.

Glyph and metric tables are never decompiled on the write path: fontTools
copies their raw bytes into the new container, so a round trip through sfnt,
WOFF or EOT leaves them byte-identical. WOFF2 output re-pads glyf/loca
(and transforms them unless disabled); outlines survive, padding may not.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from io import BytesIO

from fontTools.ttLib import TTFont
from fontTools.ttLib.woff2 import WOFF2FlavorData

from ..core.cancellation import CancellationEvent, raise_if_cancelled
from ..core.config import ConverterConfig
from ..core.exceptions import (
    CorruptTableError,
    FontAssetError,
    MalformedFontError,
    OperationCancelledError,
    ProcessingError,
    UnsupportedConversionError,
)
from ..core.models import FontDescriptor, FormatCode, OutlineFormat
from .eot import build_eot, unwrap_eot
from .formats import parse_format_code
from .svg import build_svg_font
from .utils import detect_format, open_font, outline_format

logger = logging.getLogger(__name__)

# fontTools flavor attribute per target container
FLAVORS = {
    FormatCode.TTF: None,
    FormatCode.OTF: None,
    FormatCode.EOT: None,
    FormatCode.WOFF: "woff",
    FormatCode.WOFF2: "woff2",
}

REQUIRED_TABLES = {
    OutlineFormat.TRUETYPE: (("glyf",), ("loca",), ("hmtx",), ("cmap",)),
    OutlineFormat.CFF: (("CFF ", "CFF2"), ("hmtx",), ("cmap",)),
}


def _check_table(font: TTFont, tag: str) -> None:
    """Decompile one table far enough to trust it."""
    table = font[tag]
    if tag == "glyf":
        for glyph_name in font.getGlyphOrder():
            table[glyph_name]
    elif tag == "loca":
        if len(table) < len(font.getGlyphOrder()):
            raise ValueError(f"{len(table)} offsets for {len(font.getGlyphOrder())} glyphs")
    elif tag == "CFF ":
        table.cff[table.cff.fontNames[0]].CharStrings
    elif tag == "CFF2":
        table.cff.topDictIndex[0].CharStrings
    elif tag == "hmtx":
        missing = set(font.getGlyphOrder()) - set(table.metrics)
        if missing:
            raise ValueError(f"no metrics for {len(missing)} glyphs")
    elif tag == "cmap":
        if not font.getBestCmap():
            raise ValueError("no Unicode subtable")


class FormatConverter:
    """
    Converts font bytes from one container to another.

    A converter holds no per-call state; one instance may be shared by
    many threads.
    """

    def __init__(self, config: ConverterConfig | None = None):
        self.config = config or ConverterConfig()

    def convert(
        self,
        descriptor: FontDescriptor,
        data: bytes,
        target: FormatCode | str,
        cancellation: CancellationEvent | None = None,
    ) -> bytes:
        """
        Convert font bytes to another container.

        Args:
            descriptor: Metadata of the font, used by EOT and SVG headers
            data: Source bytes in any supported container
            target: Target format code
            cancellation: Polled before each table is read

        Returns:
            Target bytes; the input unchanged if source and target match

        Raises:
            UnsupportedConversionError: If no lossless path exists
            CorruptTableError: If a table the target needs cannot be parsed
            MalformedFontError: If the source is not a recognised container
        """
        target = parse_format_code(target)
        source = detect_format(data)
        if source is None:
            raise MalformedFontError("unrecognised signature", slot=target.value)

        if target == FormatCode.CSS:
            raise UnsupportedConversionError(source, target, "stylesheets are generated, not converted")
        if source == target:
            return bytes(data)
        if source == FormatCode.SVG:
            raise UnsupportedConversionError(source, target, "SVG fonts carry no sfnt tables")

        sfnt = unwrap_eot(data) if source == FormatCode.EOT else data
        raise_if_cancelled(cancellation)

        probe = open_font(sfnt)
        outline = outline_format(probe)
        if outline is None:
            raise CorruptTableError("glyf", "font has no glyf or CFF outlines", slot=target.value)
        self._check_path(source, target, outline)
        self._validate_tables(probe, outline, target, cancellation)

        logger.debug(f"Converting {source} ({outline.value}) to {target}")
        raise_if_cancelled(cancellation)

        if target == FormatCode.SVG:
            return build_svg_font(probe, descriptor, self.config.svg_font_id, cancellation)

        if target == FormatCode.EOT:
            plain = self._save(open_font(sfnt), None)
            return build_eot(plain, probe, descriptor)

        return self._save(open_font(sfnt), FLAVORS[target])

    def _check_path(self, source: FormatCode, target: FormatCode, outline: OutlineFormat) -> None:
        if target in (FormatCode.TTF, FormatCode.EOT) and outline != OutlineFormat.TRUETYPE:
            raise UnsupportedConversionError(
                source, target, "CFF outlines cannot be stored without conversion to quadratics"
            )
        if target == FormatCode.OTF and outline != OutlineFormat.CFF:
            raise UnsupportedConversionError(
                source, target, "TrueType outlines cannot be stored without conversion to cubics"
            )

    def _validate_tables(
        self,
        font: TTFont,
        outline: OutlineFormat,
        target: FormatCode,
        cancellation: CancellationEvent | None,
    ) -> None:
        for alternatives in REQUIRED_TABLES[outline]:
            raise_if_cancelled(cancellation)
            tag = next((t for t in alternatives if t in font), None)
            if tag is None:
                raise CorruptTableError(alternatives[0], "table is missing", slot=target.value)
            try:
                _check_table(font, tag)
            except Exception as e:
                raise CorruptTableError(tag, str(e), slot=target.value) from e

    def _save(self, font: TTFont, flavor: str | None) -> bytes:
        font.flavor = flavor
        font.flavorData = None
        if flavor == "woff2" and not self.config.woff2_transform_glyf:
            font.flavorData = WOFF2FlavorData(transformedTables=())
        buffer = BytesIO()
        try:
            font.save(buffer)
        except FontAssetError:
            raise
        except Exception as e:
            raise ProcessingError(f"Failed to write {flavor or 'sfnt'} data: {e}") from e
        return buffer.getvalue()


@dataclass(frozen=True)
class ConversionJob:
    """Source bytes plus the formats to derive from them."""

    source_format: FormatCode
    source_bytes: bytes
    target_formats: frozenset[FormatCode]
    descriptor: FontDescriptor


@dataclass
class ConversionOutcome:
    """Result of one target of a :class:`ConversionJob`."""

    target: FormatCode
    data: bytes | None = None
    error: FontAssetError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConversionReport:
    """Per-target outcomes of a :class:`ConversionJob`."""

    outcomes: dict[FormatCode, ConversionOutcome] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, outcome: ConversionOutcome) -> None:
        with self._lock:
            self.outcomes[outcome.target] = outcome

    @property
    def succeeded(self) -> dict[FormatCode, bytes]:
        return {t: o.data for t, o in self.outcomes.items() if o.ok and o.data is not None}

    @property
    def failed(self) -> dict[FormatCode, FontAssetError]:
        return {t: o.error for t, o in self.outcomes.items() if o.error is not None}


def run_conversion_job(
    job: ConversionJob,
    converter: FormatConverter | None = None,
    max_workers: int = 4,
    cancellation: CancellationEvent | None = None,
) -> ConversionReport:
    """
    Convert a job's source into each target in parallel.

    Failures are recorded per target; one target failing never affects the
    others. Cancellation stops pending targets and is re-raised once the
    pool has drained.
    """
    converter = converter or FormatConverter()
    report = ConversionReport()
    targets = sorted(job.target_formats, key=lambda code: code.value)
    if not targets:
        return report

    logger.info(f"Deriving {', '.join(t.value for t in targets)} from {job.source_format}")
    cancelled = False
    with ThreadPoolExecutor(max_workers=min(max_workers, len(targets))) as executor:
        future_to_target = {
            executor.submit(
                converter.convert, job.descriptor, job.source_bytes, target, cancellation
            ): target
            for target in targets
        }

        for future in as_completed(future_to_target):
            target = future_to_target[future]
            try:
                report.record(ConversionOutcome(target=target, data=future.result()))
                logger.debug(f"Derived {target}")
            except OperationCancelledError:
                cancelled = True
            except FontAssetError as e:
                logger.warning(f"Could not derive {target}: {e}")
                report.record(ConversionOutcome(target=target, error=e))
            except Exception as e:
                logger.error(f"Unexpected error deriving {target}: {e}")
                report.record(
                    ConversionOutcome(
                        target=target,
                        error=ProcessingError(str(e), slot=target.value),
                    )
                )

    if cancelled:
        raise OperationCancelledError()
    return report


def convert(
    descriptor: FontDescriptor,
    data: bytes,
    target: FormatCode | str,
    cancellation: CancellationEvent | None = None,
    config: ConverterConfig | None = None,
) -> bytes:
    """Convert with a one-off :class:`FormatConverter`."""
    return FormatConverter(config).convert(descriptor, data, target, cancellation)
