"""Font parsing, metadata extraction and container conversion."""

from .converter import (
    ConversionJob,
    ConversionOutcome,
    ConversionReport,
    FormatConverter,
    convert,
    run_conversion_job,
)
from .extractor import extract
from .formats import FORMATS, FONT_FORMATS, FormatSpec, parse_format_code, spec_for, src_formats
from .utils import detect_format

__all__ = [
    "FONT_FORMATS",
    "FORMATS",
    "ConversionJob",
    "ConversionOutcome",
    "ConversionReport",
    "FormatConverter",
    "FormatSpec",
    "convert",
    "detect_format",
    "extract",
    "parse_format_code",
    "run_conversion_job",
    "spec_for",
    "src_formats",
]
