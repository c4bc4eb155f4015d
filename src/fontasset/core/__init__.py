"""Core components for the font asset pipeline."""

from .cancellation import CancellationEvent
from .config import (
    AppConfig,
    ConverterConfig,
    LoggingConfig,
    PipelineConfig,
    R2Config,
    StylesheetConfig,
)
from .exceptions import (
    CorruptTableError,
    CssError,
    DeleteFailedError,
    FontAssetError,
    MalformedFontError,
    MissingSourceError,
    SlotBusyError,
    UnsupportedConversionError,
    UnsupportedVariantError,
    UploadFailedError,
)
from .models import FontDescriptor, FontStyle, FormatCode, OutlineFormat, VariationAxis

__all__ = [
    "AppConfig",
    "CancellationEvent",
    "ConverterConfig",
    "CorruptTableError",
    "CssError",
    "DeleteFailedError",
    "FontAssetError",
    "FontDescriptor",
    "FontStyle",
    "FormatCode",
    "LoggingConfig",
    "MalformedFontError",
    "MissingSourceError",
    "OutlineFormat",
    "PipelineConfig",
    "R2Config",
    "SlotBusyError",
    "StylesheetConfig",
    "UnsupportedConversionError",
    "UnsupportedVariantError",
    "UploadFailedError",
    "VariationAxis",
]
