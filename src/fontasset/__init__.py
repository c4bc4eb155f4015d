"""
Font Asset Pipeline
===================

Metadata extraction, web-font conversion and @font-face generation for
font asset documents.
"""

__version__ = "0.1.0"

from .assets import FontAsset, FontAssetReconciler, FormatSlot, create_asset
from .core import (
    AppConfig,
    CancellationEvent,
    FontAssetError,
    FontDescriptor,
    FormatCode,
)
from .css import generate
from .fonts import FormatConverter, convert, extract

__all__ = [
    "AppConfig",
    "CancellationEvent",
    "FontAsset",
    "FontAssetError",
    "FontAssetReconciler",
    "FontDescriptor",
    "FormatCode",
    "FormatConverter",
    "FormatSlot",
    "convert",
    "create_asset",
    "extract",
    "generate",
]
