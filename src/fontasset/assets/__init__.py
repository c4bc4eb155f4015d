"""Font asset documents and their lifecycle."""

from .model import EMPTY_SLOT, FontAsset, FormatSlot, slot_path
from .reconciler import (
    CssResult,
    DeleteResult,
    FontAssetReconciler,
    SlotError,
    SlotState,
    UploadResult,
    create_asset,
)

__all__ = [
    "EMPTY_SLOT",
    "CssResult",
    "DeleteResult",
    "FontAsset",
    "FontAssetReconciler",
    "FormatSlot",
    "SlotError",
    "SlotState",
    "UploadResult",
    "create_asset",
    "slot_path",
]
