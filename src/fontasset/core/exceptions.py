"""Custom exceptions for the font asset pipeline."""

from typing import Any


class FontAssetError(Exception):
    """Base exception for all font asset errors."""

    def __init__(self, message: str, details: Any | None = None, slot: str | None = None):
        super().__init__(message)
        self.details = details
        self.slot = slot


class ValidationError(FontAssetError):
    """Exception raised for input validation errors."""


class StorageError(FontAssetError):
    """Exception raised for blob or document store errors."""


class ConfigurationError(FontAssetError):
    """Exception raised for configuration errors."""


class ProcessingError(FontAssetError):
    """Exception raised while parsing or transcoding font data."""


# Font parsing / conversion
class MalformedFontError(ProcessingError):
    """Exception raised when a binary is not a recognisable font."""

    def __init__(self, reason: str, slot: str | None = None):
        super().__init__(f"Malformed font: {reason}", slot=slot)
        self.reason = reason


class UnsupportedVariantError(ProcessingError):
    """Exception raised when a variable font's fvar table cannot be used."""

    def __init__(self, reason: str, slot: str | None = None):
        super().__init__(f"Unsupported variable font: {reason}", slot=slot)
        self.reason = reason


class UnsupportedConversionError(ProcessingError):
    """Exception raised when no lossless path exists between two containers."""

    def __init__(self, source: str, target: str, reason: str | None = None):
        message = f"Cannot convert {source} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, slot=target)
        self.source = source
        self.target = target


class CorruptTableError(ProcessingError):
    """Exception raised when a required table cannot be parsed."""

    def __init__(self, tag: str, error: str | None = None, slot: str | None = None):
        message = f"Corrupt or missing '{tag}' table"
        if error:
            message = f"{message}: {error}"
        super().__init__(message, slot=slot)
        self.tag = tag


# Stylesheet
class CssError(FontAssetError):
    """Exception raised when a stylesheet cannot be produced."""

    def __init__(self, message: str, details: Any | None = None):
        super().__init__(message, details=details, slot="css")


class MissingSourceError(CssError):
    """Exception raised when the woff2 source slot is empty."""

    def __init__(self):
        super().__init__("A woff2 file is required to generate a stylesheet")


# Lifecycle
class SlotBusyError(FontAssetError):
    """Exception raised when a slot already has a transition in flight."""

    def __init__(self, slot: str, state: str):
        super().__init__(f"Slot '{slot}' is busy ({state}), retry later", slot=slot)
        self.state = state


class UploadFailedError(StorageError):
    """Exception raised when a slot upload could not be committed."""

    def __init__(self, slot: str, error: str):
        super().__init__(f"Upload to slot '{slot}' failed: {error}", slot=slot)


class DeleteFailedError(StorageError):
    """Raised (and usually only recorded as a warning) when blob cleanup fails."""

    def __init__(self, object_id: str, error: str, slot: str | None = None):
        super().__init__(f"Failed to delete object {object_id}: {error}", slot=slot)
        self.object_id = object_id


class DocumentPatchError(StorageError):
    """Exception raised when the reference document rejects a patch."""

    def __init__(self, doc_id: str, error: str, slot: str | None = None):
        super().__init__(f"Failed to patch document {doc_id}: {error}", slot=slot)


class AssetNotFoundError(StorageError):
    """Exception raised when the font asset document does not exist."""

    def __init__(self, doc_id: str):
        super().__init__(f"Font asset not found: {doc_id}")


class BlobNotFoundError(StorageError):
    """Exception raised when a blob store object does not exist."""

    def __init__(self, object_id: str):
        super().__init__(f"Object not found: {object_id}")


class FormatMismatchError(ValidationError):
    """Exception raised when uploaded bytes do not belong in the target slot."""

    def __init__(self, slot: str, detected: str):
        super().__init__(f"Slot '{slot}' cannot hold a {detected} file", slot=slot)
        self.detected = detected


class UnknownFormatError(ValidationError):
    """Exception raised for an unknown format code."""

    def __init__(self, code: str):
        super().__init__(f"Unknown format code: {code}")


class EmptyUploadError(ValidationError):
    """Exception raised when an upload carries no bytes."""

    def __init__(self, slot: str):
        super().__init__(f"Refusing to upload an empty file to slot '{slot}'", slot=slot)


class OperationCancelledError(FontAssetError):
    """Exception raised when an in-flight operation is cancelled."""

    def __init__(self):
        super().__init__("Operation cancelled")


# Configuration
class ConfigFileNotFoundError(ConfigurationError):
    """Exception raised when configuration file is not found."""

    def __init__(self, config_path: str):
        super().__init__(f"Configuration file not found: {config_path}")


class EmptyConfigFileError(ConfigurationError):
    """Exception raised when configuration file is empty."""

    def __init__(self, config_path: str):
        super().__init__(f"Empty configuration file: {config_path}")


class InvalidYamlError(ConfigurationError):
    """Exception raised for invalid YAML content."""

    def __init__(self, config_path: str, error: str):
        super().__init__(f"Invalid YAML in {config_path}: {error}")


class ConfigLoadError(ConfigurationError):
    """Exception raised when configuration loading fails."""

    def __init__(self, error: str):
        super().__init__(f"Failed to load configuration: {error}")


class EmptyCredentialError(ValueError):
    """Exception raised for empty credentials."""

    def __init__(self):
        super().__init__("Credential cannot be empty")


class ShortCredentialError(ValueError):
    """Exception raised for credentials that are too short."""

    def __init__(self):
        super().__init__("Credential too short")


class InvalidEndpointUrlError(ValueError):
    """Exception raised for invalid endpoint URLs."""

    def __init__(self):
        super().__init__("Endpoint URL must start with https:// or http://")


class WeightOutOfRangeError(ValueError):
    """Exception raised when a weight is outside the OpenType range."""

    def __init__(self, weight: int):
        super().__init__(f"Weight must be between 1 and 1000, got {weight}")


class InvalidDescriptorError(ValueError):
    """Exception raised when descriptor fields contradict each other."""

    def __init__(self, reason: str):
        super().__init__(f"Invalid font descriptor: {reason}")


class InvalidAxisTagError(ValueError):
    """Exception raised for axis tags that are not four characters long."""

    def __init__(self, tag: str):
        super().__init__(f"Axis tag must be 4 characters, got {tag!r}")


class InvalidSlotError(ValueError):
    """Exception raised for slots with file details but no object id."""

    def __init__(self):
        super().__init__("An occupied slot requires an object id")
