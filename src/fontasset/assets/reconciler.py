"""
Lifecycle Reconciler
====================

Drives uploads, derived regeneration and deletions for one font asset while
keeping its reference document consistent with the blob store.

Each slot moves through ``Empty -> Uploading -> Occupied -> Deleting ->
Empty``. At most one transition per slot is in flight; different slots
proceed independently.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, Field

from ..core.cancellation import CancellationEvent, raise_if_cancelled
from ..core.config import AppConfig
from ..core.exceptions import (
    CssError,
    DeleteFailedError,
    DocumentPatchError,
    EmptyUploadError,
    FontAssetError,
    FormatMismatchError,
    MalformedFontError,
    MissingSourceError,
    OperationCancelledError,
    SlotBusyError,
    UploadFailedError,
)
from ..core.models import FontDescriptor, FontStyle, FormatCode
from ..css.generator import UrlResolver, cdn_url_resolver, generate, relative_url_resolver
from ..fonts.converter import ConversionJob, FormatConverter, run_conversion_job
from ..fonts.extractor import extract
from ..fonts.formats import parse_format_code, spec_for
from ..fonts.utils import detect_format
from ..storage.base import BlobStore, DocumentStore
from .model import EMPTY_SLOT, FontAsset, FormatSlot

logger = logging.getLogger(__name__)

# containers each slot accepts
SLOT_CONTAINERS: dict[FormatCode, frozenset[FormatCode]] = {
    FormatCode.TTF: frozenset({FormatCode.TTF, FormatCode.OTF}),
    FormatCode.OTF: frozenset({FormatCode.TTF, FormatCode.OTF}),
    FormatCode.WOFF: frozenset({FormatCode.WOFF}),
    FormatCode.WOFF2: frozenset({FormatCode.WOFF2}),
    FormatCode.EOT: frozenset({FormatCode.EOT}),
    FormatCode.SVG: frozenset({FormatCode.SVG}),
}


class SlotState(str, Enum):
    """In-flight state of a slot."""

    UPLOADING = "uploading"
    DELETING = "deleting"


class SlotError(BaseModel):
    """A failure attributed to one slot."""

    slot: FormatCode
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, slot: FormatCode, error: Exception) -> "SlotError":
        return cls(slot=slot, error_type=type(error).__name__, message=str(error))


class UploadResult(BaseModel):
    """Outcome of :meth:`FontAssetReconciler.upload_format`."""

    asset: FontAsset
    slot: FormatCode
    object_id: str
    replaced_object_id: str | None = None
    descriptor: FontDescriptor | None = None
    derived: list[FormatCode] = Field(default_factory=list)
    extract_error: SlotError | None = None
    derived_errors: dict[FormatCode, SlotError] = Field(default_factory=dict)
    css_object_id: str | None = None
    css_error: SlotError | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when the primary upload and every derived step succeeded."""
        return self.extract_error is None and not self.derived_errors and self.css_error is None


class DeleteResult(BaseModel):
    """Outcome of :meth:`FontAssetReconciler.delete_format`."""

    asset: FontAsset
    slot: FormatCode
    deleted_object_id: str | None = None
    warnings: list[str] = Field(default_factory=list)


class CssResult(BaseModel):
    """Outcome of :meth:`FontAssetReconciler.regenerate_css`."""

    asset: FontAsset
    css: str
    object_id: str
    warnings: list[str] = Field(default_factory=list)


def create_asset(
    document_store: DocumentStore,
    asset_id: str,
    title: str,
    slug: str | None = None,
    weight: int | None = None,
    style: FontStyle | None = None,
) -> FontAsset:
    """Create an empty font asset document."""
    asset = FontAsset(
        id=asset_id, title=title, slug=slug, weight_override=weight, style_override=style
    )
    fields = asset.to_document()
    fields.pop("_id")
    return FontAsset.from_document(document_store.create(asset_id, fields))


class FontAssetReconciler:
    """
    Reconciles one font asset document with the blob store.

    Share one instance per asset between concurrent callers: the in-flight
    slot table lives on the instance.
    """

    def __init__(
        self,
        asset_id: str,
        blob_store: BlobStore,
        document_store: DocumentStore,
        config: AppConfig | None = None,
        url_resolver: UrlResolver | None = None,
        converter: FormatConverter | None = None,
    ):
        self.asset_id = asset_id
        self.blob_store = blob_store
        self.document_store = document_store
        self.config = config or AppConfig()
        self.converter = converter or FormatConverter(self.config.converter)

        if url_resolver is None:
            base_url = self.config.pipeline.cdn_base_url
            url_resolver = cdn_url_resolver(base_url) if base_url else relative_url_resolver()
        self.url_resolver = url_resolver

        self._inflight: dict[FormatCode, SlotState] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def load(self) -> FontAsset:
        """Read the current asset document."""
        return FontAsset.from_document(self.document_store.get(self.asset_id))

    def upload_format(
        self,
        code: FormatCode | str,
        data: bytes,
        filename: str,
        *,
        generate: Iterable[FormatCode | str] | None = None,
        cancellation: CancellationEvent | None = None,
    ) -> UploadResult:
        """
        Upload bytes into a slot.

        A woff2 upload also extracts metadata, derives the requested formats
        into empty slots and regenerates the stylesheet before returning.
        Slots generated from a previous woff2 are regenerated from the new
        one; slots filled by direct uploads are left alone.
        Failures of those derived steps are recorded on the result; the
        woff2 upload itself stays committed.

        Args:
            code: Target slot
            data: File bytes
            filename: Name the file was uploaded with
            generate: Formats to derive from a woff2 upload; defaults to
                ``pipeline.pregenerate_formats``
            cancellation: Checked between steps and table reads

        Raises:
            EmptyUploadError: If *data* is empty
            MalformedFontError: If *data* is not a recognisable font
            FormatMismatchError: If *data* is a font of another container
            SlotBusyError: If the slot already has a transition in flight
            UploadFailedError: If the blob store or patch failed; the slot is
                left as it was
        """
        code = parse_format_code(code)
        if not data:
            raise EmptyUploadError(code.value)
        self._validate_container(code, data)

        with self._transition(code, SlotState.UPLOADING):
            asset = self.load()
            name = self._upload_name(asset, code, filename)
            asset, object_id, previous, warnings = self._commit_slot(
                code, data, name, spec_for(code).mime_type, cancellation
            )
            result = UploadResult(
                asset=asset,
                slot=code,
                object_id=object_id,
                replaced_object_id=(
                    previous.object_id
                    if not previous.is_empty and previous.object_id != object_id
                    else None
                ),
                warnings=warnings,
            )
            logger.info(f"Committed {name} to slot {code} of {self.asset_id} as {object_id}")

            if code == FormatCode.WOFF2:
                self._run_derived_pipeline(result, data, name, generate, cancellation)

        return result

    def delete_format(self, code: FormatCode | str) -> DeleteResult:
        """
        Empty a slot, then delete its backing object.

        The document is patched first. A failed blob deletion leaves an
        orphaned object and is reported as a warning.

        Raises:
            SlotBusyError: If the slot already has a transition in flight
            DocumentPatchError: If the document could not be patched
        """
        code = parse_format_code(code)
        with self._transition(code, SlotState.DELETING):
            asset = self.load()
            _, previous = asset.without_slot(code)
            if previous is None:
                logger.info(f"Slot {code} of {self.asset_id} is already empty")
                return DeleteResult(asset=asset, slot=code, warnings=[f"Slot '{code}' was empty"])

            try:
                document = self.document_store.patch(
                    self.asset_id, [asset.slot_patch(code, EMPTY_SLOT)]
                )
            except Exception as e:
                raise DocumentPatchError(self.asset_id, str(e), slot=code.value) from e
            asset = FontAsset.from_document(document)
            logger.info(f"Unset slot {code} of {self.asset_id}")

            warnings = self._release_object(asset, previous.object_id, code)
            return DeleteResult(
                asset=asset,
                slot=code,
                deleted_object_id=previous.object_id,
                warnings=warnings,
            )

    def regenerate_css(
        self,
        family_name: str | None = None,
        *,
        cancellation: CancellationEvent | None = None,
    ) -> CssResult:
        """
        Regenerate the stylesheet from the current slots.

        Args:
            family_name: ``font-family`` value; defaults to the asset title,
                then the embedded family name
            cancellation: Checked between steps

        Raises:
            MissingSourceError: If the woff2 slot is empty
            CssError: If metadata or stylesheet generation or storage failed
            SlotBusyError: If the css slot already has a transition in flight
        """
        asset = self.load()
        woff2 = asset.slot(FormatCode.WOFF2)
        if woff2.is_empty:
            raise MissingSourceError()

        if asset.descriptor is None:
            try:
                data = self.blob_store.fetch(woff2.object_id)
                descriptor = extract(data, cancellation)
                asset = self._patch_descriptor(asset, descriptor)
            except CssError:
                raise
            except FontAssetError as e:
                raise CssError(f"Cannot read metadata from the woff2 source: {e}", details=str(e)) from e

        css, object_id, warnings = self._write_css(asset, family_name, cancellation)
        return CssResult(asset=self.load(), css=css, object_id=object_id, warnings=warnings)

    # ------------------------------------------------------------------
    # Slot transitions
    # ------------------------------------------------------------------

    @contextmanager
    def _transition(self, code: FormatCode, state: SlotState) -> Iterator[None]:
        with self._lock:
            current = self._inflight.get(code)
            if current is not None:
                raise SlotBusyError(code.value, current.value)
            self._inflight[code] = state
        try:
            yield
        finally:
            with self._lock:
                self._inflight.pop(code, None)

    def _commit_slot(
        self,
        code: FormatCode,
        data: bytes,
        name: str,
        content_type: str | None,
        cancellation: CancellationEvent | None,
        derived_from: str | None = None,
    ) -> tuple[FontAsset, str, FormatSlot, list[str]]:
        """Upload, patch the slot, then release the replaced object."""
        try:
            raise_if_cancelled(cancellation)
            object_id = self.blob_store.upload(
                data, name, content_type, scope=f"{self.asset_id}/{code.value}"
            )
        except Exception as e:
            logger.error(f"Upload of {name} to slot {code} failed: {e}")
            raise UploadFailedError(code.value, str(e)) from e

        try:
            raise_if_cancelled(cancellation)
            asset = self.load()
            previous = asset.slot(code)
            slot = FormatSlot.occupied(object_id, name, derived_from)
            document = self.document_store.patch(self.asset_id, [asset.slot_patch(code, slot)])
        except Exception as e:
            logger.error(f"Patching slot {code} failed, reverting upload: {e}")
            self._discard_uncommitted(object_id, code)
            raise UploadFailedError(code.value, str(e)) from e

        asset = FontAsset.from_document(document)
        warnings = []
        if not previous.is_empty and previous.object_id != object_id:
            warnings = self._release_object(asset, previous.object_id, code)
        return asset, object_id, previous, warnings

    def _discard_uncommitted(self, object_id: str, code: FormatCode) -> None:
        try:
            asset = self.load()
        except FontAssetError as e:
            logger.warning(f"Leaving {object_id} in place, document unreadable: {e}")
            return
        if object_id in self._referenced_ids(asset):
            return
        try:
            self.blob_store.delete(object_id)
        except Exception as e:
            logger.warning(f"Orphaned {object_id} from failed upload to {code}: {e}")

    def _release_object(self, asset: FontAsset, object_id: str, code: FormatCode) -> list[str]:
        """Delete an object no slot references any more."""
        if object_id in self._referenced_ids(asset):
            logger.info(f"Keeping {object_id}, still referenced by another slot")
            return []
        try:
            self.blob_store.delete(object_id)
        except Exception as e:
            warning = DeleteFailedError(object_id, str(e), slot=code.value)
            logger.warning(str(warning))
            return [str(warning)]
        logger.info(f"Deleted {object_id} released by slot {code}")
        return []

    @staticmethod
    def _referenced_ids(asset: FontAsset) -> set[str]:
        return {slot.object_id for slot in asset.slots.values() if not slot.is_empty}

    def _patch_descriptor(self, asset: FontAsset, descriptor: FontDescriptor) -> FontAsset:
        updated = asset.with_descriptor(descriptor)
        try:
            document = self.document_store.patch(self.asset_id, [updated.descriptor_patch()])
        except Exception as e:
            raise DocumentPatchError(self.asset_id, str(e), slot=FormatCode.WOFF2.value) from e
        return FontAsset.from_document(document)

    # ------------------------------------------------------------------
    # Derived pipeline
    # ------------------------------------------------------------------

    def _run_derived_pipeline(
        self,
        result: UploadResult,
        data: bytes,
        source_name: str,
        generate: Iterable[FormatCode | str] | None,
        cancellation: CancellationEvent | None,
    ) -> None:
        asset = result.asset
        try:
            descriptor = extract(data, cancellation)
            asset = self._patch_descriptor(asset, descriptor)
        except FontAssetError as e:
            logger.error(f"Metadata extraction for {self.asset_id} failed: {e}")
            result.extract_error = SlotError.from_exception(FormatCode.WOFF2, e)
            result.css_error = SlotError.from_exception(
                FormatCode.CSS, CssError("Stylesheet skipped: no metadata for the woff2 source")
            )
            result.asset = asset
            return
        result.descriptor = descriptor

        asset = self._derive_formats(result, asset, data, source_name, descriptor, generate, cancellation)

        try:
            _, css_object_id, warnings = self._write_css(asset, None, cancellation, source_name)
            result.css_object_id = css_object_id
            result.warnings.extend(warnings)
        except FontAssetError as e:
            logger.error(f"Stylesheet generation for {self.asset_id} failed: {e}")
            result.css_error = SlotError.from_exception(FormatCode.CSS, e)
        result.asset = self.load()

    def _derive_formats(
        self,
        result: UploadResult,
        asset: FontAsset,
        data: bytes,
        source_name: str,
        descriptor: FontDescriptor,
        generate: Iterable[FormatCode | str] | None,
        cancellation: CancellationEvent | None,
    ) -> FontAsset:
        requested = generate if generate is not None else self.config.pipeline.pregenerate_formats
        targets = {parse_format_code(t) for t in requested} - {FormatCode.WOFF2, FormatCode.CSS}
        if not self.config.pipeline.regenerate_existing:
            targets = {t for t in targets if asset.slot(t).is_empty}

        # slots generated from an earlier woff2 are refreshed regardless of the request
        stale = self._stale_derived_codes(asset, result.object_id)
        if stale:
            logger.info(
                f"Refreshing {sorted(code.value for code in stale)} of {self.asset_id} "
                f"derived from a previous woff2"
            )
        targets |= stale
        if not targets:
            return asset

        job = ConversionJob(
            source_format=FormatCode.WOFF2,
            source_bytes=data,
            target_formats=frozenset(targets),
            descriptor=descriptor,
        )
        try:
            report = run_conversion_job(
                job, self.converter, self.config.pipeline.max_workers, cancellation
            )
        except OperationCancelledError as e:
            for target in targets:
                result.derived_errors[target] = SlotError.from_exception(target, e)
            self._warn_stale(result, stale)
            return asset

        for target, error in report.failed.items():
            result.derived_errors[target] = SlotError.from_exception(target, error)

        for target in sorted(report.succeeded, key=lambda code: code.value):
            name = self._derived_name(asset, source_name, target)
            try:
                with self._transition(target, SlotState.UPLOADING):
                    asset, _, _, warnings = self._commit_slot(
                        target,
                        report.succeeded[target],
                        name,
                        spec_for(target).mime_type,
                        cancellation,
                        derived_from=result.object_id,
                    )
                result.derived.append(target)
                result.warnings.extend(warnings)
            except FontAssetError as e:
                logger.error(f"Could not store derived {target}: {e}")
                result.derived_errors[target] = SlotError.from_exception(target, e)
        self._warn_stale(result, stale)
        return asset

    @staticmethod
    def _stale_derived_codes(asset: FontAsset, woff2_object_id: str) -> set[FormatCode]:
        return {
            code
            for code, slot in asset.slots.items()
            if code not in (FormatCode.WOFF2, FormatCode.CSS)
            and slot.derived_from is not None
            and slot.derived_from != woff2_object_id
        }

    @staticmethod
    def _warn_stale(result: UploadResult, stale: set[FormatCode]) -> None:
        for code in sorted(stale, key=lambda c: c.value):
            if code in result.derived_errors:
                message = f"Slot '{code}' still holds a file derived from the previous woff2"
                logger.warning(message)
                result.warnings.append(message)

    def _write_css(
        self,
        asset: FontAsset,
        family_name: str | None,
        cancellation: CancellationEvent | None,
        source_name: str | None = None,
    ) -> tuple[str, str, list[str]]:
        descriptor = asset.effective_descriptor
        if descriptor is None:
            raise CssError("No metadata available for the stylesheet")
        family = family_name or asset.title or descriptor.family

        css = generate(
            descriptor,
            asset.slots,
            family,
            self.url_resolver,
            self.config.stylesheet,
            svg_fragment=self.config.converter.svg_font_id,
        )
        woff2 = asset.slot(FormatCode.WOFF2)
        name = self._derived_name(asset, source_name or woff2.original_name or "", FormatCode.CSS)

        with self._transition(FormatCode.CSS, SlotState.UPLOADING):
            try:
                _, object_id, _, warnings = self._commit_slot(
                    FormatCode.CSS, css.encode("utf-8"), name, "text/css", cancellation
                )
            except UploadFailedError as e:
                raise CssError(f"Failed to store stylesheet: {e}", details=str(e)) from e
        logger.info(f"Stylesheet for {self.asset_id} stored as {object_id}")
        return css, object_id, warnings

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_container(self, code: FormatCode, data: bytes) -> None:
        detected = detect_format(data)
        if code == FormatCode.CSS:
            if detected is not None:
                raise FormatMismatchError(code.value, detected.value)
            try:
                bytes(data).decode("utf-8")
            except UnicodeDecodeError:
                raise FormatMismatchError(code.value, "binary") from None
            return
        if detected is None:
            raise MalformedFontError("missing font signature", slot=code.value)
        if detected not in SLOT_CONTAINERS[code]:
            raise FormatMismatchError(code.value, detected.value)

    def _upload_name(self, asset: FontAsset, code: FormatCode, filename: str) -> str:
        extension = spec_for(code).extension
        if self.config.pipeline.use_slug_filenames and asset.slug:
            return f"{asset.slug}{extension}"
        stem = PurePosixPath(filename).stem if filename else ""
        return f"{stem or asset.id}{extension}"

    def _derived_name(self, asset: FontAsset, source_name: str, code: FormatCode) -> str:
        extension = spec_for(code).extension
        if self.config.pipeline.use_slug_filenames and asset.slug:
            return f"{asset.slug}{extension}"
        stem = PurePosixPath(source_name).stem if source_name else asset.id
        return f"{stem}{extension}"
