"""Unit tests for the immutable asset reference model."""

import pytest
from pydantic import ValidationError

from src.fontasset.assets.model import (
    EMPTY_SLOT,
    FontAsset,
    FormatSlot,
    slot_path,
)
from src.fontasset.core.models import FontDescriptor, FontStyle, FormatCode
from src.fontasset.storage.base import PatchOperation


@pytest.fixture
def descriptor():
    return FontDescriptor(family="Acme Sans", subfamily="Regular", weight=400)


@pytest.fixture
def asset():
    return FontAsset(id="font-1", title="Acme Sans", slug="acme-sans")


class TestFormatSlot:
    def test_empty(self):
        assert EMPTY_SLOT.is_empty
        assert FormatSlot.from_reference(None) == EMPTY_SLOT
        assert FormatSlot.from_reference({"asset": {}}) == EMPTY_SLOT

    def test_name_requires_object(self):
        with pytest.raises(ValidationError):
            FormatSlot(original_name="orphan.ttf")

    def test_reference_round_trip(self):
        slot = FormatSlot.occupied("file-abc-ttf", "acme.ttf")

        reference = slot.to_reference()

        assert reference == {
            "_type": "file",
            "asset": {"_type": "reference", "_ref": "file-abc-ttf"},
            "originalFilename": "acme.ttf",
        }
        assert FormatSlot.from_reference(reference) == slot

    def test_derived_reference(self):
        slot = FormatSlot.occupied("file-abc-ttf", "acme.ttf", derived_from="file-def-woff2")

        reference = slot.to_reference()

        assert reference["derivedFrom"] == "file-def-woff2"
        assert FormatSlot.from_reference(reference) == slot

    def test_source_requires_object(self):
        with pytest.raises(ValidationError):
            FormatSlot(derived_from="file-def-woff2")


class TestFontAsset:
    def test_all_slots_present(self, asset):
        assert set(asset.slots) == set(FormatCode)
        assert asset.occupied_codes == []

    def test_bare_asset_has_empty_slots(self):
        bare = FontAsset(id="font-x")

        assert bare.slot("ttf").is_empty
        assert bare.occupied_codes == []
        assert bare.without_slot("ttf") == (bare, None)

    def test_partial_slots_are_filled(self):
        slot = FormatSlot.occupied("file-abc-woff")

        partial = FontAsset(id="font-x", slots={FormatCode.WOFF: slot})

        assert set(partial.slots) == set(FormatCode)
        assert partial.occupied_codes == [FormatCode.WOFF]

    def test_with_slot_touches_one_slot(self, asset):
        slot = FormatSlot.occupied("file-abc-woff2", "acme-sans.woff2")

        updated = asset.with_slot(FormatCode.WOFF2, slot)

        assert updated.slot(FormatCode.WOFF2) == slot
        assert updated.occupied_codes == [FormatCode.WOFF2]
        assert asset.slot(FormatCode.WOFF2).is_empty
        for code in FormatCode:
            if code != FormatCode.WOFF2:
                assert updated.slot(code) == asset.slot(code)

    def test_without_slot_returns_previous(self, asset):
        slot = FormatSlot.occupied("file-abc-ttf")
        occupied = asset.with_slot("ttf", slot)

        emptied, previous = occupied.without_slot("ttf")

        assert previous == slot
        assert emptied.slot("ttf").is_empty

    def test_without_empty_slot(self, asset):
        emptied, previous = asset.without_slot(FormatCode.EOT)

        assert previous is None
        assert emptied == asset

    def test_frozen(self, asset):
        with pytest.raises(ValidationError):
            asset.title = "Other"

    def test_weight_override_range(self):
        with pytest.raises(ValidationError):
            FontAsset(id="font-1", weight_override=1001)

    def test_effective_descriptor(self, asset, descriptor):
        updated = asset.model_copy(
            update={"weight_override": 700, "style_override": FontStyle.ITALIC}
        ).with_descriptor(descriptor)

        effective = updated.effective_descriptor

        assert effective.weight == 700
        assert effective.style == FontStyle.ITALIC
        assert updated.descriptor.weight == 400

    def test_effective_descriptor_without_metadata(self, asset):
        assert asset.effective_descriptor is None


class TestDocuments:
    def test_document_round_trip(self, asset, descriptor):
        full = (
            asset.with_slot("woff2", FormatSlot.occupied("file-a-woff2", "acme-sans.woff2"))
            .with_slot("css", FormatSlot.occupied("file-b-css", "acme-sans.css"))
            .with_descriptor(descriptor)
            .model_copy(update={"weight_override": 500, "style_override": FontStyle.OBLIQUE})
        )

        document = full.to_document()

        assert document["_type"] == "font"
        assert document["slug"] == {"_type": "slug", "current": "acme-sans"}
        assert document["weight"] == "500"
        assert document["variableFont"] is False
        assert set(document["fileInput"]) == {"woff2", "css"}
        assert FontAsset.from_document(document) == full

    @pytest.mark.parametrize("weight", ["bold", "0", "1200", "  "])
    def test_unusable_weight_is_ignored(self, weight):
        asset = FontAsset.from_document({"_id": "font-1", "weight": weight})

        assert asset.weight_override is None

    def test_string_weight(self):
        asset = FontAsset.from_document({"_id": "font-1", "weight": " 600 "})

        assert asset.weight_override == 600

    def test_slot_patches(self, asset):
        slot = FormatSlot.occupied("file-a-woff", "acme-sans.woff")

        assert asset.slot_patch("woff", slot) == PatchOperation.set(
            "fileInput.woff", slot.to_reference()
        )
        assert asset.slot_patch("woff", EMPTY_SLOT) == PatchOperation.unset("fileInput.woff")
        assert slot_path(FormatCode.SVG) == "fileInput.svg"

    def test_descriptor_patch(self, asset, descriptor):
        operation = asset.with_descriptor(descriptor).descriptor_patch()

        assert operation.op == "set"
        assert operation.path == "metaData"
        assert operation.value["family"] == "Acme Sans"
        assert asset.descriptor_patch() == PatchOperation.unset("metaData")

    def test_patch_applies_to_document(self, asset):
        slot = FormatSlot.occupied("file-a-ttf", "acme-sans.ttf")
        document = asset.to_document()

        patched = asset.slot_patch("ttf", slot).apply_to(document)

        assert FontAsset.from_document(patched).slot("ttf") == slot
        assert "ttf" not in document["fileInput"]


class TestPatchOperation:
    def test_set_creates_parents(self):
        result = PatchOperation.set("a.b.c", 1).apply_to({})

        assert result == {"a": {"b": {"c": 1}}}

    def test_unset_missing_path(self):
        document = {"a": 1}

        assert PatchOperation.unset("b.c").apply_to(document) == {"a": 1}

    def test_set_copies_value(self):
        value = {"nested": [1]}
        result = PatchOperation.set("x", value).apply_to({})
        value["nested"].append(2)

        assert result["x"] == {"nested": [1]}
