"""Unit tests for container conversion and conversion jobs."""

from io import BytesIO
from unittest.mock import patch

import pytest
from fontTools.ttLib import TTFont

from src.fontasset.core.cancellation import CancellationEvent
from src.fontasset.core.config import ConverterConfig
from src.fontasset.core.exceptions import (
    CorruptTableError,
    MalformedFontError,
    OperationCancelledError,
    ProcessingError,
    UnsupportedConversionError,
)
from src.fontasset.core.models import FormatCode
from src.fontasset.fonts.converter import (
    ConversionJob,
    FormatConverter,
    convert,
    run_conversion_job,
)
from src.fontasset.fonts.extractor import extract
from src.fontasset.fonts.utils import detect_format

RAW_TABLES = ("glyf", "loca", "hmtx", "cmap", "OS/2", "name")


def _table_bytes(data, tags):
    font = TTFont(BytesIO(data))
    return {tag: font.getTableData(tag) for tag in tags}


def _outlines(data):
    font = TTFont(BytesIO(data))
    glyf = font["glyf"]
    return {
        name: list(glyf[name].getCoordinates(glyf)[0]) if glyf[name].numberOfContours else []
        for name in font.getGlyphOrder()
    }


@pytest.fixture
def converter():
    return FormatConverter()


@pytest.fixture(scope="module")
def static_descriptor(static_ttf):
    return extract(static_ttf)


class TestIdentity:
    @pytest.mark.parametrize("fixture_name", ["static_ttf", "static_woff", "static_woff2", "cff_otf"])
    def test_same_container_returns_input(self, request, converter, fixture_name):
        data = request.getfixturevalue(fixture_name)
        descriptor = extract(data)

        assert converter.convert(descriptor, data, detect_format(data)) == data


class TestLosslessPaths:
    def test_ttf_woff_round_trip_keeps_table_bytes(self, converter, static_ttf, static_descriptor):
        woff = converter.convert(static_descriptor, static_ttf, FormatCode.WOFF)
        back = converter.convert(static_descriptor, woff, FormatCode.TTF)

        assert detect_format(woff) is FormatCode.WOFF
        assert detect_format(back) is FormatCode.TTF
        assert _table_bytes(back, RAW_TABLES) == _table_bytes(static_ttf, RAW_TABLES)

    def test_woff2_round_trip_keeps_outlines_and_metrics(
        self, converter, static_ttf, static_descriptor
    ):
        woff2 = converter.convert(static_descriptor, static_ttf, FormatCode.WOFF2)
        back = converter.convert(static_descriptor, woff2, FormatCode.TTF)

        assert detect_format(woff2) is FormatCode.WOFF2
        assert _outlines(back) == _outlines(static_ttf)
        assert _table_bytes(back, ("hmtx", "cmap")) == _table_bytes(static_ttf, ("hmtx", "cmap"))

    def test_woff2_without_glyf_transform(self, static_ttf, static_descriptor):
        converter = FormatConverter(ConverterConfig(woff2_transform_glyf=False))

        woff2 = converter.convert(static_descriptor, static_ttf, FormatCode.WOFF2)

        assert detect_format(woff2) is FormatCode.WOFF2
        assert _outlines(converter.convert(static_descriptor, woff2, "ttf")) == _outlines(
            static_ttf
        )

    def test_cff_woff_round_trip(self, converter, cff_otf):
        descriptor = extract(cff_otf)

        woff = converter.convert(descriptor, cff_otf, FormatCode.WOFF)
        back = converter.convert(descriptor, woff, FormatCode.OTF)

        assert detect_format(back) is FormatCode.OTF
        assert _table_bytes(back, ("CFF ", "hmtx", "cmap")) == _table_bytes(
            cff_otf, ("CFF ", "hmtx", "cmap")
        )

    def test_variable_font_keeps_fvar(self, converter, variable_ttf):
        descriptor = extract(variable_ttf)

        woff2 = converter.convert(descriptor, variable_ttf, "woff2")

        assert extract(woff2).axes == descriptor.axes

    def test_module_level_convert(self, static_ttf, static_descriptor):
        assert detect_format(convert(static_descriptor, static_ttf, "woff")) is FormatCode.WOFF


class TestUnsupportedPaths:
    def test_truetype_to_otf(self, converter, static_ttf, static_descriptor):
        with pytest.raises(UnsupportedConversionError) as exc_info:
            converter.convert(static_descriptor, static_ttf, FormatCode.OTF)
        assert exc_info.value.slot == "otf"

    @pytest.mark.parametrize("target", [FormatCode.TTF, FormatCode.EOT])
    def test_cff_to_truetype_containers(self, converter, cff_otf, target):
        with pytest.raises(UnsupportedConversionError):
            converter.convert(extract(cff_otf), cff_otf, target)

    def test_css_target(self, converter, static_ttf, static_descriptor):
        with pytest.raises(UnsupportedConversionError):
            converter.convert(static_descriptor, static_ttf, FormatCode.CSS)

    def test_svg_source(self, converter, static_ttf, static_descriptor):
        svg = converter.convert(static_descriptor, static_ttf, FormatCode.SVG)

        with pytest.raises(UnsupportedConversionError):
            converter.convert(static_descriptor, svg, FormatCode.TTF)

    def test_unrecognised_source(self, converter, static_descriptor):
        with pytest.raises(MalformedFontError):
            converter.convert(static_descriptor, b"definitely not a font", FormatCode.WOFF)


class TestCorruptTables:
    def test_missing_hmtx(self, converter, static_ttf, static_descriptor, table_editor):
        data = table_editor(static_ttf, drop=["hmtx"])

        with pytest.raises(CorruptTableError) as exc_info:
            converter.convert(static_descriptor, data, FormatCode.WOFF2)
        assert exc_info.value.tag == "hmtx"
        assert exc_info.value.slot == "woff2"

    def test_unparseable_cmap(self, converter, static_ttf, static_descriptor, table_editor):
        data = table_editor(static_ttf, replace={"cmap": b"\x00\x00"})

        with pytest.raises(CorruptTableError) as exc_info:
            converter.convert(static_descriptor, data, FormatCode.WOFF)
        assert exc_info.value.tag == "cmap"

    def test_no_outlines(self, converter, static_ttf, static_descriptor, table_editor):
        data = table_editor(static_ttf, drop=["glyf", "loca"])

        with pytest.raises(CorruptTableError):
            converter.convert(static_descriptor, data, FormatCode.WOFF)

    def test_write_failure_is_a_processing_error(self, converter, static_ttf, static_descriptor):
        with patch.object(TTFont, "save", side_effect=RuntimeError("disk on fire")):
            with pytest.raises(ProcessingError, match="disk on fire"):
                converter.convert(static_descriptor, static_ttf, FormatCode.WOFF)

    def test_cancellation(self, converter, static_ttf, static_descriptor):
        cancellation = CancellationEvent()
        cancellation.set()

        with pytest.raises(OperationCancelledError):
            converter.convert(static_descriptor, static_ttf, FormatCode.WOFF2, cancellation)


class TestConversionJob:
    def _job(self, data, descriptor, *targets):
        return ConversionJob(
            source_format=detect_format(data),
            source_bytes=data,
            target_formats=frozenset(targets),
            descriptor=descriptor,
        )

    def test_all_targets_succeed(self, static_woff2):
        descriptor = extract(static_woff2)
        job = self._job(static_woff2, descriptor, FormatCode.WOFF, FormatCode.TTF, FormatCode.EOT)

        report = run_conversion_job(job, max_workers=3)

        assert set(report.succeeded) == {FormatCode.WOFF, FormatCode.TTF, FormatCode.EOT}
        assert report.failed == {}
        assert detect_format(report.succeeded[FormatCode.EOT]) is FormatCode.EOT

    def test_failures_are_isolated(self, static_woff2):
        descriptor = extract(static_woff2)
        job = self._job(static_woff2, descriptor, FormatCode.OTF, FormatCode.TTF, FormatCode.SVG)

        report = run_conversion_job(job)

        assert set(report.succeeded) == {FormatCode.TTF, FormatCode.SVG}
        assert isinstance(report.failed[FormatCode.OTF], UnsupportedConversionError)
        assert not report.outcomes[FormatCode.OTF].ok

    def test_unexpected_errors_are_wrapped(self, static_woff2):
        descriptor = extract(static_woff2)
        converter = FormatConverter()
        job = self._job(static_woff2, descriptor, FormatCode.WOFF)

        with patch.object(converter, "convert", side_effect=KeyError("boom")):
            report = run_conversion_job(job, converter)

        assert isinstance(report.failed[FormatCode.WOFF], ProcessingError)

    def test_empty_job(self, static_woff2):
        job = self._job(static_woff2, extract(static_woff2))

        assert run_conversion_job(job).outcomes == {}

    def test_cancelled_job_raises(self, static_woff2):
        cancellation = CancellationEvent()
        cancellation.set()
        job = self._job(static_woff2, extract(static_woff2), FormatCode.WOFF, FormatCode.TTF)

        with pytest.raises(OperationCancelledError):
            run_conversion_job(job, cancellation=cancellation)
