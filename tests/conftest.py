"""
Pytest configuration and fixtures for font asset tests.

Fonts are built on the fly with fontTools' FontBuilder so every test runs
against real, parseable binaries.
"""

from io import BytesIO

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.t2CharStringPen import T2CharStringPen
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.ttLib import TTFont
from fontTools.ttLib.tables.DefaultTable import DefaultTable

from src.fontasset.assets.reconciler import FontAssetReconciler, create_asset
from src.fontasset.core.config import (
    AppConfig,
    ConverterConfig,
    LoggingConfig,
    PipelineConfig,
    StylesheetConfig,
)
from src.fontasset.storage.memory import InMemoryBlobStore, InMemoryDocumentStore

GLYPH_ORDER = [".notdef", "space", "A", "B"]
CHARACTER_MAP = {0x20: "space", 0x41: "A", 0x42: "B"}
ADVANCES = {".notdef": 600, "space": 250, "A": 600, "B": 600}

WEIGHT_AND_WIDTH_AXES = [
    ("wght", 100, 400, 900, "Weight"),
    ("wdth", 75, 100, 125, "Width"),
]


def _draw_box(pen):
    pen.moveTo((100, 0))
    pen.lineTo((100, 700))
    pen.lineTo((500, 700))
    pen.lineTo((500, 0))
    pen.closePath()


def build_font(
    family="Acme Sans",
    style="Regular",
    weight=400,
    fs_selection=0x40,
    version="Version 1.001",
    axes=None,
    cff=False,
    typographic_family=None,
    typographic_subfamily=None,
):
    """Build a small four-glyph font and return its sfnt bytes."""
    builder = FontBuilder(1000, isTTF=not cff)
    builder.setupGlyphOrder(GLYPH_ORDER)
    builder.setupCharacterMap(CHARACTER_MAP)

    ps_name = f"{family}-{style}".replace(" ", "")
    if cff:
        charstrings = {}
        for name in GLYPH_ORDER:
            pen = T2CharStringPen(ADVANCES[name], None)
            if name != "space":
                _draw_box(pen)
            charstrings[name] = pen.getCharString()
        builder.setupCFF(ps_name, {"FullName": f"{family} {style}"}, charstrings, {})
    else:
        glyphs = {}
        for name in GLYPH_ORDER:
            pen = TTGlyphPen(None)
            if name != "space":
                _draw_box(pen)
            glyphs[name] = pen.glyph()
        builder.setupGlyf(glyphs)

    builder.setupHorizontalMetrics(
        {name: (ADVANCES[name], 0 if name == "space" else 100) for name in GLYPH_ORDER}
    )
    builder.setupHorizontalHeader(ascent=800, descent=-200)

    names = {
        "familyName": family,
        "styleName": style,
        "uniqueFontIdentifier": ps_name,
        "fullName": f"{family} {style}",
        "psName": ps_name,
    }
    if version:
        names["version"] = version
    if typographic_family:
        names["typographicFamily"] = typographic_family
    if typographic_subfamily:
        names["typographicSubfamily"] = typographic_subfamily
    builder.setupNameTable(names)

    builder.setupOS2(
        version=4,
        usWeightClass=weight,
        fsSelection=fs_selection,
        sTypoAscender=800,
        sTypoDescender=-200,
        usWinAscent=800,
        usWinDescent=200,
        sxHeight=500,
        sCapHeight=700,
    )
    if axes:
        builder.setupFvar(axes, [])
    builder.setupPost()

    buffer = BytesIO()
    builder.save(buffer)
    return buffer.getvalue()


def to_flavor(data, flavor):
    """Re-wrap sfnt bytes as woff or woff2 with fontTools."""
    font = TTFont(BytesIO(data))
    font.flavor = flavor
    buffer = BytesIO()
    font.save(buffer)
    return buffer.getvalue()


def edit_tables(data, drop=(), replace=None):
    """Return font bytes with tables dropped or swapped for raw bytes."""
    font = TTFont(BytesIO(data))
    for tag in drop:
        del font[tag]
    for tag, raw in (replace or {}).items():
        table = DefaultTable(tag)
        table.data = raw
        font[tag] = table
    buffer = BytesIO()
    font.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def font_factory():
    """Builder function for custom test fonts."""
    return build_font


@pytest.fixture
def flavor():
    """Function converting sfnt bytes into woff/woff2."""
    return to_flavor


@pytest.fixture
def table_editor():
    """Function dropping or replacing raw tables of a font."""
    return edit_tables


@pytest.fixture(scope="session")
def static_ttf():
    """Acme Sans Regular, weight 400, TrueType outlines."""
    return build_font()


@pytest.fixture(scope="session")
def italic_ttf():
    """Acme Sans Bold Italic, weight 700."""
    return build_font(style="Bold Italic", weight=700, fs_selection=0x01)


@pytest.fixture(scope="session")
def variable_ttf():
    """Acme Flex with wght 100-900 and wdth 75-125 axes."""
    return build_font(family="Acme Flex", axes=WEIGHT_AND_WIDTH_AXES)


@pytest.fixture(scope="session")
def cff_otf():
    """Acme Sans Regular with CFF outlines."""
    return build_font(cff=True)


@pytest.fixture(scope="session")
def static_woff2(static_ttf):
    return to_flavor(static_ttf, "woff2")


@pytest.fixture(scope="session")
def static_woff(static_ttf):
    return to_flavor(static_ttf, "woff")


@pytest.fixture(scope="session")
def variable_woff2(variable_ttf):
    return to_flavor(variable_ttf, "woff2")


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def app_config(tmp_path):
    """In-memory application configuration with default pipeline settings."""
    return AppConfig(
        storage_backend="memory",
        storage_dir=tmp_path / "store",
        converter=ConverterConfig(),
        stylesheet=StylesheetConfig(),
        pipeline=PipelineConfig(),
        logging=LoggingConfig(),
    )


@pytest.fixture
def font_asset(document_store):
    """An empty asset titled "Acme Sans" with slug "acme-sans"."""
    return create_asset(document_store, "font-1", "Acme Sans", slug="acme-sans")


@pytest.fixture
def reconciler(font_asset, blob_store, document_store, app_config):
    return FontAssetReconciler(font_asset.id, blob_store, document_store, app_config)


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        if "slow" in item.nodeid or item.get_closest_marker("slow"):
            item.add_marker(pytest.mark.slow)

        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
