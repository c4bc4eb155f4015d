#!/usr/bin/env python3
"""
Main CLI for the Font Asset Pipeline
====================================

Commands to inspect and convert fonts locally, build a web-font kit, and
drive font asset documents against the configured store.
"""

import json
import logging
import sys
from pathlib import Path

import click

from src.fontasset.assets.model import FormatSlot
from src.fontasset.assets.reconciler import FontAssetReconciler, create_asset
from src.fontasset.core.config import AppConfig, LoggingConfig
from src.fontasset.core.exceptions import FontAssetError
from src.fontasset.core.models import FontStyle, FormatCode
from src.fontasset.css.generator import generate, relative_url_resolver
from src.fontasset.fonts.converter import ConversionJob, FormatConverter, run_conversion_job
from src.fontasset.fonts.extractor import extract
from src.fontasset.fonts.formats import FONT_FORMATS, parse_format_code, spec_for
from src.fontasset.fonts.utils import detect_format
from src.fontasset.storage import create_stores

logger = logging.getLogger(__name__)

FORMAT_CHOICE = click.Choice([code.value for code in FONT_FORMATS], case_sensitive=False)


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure root logging from :class:`LoggingConfig`."""
    logging.basicConfig(level=config.level, format=config.format, force=True)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def _fail(message: str, error: Exception) -> None:
    logger.error(f"{message}: {error}")
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to App configuration YAML file",
)
@click.option(
    "--store-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Override the local store directory",
)
@click.pass_context
def cli(ctx, verbose, config, store_dir):
    """Font asset conversion and stylesheet pipeline."""
    try:
        app_config = AppConfig.from_env_and_yaml(yaml_path=config) if config else AppConfig()
    except FontAssetError as e:
        _fail("Configuration failed", e)
    if store_dir:
        app_config.storage_dir = store_dir
    setup_logging(app_config.logging, verbose)
    ctx.obj = app_config


@cli.command(name="inspect")
@click.argument("font", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect_font(font):
    """Print the metadata of a font file as JSON."""
    try:
        descriptor = extract(font.read_bytes())
    except FontAssetError as e:
        _fail(f"Cannot inspect {font}", e)
    click.echo(json.dumps(descriptor.to_metadata(), indent=2))


@cli.command(name="convert")
@click.argument("font", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--to", "target", type=FORMAT_CHOICE, required=True, help="Target format")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: input name with the target extension)",
)
@click.pass_obj
def convert_font(config, font, target, output):
    """Convert a font file to another container."""
    target = parse_format_code(target)
    output = output or font.with_suffix(spec_for(target).extension)
    try:
        data = font.read_bytes()
        descriptor = extract(data)
        converted = FormatConverter(config.converter).convert(descriptor, data, target)
    except FontAssetError as e:
        _fail(f"Cannot convert {font}", e)
    output.write_bytes(converted)
    logger.info(f"Wrote {output} ({len(converted)} bytes)")
    click.echo(str(output))


@cli.command(name="build")
@click.argument("font", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Directory for the generated kit",
)
@click.option("--family", help="font-family name (default: embedded family name)")
@click.option(
    "--format",
    "-f",
    "formats",
    type=FORMAT_CHOICE,
    multiple=True,
    help="Formats to generate (default: woff2, woff, ttf)",
)
@click.option("--legacy", is_flag=True, help="Reference eot, otf and svg in the stylesheet")
@click.option("--url-prefix", default="", help="Prefix for src URLs in the stylesheet")
@click.pass_obj
def build_kit(config, font, output_dir, family, formats, legacy, url_prefix):
    """Convert a font into a web-font kit with an @font-face stylesheet."""
    targets = {parse_format_code(f) for f in formats} or {
        FormatCode.WOFF2,
        FormatCode.WOFF,
        FormatCode.TTF,
    }
    targets.add(FormatCode.WOFF2)
    try:
        data = font.read_bytes()
        descriptor = extract(data)
        source_format = detect_format(data)
        job = ConversionJob(
            source_format=source_format,
            source_bytes=data,
            target_formats=frozenset(targets),
            descriptor=descriptor,
        )
        report = run_conversion_job(
            job, FormatConverter(config.converter), config.pipeline.max_workers
        )
    except FontAssetError as e:
        _fail(f"Cannot build a kit from {font}", e)

    for target, error in sorted(report.failed.items()):
        logger.warning(f"Skipped {target}: {error}")
        click.echo(f"Skipped {target}: {error}", err=True)

    output_dir.mkdir(parents=True, exist_ok=True)
    slots = {}
    for target, payload in sorted(report.succeeded.items()):
        path = output_dir / f"{font.stem}{spec_for(target).extension}"
        path.write_bytes(payload)
        slots[target] = FormatSlot.occupied(path.name, path.name)
        click.echo(str(path))

    options = config.stylesheet.model_copy(update={"include_legacy_formats": legacy})
    try:
        css = generate(
            descriptor,
            slots,
            family or descriptor.family,
            relative_url_resolver(url_prefix),
            options,
            svg_fragment=config.converter.svg_font_id,
        )
    except FontAssetError as e:
        _fail("Cannot generate the stylesheet", e)
    css_path = output_dir / f"{font.stem}.css"
    css_path.write_text(css, encoding="utf-8")
    click.echo(str(css_path))


@cli.group()
def asset():
    """Manage font asset documents in the configured store."""


def _reconciler(config: AppConfig, asset_id: str) -> FontAssetReconciler:
    blob_store, document_store = create_stores(config)
    return FontAssetReconciler(asset_id, blob_store, document_store, config)


def _echo_asset(font_asset) -> None:
    click.echo(json.dumps(font_asset.to_document(), indent=2, sort_keys=True))


@asset.command(name="create")
@click.argument("asset_id")
@click.option("--title", required=True, help="Display name used as font-family")
@click.option("--slug", help="File name stem for uploads")
@click.option("--weight", type=click.IntRange(1, 1000), help="Weight override for static fonts")
@click.option(
    "--style", type=click.Choice([s.value for s in FontStyle]), help="Style override"
)
@click.pass_obj
def asset_create(config, asset_id, title, slug, weight, style):
    """Create an empty font asset."""
    _, document_store = create_stores(config)
    try:
        font_asset = create_asset(
            document_store,
            asset_id,
            title,
            slug=slug,
            weight=weight,
            style=FontStyle(style) if style else None,
        )
    except FontAssetError as e:
        _fail(f"Cannot create {asset_id}", e)
    _echo_asset(font_asset)


@asset.command(name="show")
@click.argument("asset_id")
@click.pass_obj
def asset_show(config, asset_id):
    """Print a font asset document."""
    try:
        font_asset = _reconciler(config, asset_id).load()
    except FontAssetError as e:
        _fail(f"Cannot load {asset_id}", e)
    _echo_asset(font_asset)


@asset.command(name="upload")
@click.argument("asset_id")
@click.argument("code", type=FORMAT_CHOICE)
@click.argument("font", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--generate",
    "-g",
    "generate_formats",
    type=FORMAT_CHOICE,
    multiple=True,
    help="Formats to derive from a woff2 upload (default: pipeline setting)",
)
@click.pass_obj
def asset_upload(config, asset_id, code, font, generate_formats):
    """Upload a font file into a slot."""
    try:
        result = _reconciler(config, asset_id).upload_format(
            code,
            font.read_bytes(),
            font.name,
            generate=list(generate_formats) if generate_formats else None,
        )
    except FontAssetError as e:
        _fail(f"Upload to {code} failed", e)

    click.echo(f"{result.slot}: {result.object_id}")
    for derived in result.derived:
        click.echo(f"{derived}: {result.asset.slot(derived).object_id}")
    if result.css_object_id:
        click.echo(f"css: {result.css_object_id}")
    for slot, error in sorted(result.derived_errors.items()):
        click.echo(f"Warning: {slot} not derived: {error.message}", err=True)
    if result.extract_error:
        click.echo(f"Warning: {result.extract_error.message}", err=True)
    if result.css_error:
        click.echo(f"Warning: {result.css_error.message}", err=True)
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


@asset.command(name="delete")
@click.argument("asset_id")
@click.argument("code", type=click.Choice([c.value for c in FormatCode], case_sensitive=False))
@click.pass_obj
def asset_delete(config, asset_id, code):
    """Empty a slot and delete its backing file."""
    try:
        result = _reconciler(config, asset_id).delete_format(code)
    except FontAssetError as e:
        _fail(f"Delete of {code} failed", e)
    click.echo(f"{result.slot}: empty")
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


@asset.command(name="regenerate-css")
@click.argument("asset_id")
@click.option("--family", help="font-family name (default: asset title)")
@click.pass_obj
def asset_regenerate_css(config, asset_id, family):
    """Regenerate the stylesheet of a font asset."""
    try:
        result = _reconciler(config, asset_id).regenerate_css(family)
    except FontAssetError as e:
        _fail("Stylesheet generation failed", e)
    click.echo(result.css, nl=False)
    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


if __name__ == "__main__":
    cli()
