"""mediavault command line interface.

Commands print JSON to stdout so they can be scripted; failures print the
error's JSON body and exit with a non-zero code.
"""

from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any, NoReturn

import click
from dotenv import load_dotenv
from loguru import logger
from PIL import features
from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from mediavault.cli.console import get_console
from mediavault.cli.logging_config import print_version, setup_logging
from mediavault.config import ConfigManager, EnvVarNotFoundError, MediavaultConfig
from mediavault.constants import TEMP_CATEGORY
from mediavault.converter.pdf import PdfConverter
from mediavault.exceptions import ConfigurationError, ConversionFailed, MediavaultError
from mediavault.security import atomic_write_bytes, sanitize_error_message
from mediavault.storage import StoragePromoter
from mediavault.upload import UploadOptions, UploadStaging

# Load .env before any config is read
load_dotenv()


def _echo_json(data: Any) -> None:
    # click.echo keeps raw JSON free of Rich markup
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _fail(error: MediavaultError) -> NoReturn:
    logger.debug(f"{type(error).__name__}: {error.message}")
    _echo_json(error.to_dict())
    raise SystemExit(1)


def _get_config(ctx: click.Context) -> MediavaultConfig:
    return ctx.obj["config"]


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option(
    "--public-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Override the public root directory.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show log output on stderr.")
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.pass_context
def app(
    ctx: click.Context,
    config_path: Path | None,
    public_root: Path | None,
    verbose: bool,
) -> None:
    """Stage uploads, promote them to permanent storage and convert documents."""
    ctx.ensure_object(dict)

    manager = ConfigManager()
    try:
        cfg = manager.load(config_path=config_path)
        if public_root is not None:
            cfg.storage.public_root = str(public_root)
        # env: references must resolve before any command runs
        cfg.storage.get_public_root()
    except (EnvVarNotFoundError, ValidationError, json.JSONDecodeError, OSError) as e:
        _fail(ConfigurationError(f"Invalid configuration: {sanitize_error_message(e)}"))

    setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
        quiet=not verbose,
    )
    if manager.config_path:
        logger.debug(f"Loaded configuration from {manager.config_path}")

    ctx.obj["config"] = cfg
    ctx.obj["config_path"] = manager.config_path


@app.command("stage")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mime", "mime_type", default=None, help="Declared MIME type.")
@click.option("--actor", default=None, help="Uploading user identifier.")
@click.option("--quality", default=None, help="Image quality (25-100).")
@click.option(
    "--webp/--no-webp",
    default=None,
    help="Re-encode raster images as WebP (default from config).",
)
@click.option(
    "--formats", default=None, help="Comma separated allowed formats, e.g. jpg,png."
)
@click.option(
    "--profile",
    default=TEMP_CATEGORY,
    show_default=True,
    help="Upload profile (size limit and allowed families).",
)
@click.pass_context
def stage(
    ctx: click.Context,
    file: Path,
    mime_type: str | None,
    actor: str | None,
    quality: str | None,
    webp: bool | None,
    formats: str | None,
    profile: str,
) -> None:
    """Stage FILE into the temp upload area."""
    cfg = _get_config(ctx)
    declared_mime = mime_type or mimetypes.guess_type(file.name)[0] or ""
    if webp is None:
        webp = cfg.upload.webp
    options = UploadOptions.from_query(
        quality=quality or str(cfg.upload.quality),
        webp="true" if webp else "false",
        formats=formats,
    )
    try:
        staging = UploadStaging.from_config(cfg, profile=profile)
        descriptor = staging.stage(
            actor, file.read_bytes(), declared_mime, file.name, options
        )
    except MediavaultError as e:
        _fail(e)
    _echo_json(descriptor.to_dict())


@app.command("promote")
@click.argument("category")
@click.argument("paths", nargs=-1, required=True)
@click.option(
    "--existing",
    multiple=True,
    help="Previously stored path of the entity (repeatable).",
)
@click.option(
    "--discard-obsolete",
    is_flag=True,
    help="Delete previously stored files that are no longer referenced.",
)
@click.pass_context
def promote(
    ctx: click.Context,
    category: str,
    paths: tuple[str, ...],
    existing: tuple[str, ...],
    discard_obsolete: bool,
) -> None:
    """Promote staged PATHS into CATEGORY."""
    promoter = StoragePromoter.from_config(_get_config(ctx))
    try:
        change = promoter.reconcile(category, list(paths), existing)
        removed = 0
        if discard_obsolete:
            removed = promoter.discard(category, change.obsolete)
    except MediavaultError as e:
        _fail(e)
    _echo_json(
        {
            "paths": change.paths,
            "created": change.created,
            "obsolete": change.obsolete,
            "discarded": removed,
        }
    )


@app.command("convert")
@click.argument("docx", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output PDF path (default: next to the input).",
)
@click.option("--name", "base_name", default=None, help="Document title.")
@click.option("--timeout", type=float, default=None, help="Timeout in seconds.")
@click.pass_context
def convert(
    ctx: click.Context,
    docx: Path,
    output: Path | None,
    base_name: str | None,
    timeout: float | None,
) -> None:
    """Convert a DOCX file to PDF."""
    converter = PdfConverter.from_config(_get_config(ctx))
    output = output or docx.with_suffix(".pdf")
    try:
        pdf = converter.convert(docx.read_bytes(), base_name or docx.stem, timeout)
    except MediavaultError as e:
        _fail(e)
    try:
        atomic_write_bytes(output, pdf)
    except OSError as e:
        _fail(
            ConversionFailed(
                base_name or docx.stem,
                f"could not write PDF: {sanitize_error_message(e)}",
                e,
            )
        )
    _echo_json({"output": str(output), "size": len(pdf)})


def _collect_checks(cfg: MediavaultConfig) -> dict[str, dict[str, str]]:
    results: dict[str, dict[str, str]] = {}

    binary = PdfConverter.from_config(cfg).resolve_binary()
    results["libreoffice"] = {
        "name": "LibreOffice",
        "description": "DOCX to PDF conversion",
        "status": "ok" if binary else "missing",
        "message": binary or "soffice not found",
        "install_hint": "Install LibreOffice or set converter.binary",
    }

    webp = features.check("webp")
    results["webp"] = {
        "name": "Pillow WebP",
        "description": "Image transcoding",
        "status": "ok" if webp else "missing",
        "message": "WebP codec available" if webp else "Pillow built without WebP",
        "install_hint": "Reinstall Pillow with libwebp support",
    }

    root = cfg.storage.get_public_root()
    if root.is_dir():
        status, message = "ok", str(root)
    else:
        status, message = "warning", f"{root} does not exist yet"
    results["public-root"] = {
        "name": "Public root",
        "description": "Upload storage directory",
        "status": status,
        "message": message,
        "install_hint": "Create the directory or set storage.public_root",
    }
    return results


@app.command("doctor")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def doctor(ctx: click.Context, as_json: bool) -> None:
    """Check the converter binary, WebP support and storage directory."""
    results = _collect_checks(_get_config(ctx))

    if as_json:
        _echo_json(results)
        return

    console = get_console()
    table = Table(title="mediavault doctor")
    table.add_column("Component", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Description")
    table.add_column("Details")

    status_icons = {
        "ok": "[green]✓[/green]",
        "warning": "[yellow]⚠[/yellow]",
        "missing": "[red]✗[/red]",
    }
    for info in results.values():
        table.add_row(
            info["name"],
            status_icons.get(info["status"], "?"),
            info["description"],
            info["message"],
        )
    console.print(table)

    hints = [
        (info["name"], info["install_hint"])
        for info in results.values()
        if info["status"] == "missing"
    ]
    if hints:
        hint_text = "\n".join(f"  * {name}: {hint}" for name, hint in hints)
        console.print(
            Panel(
                f"[yellow]To fix missing components:[/yellow]\n{hint_text}",
                title="Hints",
                border_style="yellow",
            )
        )


if __name__ == "__main__":
    app()
