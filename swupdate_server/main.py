#!/usr/bin/env python3
"""
SWUpdate image server command line
Starts the HTTP server, or checks the images directory with --check.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import uvicorn
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from swupdate_server.api import create_app
from swupdate_server.config import ConfigError, ConfigManager, ServerSettings
from swupdate_server.models.catalog import CatalogScanError, ImageCatalog
from swupdate_server.store import CatalogMode

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFLICTS = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swupdate-server",
        description="Minimal HTTP server that provides update images for SWUpdate clients.",
    )
    parser.add_argument("--images-directory", "--images_directory", dest="images_directory", type=Path,
                        help="Directory where the update images are placed")
    parser.add_argument("--listen-ip", "--listen_ip", dest="listen_ip",
                        help="Interface to listen on (default 0.0.0.0)")
    parser.add_argument("--listen-port", "--listen_port", dest="listen_port", type=int,
                        help="Port to listen on (default 8080)")
    parser.add_argument("--filename-fields-separator", "--filename_fields_separator",
                        dest="filename_fields_separator",
                        help="Separator between the fields of an image filename (default _)")
    parser.add_argument("--filename-field-image-identifier", "--filename_field_image_identifier",
                        dest="filename_field_image_identifier", type=int,
                        help="Zero-based index of the image identifier field (default 0)")
    parser.add_argument("--filename-field-device-type", "--filename_field_device_type",
                        dest="filename_field_device_type", type=int,
                        help="Zero-based index of the device type field (default 1)")
    parser.add_argument("--filename-field-version", "--filename_field_version",
                        dest="filename_field_version", type=int,
                        help="Zero-based index of the version field (default 2)")
    parser.add_argument("--catalog-mode", "--catalog_mode", dest="catalog_mode",
                        choices=[mode.value for mode in CatalogMode],
                        help="Rescan the directory per request, or cache the catalog (default rescan)")
    parser.add_argument("--config", type=Path, help="YAML file with server settings")
    parser.add_argument("--log-config", "--log_config", dest="log_config", type=Path,
                        help="YAML logging configuration (default config/logging.yaml)")
    parser.add_argument("--check", action="store_true",
                        help="Print the image catalog and exit, with status 1 if it has conflicts")
    return parser


def settings_from_args(args: argparse.Namespace) -> ServerSettings:
    overrides: Dict[str, object] = {
        key: value for key, value in vars(args).items()
        if key not in ("config", "check")
    }
    return ConfigManager.load_config(args.config, overrides)


def show_catalog(catalog: ImageCatalog) -> int:
    """Rich table of the catalog; returns the exit status for --check."""
    conflicts = catalog.conflicts()
    conflicting = {entry.file_reference for entries in conflicts.values() for entry in entries}

    table = Table(title="📦 Update Images", show_header=True, header_style="bold cyan")
    table.add_column("Image", style="cyan")
    table.add_column("Device", style="magenta")
    table.add_column("Version", style="green")
    table.add_column("File", style="yellow")

    for entry in catalog:
        file_style = "bold red" if entry.file_reference in conflicting else "yellow"
        table.add_row(entry.image_id, entry.device_type, entry.version,
                      f"[{file_style}]{entry.file_reference}[/]")

    console.print(table)

    if not conflicts:
        console.print(f"[bold green]✅ {len(catalog)} images, no conflicts[/bold green]")
        return EXIT_OK

    lines: List[str] = []
    for (image_id, device_type), entries in conflicts.items():
        files = ", ".join(entry.file_reference for entry in entries)
        lines.append(f"[bold]{image_id}/{device_type}[/bold]: {files}")
    console.print(Panel("\n".join(lines), title="❌ Conflicts", border_style="red"))
    return EXIT_CONFLICTS


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ConfigError as e:
        console.print(f"[bold red]❌ Invalid configuration:[/bold red] {e}")
        return EXIT_CONFIG_ERROR

    ConfigManager.setup_logging(settings.log_config)

    try:
        if args.check:
            return show_catalog(ImageCatalog.scan(settings.images_directory, settings.layout))
        app = create_app(settings)
    except CatalogScanError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        return EXIT_CONFIG_ERROR

    logger.info(f"Listening on {settings.listen_ip}:{settings.listen_port} ({settings.catalog_mode.value} catalog)")
    uvicorn.run(app, host=settings.listen_ip, port=settings.listen_port, log_config=None)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
