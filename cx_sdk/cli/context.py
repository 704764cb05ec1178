"""Shared CLI plumbing: option for the config file, service construction, errors."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console

from cx_sdk.config.settings import load_settings
from cx_sdk.engine.service import CxServices, build_services

console = Console()
err_console = Console(stderr=True)

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to a YAML config file (default ~/.cx_sdk/config.yml).",
)


def load_services(config_path: Path | None) -> CxServices:
    """Build services from config, exiting with a message when config is unusable."""
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ValueError) as err:
        fail(str(err))
    return build_services(settings)


def fail(message: str) -> NoReturn:
    err_console.print(f"[red]{message}[/red]")
    raise SystemExit(1)
