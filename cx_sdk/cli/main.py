"""CLI entry point for cx-sdk."""

import logging

import click
from rich.logging import RichHandler

from cx_sdk.cli.context import err_console
from cx_sdk.cli.login import login
from cx_sdk.cli.results import results
from cx_sdk.cli.scan import scan
from cx_sdk.cli.teams import teams


@click.group()
@click.version_option(package_name="cx-sdk")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Drive scans and administration on a remote SAST platform."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
    )


cli.add_command(login)
cli.add_command(results)
cli.add_command(scan)
cli.add_command(teams)
