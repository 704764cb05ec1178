"""Login command — verify credentials against both transports."""

from __future__ import annotations

from pathlib import Path

import click

from cx_sdk.cli.context import config_option, console, fail, load_services
from cx_sdk.domain.errors import CxError


@click.command()
@config_option
@click.option(
    "--legacy",
    is_flag=True,
    default=False,
    help="Also open a session on the legacy SOAP service.",
)
def login(config_path: Path | None, legacy: bool) -> None:
    """Obtain an access token (and optionally a legacy session)."""
    services = load_services(config_path)
    settings = services.settings

    try:
        credential = services.auth.ensure_valid()
        console.print(
            f"[green]Token obtained[/green] for {settings.username} — "
            f"renews after {credential.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}"
        )
        if legacy:
            services.legacy.login(settings.username, settings.password)
            console.print("[green]Legacy session established[/green]")
    except CxError as err:
        fail(f"Login failed: {err}")
