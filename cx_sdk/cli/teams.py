"""Teams commands — list, create and delete teams."""

from __future__ import annotations

from pathlib import Path

import click
from rich.table import Table

from cx_sdk.cli.context import config_option, console, fail, load_services
from cx_sdk.domain.errors import CxError


@click.group()
def teams() -> None:
    """Manage teams on the platform."""


@teams.command("list")
@config_option
def list_cmd(config_path: Path | None) -> None:
    """Show all teams."""
    services = load_services(config_path)
    try:
        all_teams = services.teams.get_teams()
    except CxError as err:
        fail(f"Could not list teams: {err}")

    if not all_teams:
        console.print("[yellow]No teams found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Id", style="dim")
    table.add_column("Full name", min_width=30)
    table.add_column("Parent", style="dim")
    for team in sorted(all_teams, key=lambda t: t.full_name):
        table.add_row(team.id, team.full_name, team.parent_id or "")
    console.print(table)


@teams.command("create")
@config_option
@click.argument("name")
@click.option("--parent", "parent_path", required=True, help="Full path of the parent team.")
@click.option("--legacy", is_flag=True, default=False, help="Use the legacy SOAP service.")
def create_cmd(config_path: Path | None, name: str, parent_path: str, legacy: bool) -> None:
    """Create team NAME under the --parent team."""
    services = load_services(config_path)
    try:
        parent_id = services.teams.get_team_id(parent_path)
        if parent_id is None:
            fail(f"Parent team not found: {parent_path}")
        if legacy:
            team_id = services.teams.create_team_ws(parent_id, name)
        else:
            team_id = services.teams.create_team(parent_id, name)
    except CxError as err:
        fail(f"Could not create team: {err}")
    console.print(f"[green]Created team[/green] {parent_path.rstrip('/')}/{name} (id {team_id})")


@teams.command("delete")
@config_option
@click.argument("team_path")
@click.option("--legacy", is_flag=True, default=False, help="Use the legacy SOAP service.")
def delete_cmd(config_path: Path | None, team_path: str, legacy: bool) -> None:
    """Delete the team at TEAM_PATH."""
    services = load_services(config_path)
    try:
        team_id = services.teams.get_team_id(team_path)
        if team_id is None:
            fail(f"Team not found: {team_path}")
        if legacy:
            services.teams.delete_team_ws(team_id)
        else:
            services.teams.delete_team(team_id)
    except CxError as err:
        fail(f"Could not delete team: {err}")
    console.print(f"[green]Deleted team[/green] {team_path}")
