"""Results command — show findings of an existing scan or a saved report."""

from __future__ import annotations

from pathlib import Path

import click

from cx_sdk.cli.context import config_option, fail, load_services
from cx_sdk.cli.scan import build_filters, filter_options, render_result, render_summary
from cx_sdk.domain.errors import CxError
from cx_sdk.engine.orchestrator import read_report_file
from cx_sdk.engine.service import report_policy


@click.command()
@config_option
@click.option(
    "--file",
    "report_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read a saved XML report instead of asking the platform.",
)
@click.option("--scan-id", type=int, default=None, help="Id of a finished scan.")
@click.option("--project", "project_name", default=None, help="Latest finished scan of a project.")
@click.option("--team", default=None, help="Team path owning the project, e.g. /CxServer/SP/Org.")
@click.option(
    "--summary",
    "summary_only",
    is_flag=True,
    default=False,
    help="Only print the platform's per-severity counts.",
)
@filter_options
def results(
    config_path: Path | None,
    report_file: Path | None,
    scan_id: int | None,
    project_name: str | None,
    team: str | None,
    summary_only: bool,
    severities: tuple[str, ...],
    categories: tuple[str, ...],
    cwes: tuple[str, ...],
    statuses: tuple[str, ...],
) -> None:
    """Print the findings of a finished scan, the latest scan of a project, or a report file."""
    filters = build_filters(severities, categories, cwes, statuses)

    if report_file is not None:
        try:
            result = read_report_file(report_file, filters)
        except FileNotFoundError:
            fail(f"Report file not found: {report_file}")
        except CxError as err:
            fail(f"Cannot read report: {err}")
        render_result(result)
        return

    services = load_services(config_path)
    try:
        if scan_id is not None:
            if summary_only:
                render_summary(services.orchestrator.get_scan_summary(scan_id))
                return
            result = services.orchestrator.fetch_result_for_scan(
                scan_id, filters, report_policy=report_policy(services.settings)
            )
        else:
            team_path = team or services.settings.team
            if not project_name or not team_path:
                fail("Provide --file, --scan-id, or --project with --team (or 'team' in config).")
            if summary_only:
                render_summary(services.latest_scan_summary(team_path, project_name))
                return
            result = services.latest_scan_results(team_path, project_name, filters)
    except CxError as err:
        fail(f"Cannot get results: {err}")

    render_result(result)
