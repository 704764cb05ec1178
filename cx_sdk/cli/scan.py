"""Scan command — run a scan to completion and display filtered findings."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import click
from rich.table import Table

from cx_sdk.cli.context import config_option, console, fail, load_services
from cx_sdk.domain.errors import CxError
from cx_sdk.domain.models import (
    Filter,
    FilterType,
    ScanRequest,
    ScanResult,
    ScanSummary,
    Severity,
)
from cx_sdk.engine.polling import CancelToken, PollPolicy
from cx_sdk.engine.service import CxServices, report_policy, scan_policy

_SEVERITY_COLORS = {"info": "dim", "low": "cyan", "medium": "yellow", "high": "bold red"}

_FILTER_OPTIONS = (
    click.option(
        "--severity",
        "severities",
        multiple=True,
        type=click.Choice([s.value for s in Severity], case_sensitive=False),
        help="Only keep findings of this severity (repeatable).",
    ),
    click.option("--category", "categories", multiple=True, help="Only keep this query/category."),
    click.option("--cwe", "cwes", multiple=True, help="Only keep this CWE id (repeatable)."),
    click.option("--status", "statuses", multiple=True, help="Only keep New / Recurrent findings."),
)


def filter_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Add --severity, --category, --cwe and --status to a command."""
    for option in reversed(_FILTER_OPTIONS):
        command = option(command)
    return command


def build_filters(
    severities: tuple[str, ...],
    categories: tuple[str, ...],
    cwes: tuple[str, ...],
    statuses: tuple[str, ...],
) -> list[Filter]:
    return (
        [Filter(FilterType.SEVERITY, v) for v in severities]
        + [Filter(FilterType.CATEGORY, v) for v in categories]
        + [Filter(FilterType.CWE, v) for v in cwes]
        + [Filter(FilterType.STATUS, v) for v in statuses]
    )


@click.command()
@config_option
@click.option("--project-id", type=int, default=None, help="Id of the project to scan.")
@click.option("--project", "project_name", default=None, help="Project name (created if missing).")
@click.option("--team", default=None, help="Team path owning the project, e.g. /CxServer/SP/Org.")
@click.option("--preset-id", type=int, default=None, help="Id of the rule preset.")
@click.option("--preset", default="Checkmarx Default", show_default=True, help="Preset name.")
@click.option("--engine-config-id", type=int, default=None, help="Id of the engine configuration.")
@click.option(
    "--engine-config",
    default="Default Configuration",
    show_default=True,
    help="Engine configuration name.",
)
@click.option("--source", default=None, help="Git URL or path to a zip of the sources.")
@click.option("--branch", default=None, help="Git branch to scan.")
@click.option("--comment", default="", help="Comment stored with the scan.")
@click.option("--incremental", is_flag=True, default=False, help="Request an incremental scan.")
@filter_options
@click.option("--scan-timeout", type=click.FloatRange(min=1), default=None, help="Seconds.")
@click.option("--report-timeout", type=click.FloatRange(min=1), default=None, help="Seconds.")
def scan(
    config_path: Path | None,
    project_id: int | None,
    project_name: str | None,
    team: str | None,
    preset_id: int | None,
    preset: str,
    engine_config_id: int | None,
    engine_config: str,
    source: str | None,
    branch: str | None,
    comment: str,
    incremental: bool,
    severities: tuple[str, ...],
    categories: tuple[str, ...],
    cwes: tuple[str, ...],
    statuses: tuple[str, ...],
    scan_timeout: float | None,
    report_timeout: float | None,
) -> None:
    """Launch a scan, wait for it and its report, and print the findings."""
    services = load_services(config_path)
    filters = build_filters(severities, categories, cwes, statuses)

    cancel = CancelToken()
    try:
        request = ScanRequest(
            project_id=project_id or _resolve_project(services, project_name, team),
            preset_id=preset_id or services.projects.get_preset_id(preset),
            engine_config_id=(
                engine_config_id or services.projects.get_engine_config_id(engine_config)
            ),
            comment=comment,
            source_locator=source,
            branch=branch,
            incremental=incremental,
        )
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(
                services.orchestrator.run_scan_and_report,
                request,
                filters,
                scan_policy=_with_timeout(scan_policy(services.settings), scan_timeout),
                report_policy=_with_timeout(report_policy(services.settings), report_timeout),
                cancel=cancel,
            )
            try:
                result = future.result()
            except KeyboardInterrupt:
                cancel.cancel()
                fail("Cancelled; no further polling will be done.")
    except CxError as err:
        fail(f"Scan failed: {err}")

    render_result(result)


def _resolve_project(services: CxServices, name: str | None, team: str | None) -> int:
    team_path = team or services.settings.team
    if not name or not team_path:
        fail("Provide --project-id, or --project together with --team (or 'team' in config).")
    team_id = services.teams.get_team_id(team_path)
    if team_id is None:
        fail(f"Team not found: {team_path}")
    return services.projects.ensure_project(team_id, name)


def _with_timeout(policy: PollPolicy, timeout: float | None) -> PollPolicy:
    if timeout is None:
        return policy
    return PollPolicy(
        interval=min(policy.interval, timeout),
        timeout=timeout,
        backoff=policy.backoff,
        max_interval=policy.max_interval,
        retries=policy.retries,
        retry_delay=policy.retry_delay,
    )


def render_summary(summary: ScanSummary) -> None:
    counts = ", ".join(
        f"{summary.by_severity.get(sev, 0)} {sev.value}" for sev in sorted(Severity, reverse=True)
    )
    console.print(
        f"\n[bold]Scan {summary.scan_id or '?'}[/bold] "
        f"[dim]project={summary.project_name or '?'}[/dim] — "
        f"{summary.total} finding(s): {counts}\n"
    )


def render_result(result: ScanResult) -> None:
    render_summary(result.summary)
    if not result.findings:
        console.print("[green]No findings after filtering.[/green]")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Severity", width=8)
    table.add_column("Query", min_width=20)
    table.add_column("Location", min_width=30)
    table.add_column("CWE", width=6)
    table.add_column("Status", width=10)

    for finding in sorted(result.findings, key=lambda f: f.severity, reverse=True):
        color = _SEVERITY_COLORS.get(finding.severity.value, "white")
        location = finding.file_name
        if finding.line is not None:
            location = f"{location}:{finding.line}"
        table.add_row(
            f"[{color}]{finding.severity.value.upper()}[/{color}]",
            finding.query,
            location,
            finding.cwe or "",
            finding.status or "",
        )

    console.print(table)
