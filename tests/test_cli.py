"""Tests for the cx-sdk CLI commands."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from cx_sdk.cli.login import login
from cx_sdk.cli.main import cli
from cx_sdk.cli.results import results
from cx_sdk.cli.scan import scan
from cx_sdk.cli.teams import teams
from cx_sdk.config.settings import CxSettings
from cx_sdk.domain.errors import InvalidCredentials, RemoteOperationFailed, ScanTimeout
from cx_sdk.domain.models import (
    Credential,
    Filter,
    FilterType,
    Finding,
    ScanResult,
    ScanSummary,
    Severity,
    Team,
)

NOW = datetime(2024, 1, 1, tzinfo=UTC)
IDS = ["--project-id", "42", "--preset-id", "36", "--engine-config-id", "1"]


def _services(team: str | None = None) -> MagicMock:
    services = MagicMock()
    services.settings = CxSettings("https://cx/cxrestapi", "admin", "s3cret", team=team)
    return services


def _result() -> ScanResult:
    finding = Finding(
        id="1",
        query="SQL_Injection",
        category="Java_High_Risk",
        severity=Severity.HIGH,
        file_name="Login.java",
        line=42,
        cwe="89",
        status="New",
    )
    summary = ScanSummary(
        scan_id=5,
        project_name="webgoat",
        total=1,
        by_severity={Severity.INFO: 0, Severity.LOW: 0, Severity.MEDIUM: 0, Severity.HIGH: 1},
    )
    return ScanResult(findings=(finding,), summary=summary)


# ── scan ──────────────────────────────────────────────────────────────────────


class TestScanCommand:
    def test_runs_scan_with_filters(self) -> None:
        services = _services()
        services.orchestrator.run_scan_and_report.return_value = _result()
        runner = CliRunner()
        with patch("cx_sdk.cli.scan.load_services", return_value=services):
            result = runner.invoke(scan, [*IDS, "--severity", "High", "--cwe", "CWE-89"])

        assert result.exit_code == 0, result.output
        assert "SQL_Injection" in result.output
        assert "Login.java:42" in result.output

        args, kwargs = services.orchestrator.run_scan_and_report.call_args
        request, filters = args
        assert (request.project_id, request.preset_id, request.engine_config_id) == (42, 36, 1)
        assert filters == [Filter(FilterType.SEVERITY, "high"), Filter(FilterType.CWE, "CWE-89")]
        assert kwargs["scan_policy"].timeout == 7200.0
        assert kwargs["cancel"] is not None

    def test_resolves_names(self) -> None:
        services = _services(team="/CxServer/SP/Org")
        services.teams.get_team_id.return_value = "9"
        services.projects.ensure_project.return_value = 42
        services.projects.get_preset_id.return_value = 36
        services.projects.get_engine_config_id.return_value = 1
        services.orchestrator.run_scan_and_report.return_value = _result()
        runner = CliRunner()
        with patch("cx_sdk.cli.scan.load_services", return_value=services):
            result = runner.invoke(scan, ["--project", "webgoat", "--scan-timeout", "60"])

        assert result.exit_code == 0, result.output
        services.projects.ensure_project.assert_called_once_with("9", "webgoat")
        services.projects.get_preset_id.assert_called_once_with("Checkmarx Default")
        kwargs = services.orchestrator.run_scan_and_report.call_args.kwargs
        assert kwargs["scan_policy"].timeout == 60
        assert kwargs["scan_policy"].interval == 20.0

    def test_requires_a_project(self) -> None:
        services = _services()
        runner = CliRunner()
        with patch("cx_sdk.cli.scan.load_services", return_value=services):
            result = runner.invoke(scan, [])
        assert result.exit_code == 1
        services.orchestrator.run_scan_and_report.assert_not_called()

    def test_unknown_team(self) -> None:
        services = _services()
        services.teams.get_team_id.return_value = None
        runner = CliRunner()
        with patch("cx_sdk.cli.scan.load_services", return_value=services):
            result = runner.invoke(scan, ["--project", "webgoat", "--team", "/CxServer/Nope"])
        assert result.exit_code == 1
        assert "Team not found" in result.output

    def test_failure_exits_nonzero(self) -> None:
        services = _services()
        services.orchestrator.run_scan_and_report.side_effect = ScanTimeout(
            "Timed out waiting for scan 6", elapsed=7200.0
        )
        runner = CliRunner()
        with patch("cx_sdk.cli.scan.load_services", return_value=services):
            result = runner.invoke(scan, IDS)
        assert result.exit_code == 1
        assert "Scan failed" in result.output


# ── results ───────────────────────────────────────────────────────────────────

REPORT = b"""<CxXMLResults ProjectName="webgoat" ScanId="5">
  <Query name="SQL_Injection" group="Java_High_Risk" cweId="89" Severity="High">
    <Result NodeId="1" FileName="Login.java" Line="42" Status="New" FalsePositive="False"/>
  </Query>
  <Query name="Error_Exposure" group="Java_Low_Visibility" cweId="209" Severity="Low">
    <Result NodeId="2" FileName="Error.java" Line="17" Status="New" FalsePositive="False"/>
  </Query>
</CxXMLResults>
"""


class TestResultsCommand:
    def test_report_file_needs_no_config(self, tmp_path: Path) -> None:
        path = tmp_path / "report.xml"
        path.write_bytes(REPORT)
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services") as load:
            result = runner.invoke(results, ["--file", str(path), "--severity", "Low"])
        assert result.exit_code == 0, result.output
        assert "Error.java:17" in result.output
        assert "Login.java" not in result.output
        load.assert_not_called()

    def test_missing_report_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(results, ["--file", str(tmp_path / "absent.xml")])
        assert result.exit_code == 1
        assert "Report file not found" in result.output

    def test_scan_id(self) -> None:
        services = _services()
        services.orchestrator.fetch_result_for_scan.return_value = _result()
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services", return_value=services):
            result = runner.invoke(results, ["--scan-id", "5", "--cwe", "89"])
        assert result.exit_code == 0, result.output
        assert "SQL_Injection" in result.output
        args, kwargs = services.orchestrator.fetch_result_for_scan.call_args
        assert args == (5, [Filter(FilterType.CWE, "89")])
        assert kwargs["report_policy"].interval == 5.0

    def test_latest_by_project_name(self) -> None:
        services = _services(team="/CxServer/SP/Org")
        services.latest_scan_results.return_value = _result()
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services", return_value=services):
            result = runner.invoke(results, ["--project", "webgoat"])
        assert result.exit_code == 0, result.output
        services.latest_scan_results.assert_called_once_with("/CxServer/SP/Org", "webgoat", [])

    def test_summary_only(self) -> None:
        services = _services()
        services.orchestrator.get_scan_summary.return_value = _result().summary
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services", return_value=services):
            result = runner.invoke(results, ["--scan-id", "5", "--summary"])
        assert result.exit_code == 0, result.output
        assert "1 high" in result.output
        services.orchestrator.fetch_result_for_scan.assert_not_called()

    def test_no_finished_scan(self) -> None:
        services = _services(team="/CxServer")
        services.latest_scan_results.side_effect = RemoteOperationFailed(
            "Project 42 has no finished scan"
        )
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services", return_value=services):
            result = runner.invoke(results, ["--project", "webgoat"])
        assert result.exit_code == 1
        assert "no finished scan" in result.output

    def test_requires_a_source(self) -> None:
        runner = CliRunner()
        with patch("cx_sdk.cli.results.load_services", return_value=_services()):
            result = runner.invoke(results, [])
        assert result.exit_code == 1


# ── login ─────────────────────────────────────────────────────────────────────


class TestLoginCommand:
    def test_login(self) -> None:
        services = _services()
        services.auth.ensure_valid.return_value = Credential(
            "tok", NOW, NOW + timedelta(seconds=3100)
        )
        runner = CliRunner()
        with patch("cx_sdk.cli.login.load_services", return_value=services):
            result = runner.invoke(login, ["--legacy"])
        assert result.exit_code == 0, result.output
        assert "Token obtained" in result.output
        services.legacy.login.assert_called_once_with("admin", "s3cret")

    def test_login_failure(self) -> None:
        services = _services()
        services.auth.ensure_valid.side_effect = InvalidCredentials("Unable to obtain token")
        runner = CliRunner()
        with patch("cx_sdk.cli.login.load_services", return_value=services):
            result = runner.invoke(login, [])
        assert result.exit_code == 1
        assert "Login failed" in result.output

    def test_missing_config_file(self, tmp_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(login, ["--config", str(tmp_path / "absent.yml")])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


# ── teams ─────────────────────────────────────────────────────────────────────


class TestTeamsCommands:
    def test_list(self) -> None:
        services = _services()
        services.teams.get_teams.return_value = [
            Team("1", "CxServer", "/CxServer"),
            Team("9", "Org", "/CxServer/Org", "1"),
        ]
        runner = CliRunner()
        with patch("cx_sdk.cli.teams.load_services", return_value=services):
            result = runner.invoke(teams, ["list"])
        assert result.exit_code == 0, result.output
        assert "/CxServer/Org" in result.output

    def test_create_legacy(self) -> None:
        services = _services()
        services.teams.get_team_id.return_value = "1"
        services.teams.create_team_ws.return_value = "9"
        runner = CliRunner()
        with patch("cx_sdk.cli.teams.load_services", return_value=services):
            result = runner.invoke(teams, ["create", "Org", "--parent", "/CxServer", "--legacy"])
        assert result.exit_code == 0, result.output
        services.teams.create_team_ws.assert_called_once_with("1", "Org")
        services.teams.create_team.assert_not_called()

    def test_delete_unknown_team(self) -> None:
        services = _services()
        services.teams.get_team_id.return_value = None
        runner = CliRunner()
        with patch("cx_sdk.cli.teams.load_services", return_value=services):
            result = runner.invoke(teams, ["delete", "/CxServer/Nope"])
        assert result.exit_code == 1
        services.teams.delete_team.assert_not_called()


def test_group_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    for name in ("login", "results", "scan", "teams"):
        assert name in result.output
