"""Explicit construction of the process-scoped client objects.

build_services() wires one REST transport, one SOAP transport, one
AuthTokenManager and one LegacySessionBridge for the configured principal,
and the orchestrator and administrators that share them. CxServices also
resolves projects by team path and name for the operations that take names.
"""

from __future__ import annotations

from dataclasses import dataclass

import requests

from cx_sdk.adapters.rest_client import CxRestClient
from cx_sdk.adapters.soap_client import CxSoapClient
from cx_sdk.admin.projects import ProjectDirectory
from cx_sdk.admin.teams import TeamAdministrator
from cx_sdk.auth.legacy_session import LegacySessionBridge
from cx_sdk.auth.token_manager import AuthTokenManager
from cx_sdk.config.settings import CxSettings
from cx_sdk.domain.errors import RemoteOperationFailed
from cx_sdk.domain.models import Filter, ScanResult, ScanSummary
from cx_sdk.engine.filters import validate_filters
from cx_sdk.engine.orchestrator import ScanOrchestrator
from cx_sdk.engine.polling import CancelToken, PollPolicy


@dataclass(frozen=True)
class CxServices:
    settings: CxSettings
    auth: AuthTokenManager
    legacy: LegacySessionBridge
    orchestrator: ScanOrchestrator
    teams: TeamAdministrator
    projects: ProjectDirectory

    def find_project_id(self, team_path: str, project_name: str) -> int:
        """Resolve a project by owning team path and name.

        Raises:
            RemoteOperationFailed: the team or the project does not exist.
        """
        team_id = self.teams.get_team_id(team_path)
        if team_id is None:
            raise RemoteOperationFailed(f"Team not found: {team_path}")
        project_id = self.projects.get_project_id(team_id, project_name)
        if project_id is None:
            raise RemoteOperationFailed(f"Project {project_name} not found in {team_path}")
        return project_id

    def latest_scan_results(
        self,
        team_path: str,
        project_name: str,
        filters: list[Filter] | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanResult:
        """Filtered results of the most recent finished scan of a named project."""
        validate_filters(filters)
        project_id = self.find_project_id(team_path, project_name)
        return self.orchestrator.latest_scan_results(
            project_id, filters, report_policy=report_policy(self.settings), cancel=cancel
        )

    def latest_scan_summary(self, team_path: str, project_name: str) -> ScanSummary:
        return self.orchestrator.latest_scan_summary(self.find_project_id(team_path, project_name))


def scan_policy(settings: CxSettings) -> PollPolicy:
    return PollPolicy(
        interval=settings.scan_polling,
        timeout=settings.scan_timeout,
        retries=settings.poll_retries,
    )


def report_policy(settings: CxSettings) -> PollPolicy:
    return PollPolicy(
        interval=settings.report_polling,
        timeout=settings.report_timeout,
        retries=settings.poll_retries,
    )


def build_services(settings: CxSettings, session: requests.Session | None = None) -> CxServices:
    http = session or requests.Session()
    rest = CxRestClient(
        settings.base_url,
        timeout=settings.http_timeout,
        verify_ssl=settings.verify_ssl,
        session=http,
    )
    soap = CxSoapClient(
        settings.legacy_base_url,
        path=settings.legacy_path,
        timeout=settings.http_timeout,
        verify_ssl=settings.verify_ssl,
        session=http,
    )
    auth = AuthTokenManager(
        rest,
        settings.username,
        settings.password,
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        scope=settings.scope,
        margin_seconds=settings.token_margin,
    )
    legacy = LegacySessionBridge(soap, settings.username, settings.password)
    orchestrator = ScanOrchestrator(
        rest,
        auth,
        scan_policy=scan_policy(settings),
        report_policy=report_policy(settings),
    )
    return CxServices(
        settings=settings,
        auth=auth,
        legacy=legacy,
        orchestrator=orchestrator,
        teams=TeamAdministrator(rest, auth, soap, legacy),
        projects=ProjectDirectory(rest, auth),
    )
