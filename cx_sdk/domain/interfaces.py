"""Transport capability interfaces.

The platform exposes two unrelated transports. They are modelled as two
independent protocols; nothing assumes one can stand in for the other.
Implementations translate wire failures into cx_sdk.domain.errors.
"""

from __future__ import annotations

from typing import Protocol

from cx_sdk.domain.models import (
    Credential,
    LdapGroupMapping,
    NamedEntity,
    Project,
    Role,
    RoleLdapMapping,
    ScanRequest,
    Severity,
    Team,
    TokenGrant,
)


class ModernApi(Protocol):
    """Token-based REST transport. Every call except the token exchange
    takes the bearer credential to authenticate with."""

    def token_exchange(
        self,
        username: str,
        password: str,
        client_id: str,
        client_secret: str | None,
        scope: str,
    ) -> TokenGrant | None:
        """Exchange user credentials for a bearer token. None if the body is unusable."""
        ...

    def create_scan(self, credential: Credential, request: ScanRequest) -> int:
        """Apply scan settings and source location, launch a scan, return its id."""
        ...

    def scan_status(self, credential: Credential, scan_id: int) -> int:
        """Return the remote status code of a scan."""
        ...

    def create_report(self, credential: Credential, scan_id: int) -> int:
        """Request an XML report for a scan, return the report id."""
        ...

    def report_status(self, credential: Credential, report_id: int) -> int:
        """Return the remote status code of a report."""
        ...

    def report_content(self, credential: Credential, report_id: int) -> bytes:
        """Download a generated report."""
        ...

    def get_last_scan_id(self, credential: Credential, project_id: int) -> int | None:
        """Id of the project's most recent finished scan, or None if it has none."""
        ...

    def get_queued_scans(self, credential: Credential, project_id: int) -> dict[int, int]:
        """Scan id → stage code for each scan of the project in the scan queue."""
        ...

    def get_scan_statistics(self, credential: Credential, scan_id: int) -> dict[Severity, int]:
        """Number of results per severity, as counted by the platform."""
        ...

    def delete_scan(self, credential: Credential, scan_id: int) -> None: ...

    def get_teams(self, credential: Credential) -> list[Team]: ...

    def create_team(self, credential: Credential, parent_id: str, name: str) -> str: ...

    def delete_team(self, credential: Credential, team_id: str) -> None: ...

    def get_roles(self, credential: Credential) -> list[Role]: ...

    def get_role_ldap_mappings(
        self, credential: Credential, ldap_server_id: int
    ) -> list[RoleLdapMapping]: ...

    def put_role_ldap_mapping(
        self,
        credential: Credential,
        ldap_server_id: int,
        role_id: int,
        group_dn: str,
        group_name: str,
    ) -> None: ...

    def delete_role_ldap_mapping(self, credential: Credential, role_map_id: int) -> None: ...

    def get_projects(
        self, credential: Credential, team_id: str | None = None, name: str | None = None
    ) -> list[Project]: ...

    def create_project(self, credential: Credential, team_id: str, name: str) -> int: ...

    def delete_project(self, credential: Credential, project_id: int) -> None:
        """Delete a project together with any of its running scans."""
        ...

    def set_exclude_settings(
        self,
        credential: Credential,
        project_id: int,
        exclude_folders: list[str],
        exclude_files: list[str],
    ) -> None: ...

    def get_presets(self, credential: Credential) -> list[NamedEntity]: ...

    def get_engine_configurations(self, credential: Credential) -> list[NamedEntity]: ...


class LegacyApi(Protocol):
    """Session-based SOAP transport."""

    def login(self, username: str, password: str) -> str:
        """Authenticate and return a session id. Raises LegacyServiceError on failure."""
        ...

    def create_team(self, session_id: str, parent_id: str, name: str) -> None: ...

    def delete_team(self, session_id: str, team_id: str) -> None: ...

    def get_ldap_server_id(self, session_id: str, server_name: str) -> int:
        """Return the id of the named LDAP server, or -1 if none matches."""
        ...

    def get_team_ldap_mappings(self, session_id: str, team_id: str) -> list[LdapGroupMapping]: ...

    def update_team_ldap_mappings(
        self,
        session_id: str,
        team_id: str,
        team_name: str,
        mappings: list[LdapGroupMapping],
    ) -> None: ...

    def get_result_description(self, session_id: str, scan_id: int, path_id: int) -> str: ...
