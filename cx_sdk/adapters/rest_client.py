"""REST transport for the modern (token-based) API.

Thin request/response layer over a requests.Session. It knows paths and
payload shapes, and translates failures into the cx_sdk error taxonomy:

- connection errors, timeouts, HTTP 5xx  → TransportError (transient)
- HTTP 401 / 403                         → AuthenticationError
- other HTTP errors, unusable bodies     → RemoteOperationFailed
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests

from cx_sdk.domain.errors import AuthenticationError, RemoteOperationFailed, TransportError
from cx_sdk.domain.models import (
    Credential,
    NamedEntity,
    Project,
    Role,
    RoleLdapMapping,
    ScanRequest,
    Severity,
    Team,
    TokenGrant,
)
from cx_sdk.security.redaction import redact_mapping, redact_text

logger = logging.getLogger(__name__)

_JSON_ACCEPT = "application/json;v=1.0"
_GIT_PREFIXES = ("http://", "https://", "git@", "ssh://", "git://")
_STATISTICS_KEYS = {
    Severity.HIGH: "highSeverity",
    Severity.MEDIUM: "mediumSeverity",
    Severity.LOW: "lowSeverity",
    Severity.INFO: "infoSeverity",
}


class CxRestClient:
    """ModernApi implementation over HTTP."""

    _TOKEN_PATH = "/auth/identity/connect/token"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._session = session or requests.Session()

    # ── Authentication ────────────────────────────────────────────────────────

    def token_exchange(
        self,
        username: str,
        password: str,
        client_id: str,
        client_secret: str | None,
        scope: str,
    ) -> TokenGrant | None:
        form = {
            "username": username,
            "password": password,
            "grant_type": "password",
            "scope": scope,
            "client_id": client_id,
        }
        if client_secret:
            form["client_secret"] = client_secret

        logger.info("Logging into %s", self._url(self._TOKEN_PATH))
        logger.debug("Token request form: %s", redact_mapping(form))
        resp = self._request("POST", self._TOKEN_PATH, data=form)

        body = self._maybe_json(resp)
        if not isinstance(body, dict) or not body.get("access_token"):
            return None
        try:
            expires_in = int(body.get("expires_in", 0))
        except (TypeError, ValueError):
            return None
        return TokenGrant(access_token=body["access_token"], expires_in=expires_in)

    # ── Scans & reports ───────────────────────────────────────────────────────

    def create_scan(self, credential: Credential, request: ScanRequest) -> int:
        self._request(
            "POST",
            "/sast/scanSettings",
            credential,
            json={
                "projectId": request.project_id,
                "presetId": request.preset_id,
                "engineConfigurationId": request.engine_config_id,
            },
        )
        if request.source_locator:
            self._attach_source(credential, request)

        resp = self._request(
            "POST",
            "/sast/scans",
            credential,
            json={
                "projectId": request.project_id,
                "isIncremental": request.incremental,
                "isPublic": request.public,
                "forceScan": request.force_scan,
                "comment": request.comment,
            },
        )
        return int(self._field(resp, "id"))

    def scan_status(self, credential: Credential, scan_id: int) -> int:
        resp = self._request("GET", f"/sast/scans/{scan_id}", credential)
        return int(self._field(resp, "status", "id"))

    def create_report(self, credential: Credential, scan_id: int) -> int:
        resp = self._request(
            "POST",
            "/reports/sastScan",
            credential,
            json={"reportType": "XML", "scanId": scan_id},
        )
        return int(self._field(resp, "reportId"))

    def report_status(self, credential: Credential, report_id: int) -> int:
        resp = self._request("GET", f"/reports/sastScan/{report_id}/status", credential)
        return int(self._field(resp, "status", "id"))

    def report_content(self, credential: Credential, report_id: int) -> bytes:
        resp = self._request(
            "GET", f"/reports/sastScan/{report_id}", credential, accept="application/xml"
        )
        return resp.content

    def get_last_scan_id(self, credential: Credential, project_id: int) -> int | None:
        resp = self._request(
            "GET",
            "/sast/scans",
            credential,
            params={"projectId": project_id, "scanStatus": "Finished", "last": 1},
        )
        scans = self._json_list(resp)
        if not scans:
            return None
        return int(scans[0]["id"])

    def get_queued_scans(self, credential: Credential, project_id: int) -> dict[int, int]:
        params = {"projectId": project_id}
        resp = self._request("GET", "/sast/scansQueue", credential, params=params)
        return {
            int(entry["id"]): int((entry.get("stage") or {}).get("id", 0))
            for entry in self._json_list(resp)
        }

    def get_scan_statistics(self, credential: Credential, scan_id: int) -> dict[Severity, int]:
        resp = self._request("GET", f"/sast/scans/{scan_id}/resultsStatistics", credential)
        body = self._maybe_json(resp)
        if not isinstance(body, dict):
            raise RemoteOperationFailed(f"No statistics returned for scan {scan_id}")
        return {sev: int(body.get(key) or 0) for sev, key in _STATISTICS_KEYS.items()}

    def delete_scan(self, credential: Credential, scan_id: int) -> None:
        self._request("DELETE", f"/sast/scans/{scan_id}", credential)

    # ── Teams & roles ─────────────────────────────────────────────────────────

    def get_teams(self, credential: Credential) -> list[Team]:
        resp = self._request("GET", "/auth/teams", credential)
        return [
            Team(
                id=str(t["id"]),
                name=t.get("name", ""),
                full_name=t.get("fullName", ""),
                parent_id=str(t["parentId"]) if t.get("parentId") is not None else None,
            )
            for t in self._json_list(resp)
        ]

    def create_team(self, credential: Credential, parent_id: str, name: str) -> str:
        resp = self._request(
            "POST", "/auth/teams", credential, json={"name": name, "parentId": _id(parent_id)}
        )
        body = self._maybe_json(resp)
        if isinstance(body, dict) and body.get("id") is not None:
            return str(body["id"])
        for team in self.get_teams(credential):
            if team.name == name and team.parent_id == str(parent_id):
                return team.id
        raise RemoteOperationFailed(f"Team {name} was created but could not be found")

    def delete_team(self, credential: Credential, team_id: str) -> None:
        self._request("DELETE", f"/auth/teams/{team_id}", credential)

    def get_roles(self, credential: Credential) -> list[Role]:
        resp = self._request("GET", "/auth/roles", credential)
        return [Role(id=int(r["id"]), name=r.get("name", "")) for r in self._json_list(resp)]

    def get_role_ldap_mappings(
        self, credential: Credential, ldap_server_id: int
    ) -> list[RoleLdapMapping]:
        resp = self._request("GET", f"/auth/LDAPServers/{ldap_server_id}/RoleMappings", credential)
        return [
            RoleLdapMapping(
                id=int(m["id"]),
                role_id=int(m["roleId"]),
                ldap_server_id=int(m.get("ldapServerId", ldap_server_id)),
                group_dn=m.get("ldapGroupDn", ""),
            )
            for m in self._json_list(resp)
        ]

    def put_role_ldap_mapping(
        self,
        credential: Credential,
        ldap_server_id: int,
        role_id: int,
        group_dn: str,
        group_name: str,
    ) -> None:
        self._request(
            "PUT",
            f"/auth/LDAPServers/{ldap_server_id}/RoleMappings",
            credential,
            json=[{"roleId": role_id, "ldapGroupDn": group_dn, "ldapGroupDisplayName": group_name}],
        )

    def delete_role_ldap_mapping(self, credential: Credential, role_map_id: int) -> None:
        self._request("DELETE", f"/auth/LDAPRoleMappings/{role_map_id}", credential)

    # ── Projects, presets, engine configurations ──────────────────────────────

    def get_projects(
        self, credential: Credential, team_id: str | None = None, name: str | None = None
    ) -> list[Project]:
        params: dict[str, Any] = {}
        if team_id is not None:
            params["teamId"] = team_id
        if name is not None:
            params["projectName"] = name
        resp = self._request("GET", "/projects", credential, params=params, missing_ok=True)
        if resp.status_code == 404:
            return []
        return [
            Project(
                id=int(p["id"]),
                name=p.get("name", ""),
                team_id=str(p.get("teamId", "")),
                public=bool(p.get("isPublic", True)),
                custom_fields={
                    f.get("name", ""): f.get("value", "") for f in p.get("customFields") or []
                },
            )
            for p in self._json_list(resp)
        ]

    def create_project(self, credential: Credential, team_id: str, name: str) -> int:
        resp = self._request(
            "POST",
            "/projects",
            credential,
            json={"name": name, "owningTeam": _id(team_id), "isPublic": True},
        )
        return int(self._field(resp, "id"))

    def delete_project(self, credential: Credential, project_id: int) -> None:
        self._request(
            "DELETE", f"/projects/{project_id}", credential, json={"deleteRunningScans": True}
        )

    def set_exclude_settings(
        self,
        credential: Credential,
        project_id: int,
        exclude_folders: list[str],
        exclude_files: list[str],
    ) -> None:
        self._request(
            "PUT",
            f"/projects/{project_id}/sourceCode/excludeSettings",
            credential,
            json={
                "excludeFoldersPattern": ", ".join(exclude_folders),
                "excludeFilesPattern": ", ".join(exclude_files),
            },
        )

    def get_presets(self, credential: Credential) -> list[NamedEntity]:
        resp = self._request("GET", "/sast/presets", credential)
        return [NamedEntity(id=int(p["id"]), name=p.get("name", "")) for p in self._json_list(resp)]

    def get_engine_configurations(self, credential: Credential) -> list[NamedEntity]:
        resp = self._request("GET", "/sast/engineConfigurations", credential)
        return [NamedEntity(id=int(c["id"]), name=c.get("name", "")) for c in self._json_list(resp)]

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _attach_source(self, credential: Credential, request: ScanRequest) -> None:
        locator = request.source_locator or ""
        if locator.startswith(_GIT_PREFIXES):
            body: dict[str, Any] = {"url": locator}
            if request.branch:
                body["branch"] = f"refs/heads/{request.branch}"
            logger.info("Setting git repository for project %s", request.project_id)
            logger.debug("Repository url: %s", redact_text(locator))
            self._request(
                "POST",
                f"/projects/{request.project_id}/sourceCode/remoteSettings/git",
                credential,
                json=body,
            )
            return

        archive = Path(locator)
        if not archive.is_file():
            raise RemoteOperationFailed(f"Source archive not found: {archive}")
        logger.info("Uploading %s for project %s", archive.name, request.project_id)
        with open(archive, "rb") as fh:
            self._request(
                "POST",
                f"/projects/{request.project_id}/sourceCode/attachments",
                credential,
                files={"zippedSource": (archive.name, fh, "application/zip")},
            )

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _request(
        self,
        method: str,
        path: str,
        credential: Credential | None = None,
        *,
        accept: str = _JSON_ACCEPT,
        missing_ok: bool = False,
        **kwargs: Any,
    ) -> requests.Response:
        headers = {"Accept": accept}
        if credential is not None:
            headers["Authorization"] = f"Bearer {credential.value}"
        url = self._url(path)
        logger.debug("%s %s", method, url)

        try:
            resp = self._session.request(
                method,
                url,
                headers=headers,
                timeout=self._timeout,
                verify=self._verify_ssl,
                **kwargs,
            )
        except requests.Timeout as err:
            raise TransportError(f"{method} {path} timed out") from err
        except requests.ConnectionError as err:
            raise TransportError(f"{method} {path} failed to connect: {err}") from err
        except requests.RequestException as err:
            raise TransportError(f"{method} {path} failed: {err}") from err

        status = resp.status_code
        if status in (401, 403):
            raise AuthenticationError(f"{method} {path} rejected with HTTP {status}")
        if status >= 500:
            raise TransportError(f"{method} {path} returned HTTP {status}")
        if status == 404 and missing_ok:
            return resp
        if status >= 400:
            detail = redact_text(resp.text[:300]) if resp.text else ""
            logger.error("%s %s returned HTTP %s: %s", method, path, status, detail)
            raise RemoteOperationFailed(f"{method} {path} returned HTTP {status}")
        return resp

    @staticmethod
    def _maybe_json(resp: requests.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def _json_list(self, resp: requests.Response) -> list[dict[str, Any]]:
        body = self._maybe_json(resp)
        if body is None:
            return []
        if not isinstance(body, list):
            raise RemoteOperationFailed(f"Expected a JSON list from {resp.url}")
        return body

    def _field(self, resp: requests.Response, *keys: str) -> Any:
        value: Any = self._maybe_json(resp)
        for key in keys:
            if not isinstance(value, dict) or key not in value:
                raise RemoteOperationFailed(
                    f"Response from {resp.url} is missing '{'.'.join(keys)}'"
                )
            value = value[key]
        return value


def _id(value: str) -> int | str:
    """Team ids are numeric on current servers and GUID strings on older ones."""
    return int(value) if str(value).isdigit() else value
