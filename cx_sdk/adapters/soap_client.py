"""SOAP transport for the legacy (session-based) web service.

Envelopes are built and read with ElementTree; the HTTP exchange goes through
a requests.Session. Every operation answers with a <XResult> element holding
IsSuccesfull (sic) and ErrorMessage; an unsuccessful result becomes a
LegacyServiceError, or an AuthenticationError when the service says the
session is not valid.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Any

import requests

from cx_sdk.domain.errors import AuthenticationError, LegacyServiceError, TransportError
from cx_sdk.domain.models import LdapGroupMapping
from cx_sdk.security.redaction import redact_text

logger = logging.getLogger(__name__)

CX_NS = "http://Checkmarx.com/"
SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
DEFAULT_LEGACY_PATH = "/cxwebinterface/Portal/CxWebService.asmx"

_SESSION_ERROR = re.compile(r"(?i)session|unauthori[sz]ed|not logged in")
_TAG = re.compile(r"<.*?>")

# A field is (name, value); value may be a scalar or a nested list of fields.
Fields = list[tuple[str, Any]]


class CxSoapClient:
    """LegacyApi implementation over SOAP 1.1."""

    def __init__(
        self,
        base_url: str,
        path: str = DEFAULT_LEGACY_PATH,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        session: requests.Session | None = None,
    ) -> None:
        self._url = base_url.rstrip("/") + path
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._session = session or requests.Session()

    def login(self, username: str, password: str) -> str:
        result = self._call(
            "LoginV2",
            [
                ("applicationCredentials", [("User", username), ("Pass", password)]),
                ("lcid", 1033),
                ("useExternalLogin", False),
            ],
        )
        session_id = _text(result, "SessionId")
        if not session_id:
            raise LegacyServiceError("Authentication Error")
        return session_id

    def create_team(self, session_id: str, parent_id: str, name: str) -> None:
        logger.info("Creating team %s (%s)", name, parent_id)
        self._call(
            "CreateNewTeam",
            [("sessionID", session_id), ("parentTeamID", parent_id), ("newTeamName", name)],
        )

    def delete_team(self, session_id: str, team_id: str) -> None:
        logger.info("Deleting team id %s", team_id)
        self._call("DeleteTeam", [("sessionID", session_id), ("teamID", team_id)])

    def get_ldap_server_id(self, session_id: str, server_name: str) -> int:
        logger.debug("Retrieving LDAP server configurations")
        result = self._call("GetLdapServersConfigurations", [("sessionId", session_id)])
        for config in result.iter(f"{{{CX_NS}}}CxWSLdapServerConfiguration"):
            if (_text(config, "Name") or "").lower() == server_name.lower():
                return int(_text(config, "Id") or -1)
        return -1

    def get_team_ldap_mappings(self, session_id: str, team_id: str) -> list[LdapGroupMapping]:
        logger.info("Retrieving existing LDAP group mappings for team %s", team_id)
        result = self._call(
            "GetTeamLdapGroupsMapping", [("sessionId", session_id), ("teamId", team_id)]
        )
        mappings = []
        for node in result.iter(f"{{{CX_NS}}}CxWSLdapGroupMapping"):
            group = node.find(f"{{{CX_NS}}}LdapGroup")
            mappings.append(
                LdapGroupMapping(
                    ldap_server_id=int(_text(node, "LdapServerId") or -1),
                    group_dn=_text(group, "DN") or "",
                    group_name=_text(group, "Name") or "",
                )
            )
        return mappings

    def update_team_ldap_mappings(
        self,
        session_id: str,
        team_id: str,
        team_name: str,
        mappings: list[LdapGroupMapping],
    ) -> None:
        self._call(
            "UpdateTeam",
            [
                ("sessionID", session_id),
                ("teamID", team_id),
                ("newTeamName", team_name),
                (
                    "ldapGroupMappings",
                    [
                        (
                            "CxWSLdapGroupMapping",
                            [
                                ("LdapServerId", m.ldap_server_id),
                                ("LdapGroup", [("DN", m.group_dn), ("Name", m.group_name)]),
                            ],
                        )
                        for m in mappings
                    ],
                ),
            ],
        )

    def get_result_description(self, session_id: str, scan_id: int, path_id: int) -> str:
        logger.debug("Retrieving description for %s / %s", scan_id, path_id)
        result = self._call(
            "GetResultDescription",
            [("sessionID", session_id), ("scanID", scan_id), ("pathID", path_id)],
        )
        return _TAG.sub("", _text(result, "ResultDescription") or "").strip()

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _call(self, action: str, fields: Fields) -> ET.Element:
        envelope = _envelope(action, fields)
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f'"{CX_NS}{action}"',
        }
        logger.debug("SOAP %s -> %s", action, self._url)
        try:
            resp = self._session.post(
                self._url,
                data=envelope,
                headers=headers,
                timeout=self._timeout,
                verify=self._verify_ssl,
            )
        except requests.RequestException as err:
            raise TransportError(f"SOAP {action} failed: {err}") from err

        if resp.status_code >= 500 and b"Fault" not in resp.content:
            raise TransportError(f"SOAP {action} returned HTTP {resp.status_code}")

        try:
            root = ET.fromstring(resp.content)
        except ET.ParseError as err:
            raise LegacyServiceError(f"SOAP {action} returned malformed XML") from err

        fault = root.find(f".//{{{SOAP_NS}}}Fault")
        if fault is not None:
            message = (fault.findtext("faultstring") or "SOAP fault").strip()
            logger.error("SOAP %s fault: %s", action, redact_text(message))
            raise LegacyServiceError(message)

        result = root.find(f".//{{{CX_NS}}}{action}Result")
        if result is None:
            raise LegacyServiceError(f"SOAP {action} response has no result")
        if (_text(result, "IsSuccesfull") or "").lower() != "true":
            message = _text(result, "ErrorMessage") or f"{action} was not successful"
            logger.error("SOAP %s failed: %s", action, message)
            if _SESSION_ERROR.search(message):
                raise AuthenticationError(message)
            raise LegacyServiceError(message)
        return result


def _envelope(action: str, fields: Fields) -> bytes:
    ET.register_namespace("soap", SOAP_NS)
    ET.register_namespace("cx", CX_NS)
    root = ET.Element(f"{{{SOAP_NS}}}Envelope")
    body = ET.SubElement(root, f"{{{SOAP_NS}}}Body")
    _append(ET.SubElement(body, f"{{{CX_NS}}}{action}"), fields)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def _append(parent: ET.Element, fields: Fields) -> None:
    for name, value in fields:
        child = ET.SubElement(parent, f"{{{CX_NS}}}{name}")
        if isinstance(value, list):
            _append(child, value)
        elif isinstance(value, bool):
            child.text = "true" if value else "false"
        elif value is not None:
            child.text = str(value)


def _text(parent: ET.Element | None, name: str) -> str | None:
    if parent is None:
        return None
    node = parent.find(f"{{{CX_NS}}}{name}")
    return node.text if node is not None else None
