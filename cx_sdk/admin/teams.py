"""Team, role and directory-group administration.

These are independent request/response operations outside the scan state
machine. They share only the Credential (REST) and SessionHandle (SOAP) with
the orchestrator. Failures surface as RemoteOperationFailed and are not
retried here; a legacy session the service rejects is dropped and reported as
InvalidCredentials so the next call logs in again.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import TypeVar

from cx_sdk.auth.legacy_session import LegacySessionBridge
from cx_sdk.auth.token_manager import AuthTokenManager
from cx_sdk.admin.remote import rest_call
from cx_sdk.domain.errors import (
    AuthenticationError,
    InvalidCredentials,
    RemoteOperationFailed,
    TransportError,
)
from cx_sdk.domain.interfaces import LegacyApi, ModernApi
from cx_sdk.domain.models import LdapGroupMapping, Role, RoleLdapMapping, Team

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RDN_SPLIT = re.compile(r"(?<!\\),")


def common_name(group_dn: str) -> str:
    """Return the value of the leading RDN of a DN.

    'CN=Developers,OU=Groups,DC=corp,DC=local' → 'Developers'

    Raises:
        ValueError: if the DN has no attribute=value leading component.
    """
    first = _RDN_SPLIT.split(group_dn.strip(), maxsplit=1)[0]
    attr, sep, value = first.partition("=")
    if not sep or not attr.strip() or not value.strip():
        raise ValueError(f"Invalid LDAP name: {group_dn!r}")
    return value.strip().replace("\\,", ",")


class TeamAdministrator:
    """Administrative operations over both transports."""

    def __init__(
        self,
        api: ModernApi,
        auth: AuthTokenManager,
        legacy_api: LegacyApi,
        legacy: LegacySessionBridge,
    ) -> None:
        self._api = api
        self._auth = auth
        self._legacy_api = legacy_api
        self._legacy = legacy

    # ── Teams (REST) ──────────────────────────────────────────────────────────

    def get_teams(self) -> list[Team]:
        return rest_call(self._auth, "List teams", self._api.get_teams)

    def get_team_id(self, team_path: str) -> str | None:
        """Look up a team by its full path (e.g. '/CxServer/SP/Company'). None if absent."""
        for team in self.get_teams():
            if team.full_name.lower() == team_path.lower():
                return team.id
        logger.info("No team found for path %s", team_path)
        return None

    def find_team(self, parent_id: str, name: str) -> Team | None:
        for team in self.get_teams():
            if team.parent_id == str(parent_id) and team.name == name:
                return team
        return None

    def create_team(self, parent_id: str, name: str) -> str:
        logger.info("Creating team %s under %s", name, parent_id)
        return rest_call(
            self._auth, "Create team", lambda cred: self._api.create_team(cred, parent_id, name)
        )

    def delete_team(self, team_id: str) -> None:
        logger.info("Deleting team id %s", team_id)
        rest_call(self._auth, "Delete team", lambda cred: self._api.delete_team(cred, team_id))

    # ── Teams (legacy) ────────────────────────────────────────────────────────

    def create_team_ws(self, parent_id: str, name: str) -> str:
        """Create a team through the legacy service and return its id."""
        self._with_session(lambda sid: self._legacy_api.create_team(sid, parent_id, name))
        team = self.find_team(parent_id, name)
        if team is None:
            raise RemoteOperationFailed(f"Team {name} was created but could not be found")
        return team.id

    def delete_team_ws(self, team_id: str) -> None:
        self._with_session(lambda sid: self._legacy_api.delete_team(sid, team_id))

    def get_ldap_server_id(self, server_name: str) -> int:
        """Id of the named LDAP server, or -1 when none matches."""
        return self._with_session(lambda sid: self._legacy_api.get_ldap_server_id(sid, server_name))

    def get_result_description(self, scan_id: int, path_id: int) -> str:
        """Plain-text description of one result path, from the legacy service."""
        return self._with_session(
            lambda sid: self._legacy_api.get_result_description(sid, scan_id, path_id)
        )

    def map_team_ldap_ws(
        self, ldap_server_id: int, team_id: str, team_name: str, group_dn: str
    ) -> None:
        """Associate a directory group with a team. No-op if already mapped."""
        wanted = LdapGroupMapping(ldap_server_id, group_dn, common_name(group_dn))
        mappings = self._team_mappings(team_id)
        if _contains(mappings, wanted):
            logger.warning("LDAP mapping already exists for %s - %s", ldap_server_id, group_dn)
            return
        self._write_team_mappings(team_id, team_name, [*mappings, wanted])

    def remove_team_ldap_ws(
        self, ldap_server_id: int, team_id: str, team_name: str, group_dn: str
    ) -> None:
        """Remove a directory group from a team. No-op if not mapped."""
        target = LdapGroupMapping(ldap_server_id, group_dn, common_name(group_dn))
        mappings = self._team_mappings(team_id)
        if not _contains(mappings, target):
            logger.warning("LDAP mapping does not exist for %s - %s", ldap_server_id, group_dn)
            return
        remaining = [m for m in mappings if not _same(m, target)]
        self._write_team_mappings(team_id, team_name, remaining)

    # ── Roles (REST) ──────────────────────────────────────────────────────────

    def get_roles(self) -> list[Role]:
        return rest_call(self._auth, "List roles", self._api.get_roles)

    def get_role_id(self, role_name: str) -> int | None:
        for role in self.get_roles():
            if role.name.lower() == role_name.lower():
                return role.id
        return None

    def get_role_ldap(self, ldap_server_id: int) -> list[RoleLdapMapping]:
        return rest_call(
            self._auth,
            "List role mappings",
            lambda cred: self._api.get_role_ldap_mappings(cred, ldap_server_id),
        )

    def get_ldap_role_map_id(self, ldap_server_id: int, role_id: int, group_dn: str) -> int | None:
        for mapping in self.get_role_ldap(ldap_server_id):
            if mapping.role_id == role_id and mapping.group_dn.lower() == group_dn.lower():
                return mapping.id
        return None

    def map_role_ldap(self, ldap_server_id: int, role_id: int, group_dn: str) -> None:
        if self.get_ldap_role_map_id(ldap_server_id, role_id, group_dn) is not None:
            logger.warning("Role mapping already exists for %s - %s", role_id, group_dn)
            return
        logger.info("Mapping role %s to %s", role_id, group_dn)
        group_name = common_name(group_dn)
        rest_call(
            self._auth,
            "Map role",
            lambda cred: self._api.put_role_ldap_mapping(
                cred, ldap_server_id, role_id, group_dn, group_name
            ),
        )

    def remove_role_ldap(self, role_map_id: int) -> None:
        logger.info("Removing role mapping %s", role_map_id)
        rest_call(
            self._auth,
            "Remove role mapping",
            lambda cred: self._api.delete_role_ldap_mapping(cred, role_map_id),
        )

    def remove_role_ldap_group(self, ldap_server_id: int, role_id: int, group_dn: str) -> None:
        """Remove the mapping between a role and a directory group. No-op if not mapped."""
        role_map_id = self.get_ldap_role_map_id(ldap_server_id, role_id, group_dn)
        if role_map_id is None:
            logger.warning("Role mapping does not exist for %s - %s", role_id, group_dn)
            return
        self.remove_role_ldap(role_map_id)

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _with_session(self, call: Callable[[str], T]) -> T:
        session = self._legacy.ensure_session()
        try:
            return call(session.id)
        except AuthenticationError as err:
            logger.warning("Legacy session rejected; it must be re-established")
            self._legacy.invalidate()
            raise InvalidCredentials("Legacy session is no longer valid") from err
        except TransportError as err:
            logger.error("Legacy call failed: %s", err)
            raise RemoteOperationFailed(f"Legacy call failed: {err}") from err

    def _team_mappings(self, team_id: str) -> list[LdapGroupMapping]:
        mappings = self._with_session(
            lambda sid: self._legacy_api.get_team_ldap_mappings(sid, team_id)
        )
        logger.debug("Team %s has %d LDAP mapping(s)", team_id, len(mappings))
        return mappings

    def _write_team_mappings(
        self, team_id: str, team_name: str, mappings: list[LdapGroupMapping]
    ) -> None:
        self._with_session(
            lambda sid: self._legacy_api.update_team_ldap_mappings(
                sid, team_id, team_name, mappings
            )
        )


def _same(a: LdapGroupMapping, b: LdapGroupMapping) -> bool:
    return a.ldap_server_id == b.ldap_server_id and a.group_dn.lower() == b.group_dn.lower()


def _contains(mappings: list[LdapGroupMapping], wanted: LdapGroupMapping) -> bool:
    return any(_same(m, wanted) for m in mappings)
