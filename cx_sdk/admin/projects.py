"""Name → id lookups for projects, presets and engine configurations, plus
project housekeeping (deletion, source exclusions)."""

from __future__ import annotations

import logging

from cx_sdk.admin.remote import rest_call
from cx_sdk.auth.token_manager import AuthTokenManager
from cx_sdk.domain.errors import RemoteOperationFailed
from cx_sdk.domain.interfaces import ModernApi
from cx_sdk.domain.models import NamedEntity, Project

logger = logging.getLogger(__name__)


class ProjectDirectory:
    def __init__(self, api: ModernApi, auth: AuthTokenManager) -> None:
        self._api = api
        self._auth = auth

    def get_projects(self, team_id: str | None = None) -> list[Project]:
        return rest_call(
            self._auth, "List projects", lambda cred: self._api.get_projects(cred, team_id=team_id)
        )

    def get_project_id(self, team_id: str, name: str) -> int | None:
        """Id of the named project owned by the team, or None."""
        projects = rest_call(
            self._auth,
            "Look up project",
            lambda cred: self._api.get_projects(cred, team_id=team_id, name=name),
        )
        for project in projects:
            if project.name == name:
                return project.id
        return None

    def create_project(self, team_id: str, name: str) -> int:
        logger.info("Creating project %s for team %s", name, team_id)
        return rest_call(
            self._auth, "Create project", lambda cred: self._api.create_project(cred, team_id, name)
        )

    def ensure_project(self, team_id: str, name: str) -> int:
        """Id of the named project, creating it first if it does not exist."""
        project_id = self.get_project_id(team_id, name)
        if project_id is not None:
            return project_id
        return self.create_project(team_id, name)

    def delete_project(self, project_id: int) -> None:
        """Delete a project. Scans still running for it are stopped."""
        logger.info("Deleting project %s", project_id)
        rest_call(
            self._auth, "Delete project", lambda cred: self._api.delete_project(cred, project_id)
        )

    def set_exclude_details(
        self, project_id: int, exclude_folders: list[str], exclude_files: list[str]
    ) -> None:
        """Replace the folder and file patterns left out of the project's scans."""
        logger.info(
            "Excluding folders %s and files %s from project %s",
            exclude_folders,
            exclude_files,
            project_id,
        )
        rest_call(
            self._auth,
            "Set exclude settings",
            lambda cred: self._api.set_exclude_settings(
                cred, project_id, exclude_folders, exclude_files
            ),
        )

    def get_preset_id(self, name: str) -> int:
        presets = rest_call(self._auth, "List presets", self._api.get_presets)
        return _lookup(presets, name, "preset")

    def get_engine_config_id(self, name: str) -> int:
        configs = rest_call(
            self._auth, "List engine configurations", self._api.get_engine_configurations
        )
        return _lookup(configs, name, "engine configuration")


def _lookup(entities: list[NamedEntity], name: str, kind: str) -> int:
    for entity in entities:
        if entity.name.lower() == name.lower():
            return entity.id
    raise RemoteOperationFailed(f"No {kind} named {name!r}")
