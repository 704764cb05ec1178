"""YAML + environment configuration.

Settings are read from a YAML file, then any CX_<KEY> environment variable
overrides the matching key (CX_BASE_URL, CX_PASSWORD, ...). Durations are
seconds.

Schema:
  base_url: string (required)      e.g. https://cx.example.com/cxrestapi
  username: string (required)
  password: string (required)
  client_id: string                 default resource_owner_client
  client_secret: string             optional
  scope: string                     default sast_rest_api
  verify_ssl: true | false          default true
  http_timeout: number              default 30
  token_margin: int                 default 500, must be > 0
  scan_polling: number              default 20
  scan_timeout: number              default 7200
  report_polling: number            default 5
  report_timeout: number            default 300
  poll_retries: int                 default 3
  legacy_url: string                default: base_url without /cxrestapi
  legacy_path: string               default /cxwebinterface/Portal/CxWebService.asmx
  team: string                      default team path for CLI lookups
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path.home() / ".cx_sdk" / "config.yml"
ENV_PREFIX = "CX_"

_REQUIRED = ("base_url", "username", "password")
_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class CxSettings:
    base_url: str
    username: str
    password: str = dataclasses.field(repr=False)
    client_id: str = "resource_owner_client"
    client_secret: str | None = dataclasses.field(default=None, repr=False)
    scope: str = "sast_rest_api"
    verify_ssl: bool = True
    http_timeout: float = 30.0
    token_margin: int = 500
    scan_polling: float = 20.0
    scan_timeout: float = 7200.0
    report_polling: float = 5.0
    report_timeout: float = 300.0
    poll_retries: int = 3
    legacy_url: str | None = None
    legacy_path: str = "/cxwebinterface/Portal/CxWebService.asmx"
    team: str | None = None

    @property
    def legacy_base_url(self) -> str:
        if self.legacy_url:
            return self.legacy_url.rstrip("/")
        base = self.base_url.rstrip("/")
        if base.lower().endswith("/cxrestapi"):
            base = base[: -len("/cxrestapi")]
        return base


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> CxSettings:
    """Load settings from YAML and the environment.

    Args:
        path: Config file. When None, DEFAULT_CONFIG_PATH is used if it exists.
        environ: Environment mapping; defaults to os.environ.

    Raises:
        FileNotFoundError: an explicit path does not exist.
        ValueError: the YAML is malformed, a value has the wrong type, or a
            required key is missing.
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = _read_yaml(path)
    elif DEFAULT_CONFIG_PATH.exists():
        data = _read_yaml(DEFAULT_CONFIG_PATH)

    data.update(_from_env(os.environ if environ is None else environ))
    return _parse_settings(data, source=str(path or DEFAULT_CONFIG_PATH))


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as err:
            raise ValueError(f"Invalid YAML in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping (source: {path})")
    return data


def _from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for f in fields(CxSettings):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value is not None:
            overrides[f.name] = value
    return overrides


def _parse_settings(data: dict[str, Any], source: str = "") -> CxSettings:
    missing = [key for key in _REQUIRED if not data.get(key)]
    if missing:
        raise ValueError(f"Missing required setting(s) {', '.join(missing)} (source: {source})")

    known = {f.name: f for f in fields(CxSettings)}
    kwargs: dict[str, Any] = {}
    for key, raw in data.items():
        if key not in known:
            raise ValueError(f"Unknown setting '{key}' (source: {source})")
        kwargs[key] = _coerce(key, known[key].default, raw)
    settings = CxSettings(**kwargs)
    if settings.token_margin <= 0:
        raise ValueError(
            f"Setting 'token_margin' must be a positive number of seconds, "
            f"got {settings.token_margin} (source: {source})"
        )
    return settings


def _coerce(key: str, default: Any, raw: Any) -> Any:
    if raw is None:
        return None
    try:
        if isinstance(default, bool):
            return raw if isinstance(raw, bool) else str(raw).strip().lower() in _TRUE
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except (TypeError, ValueError) as err:
        raise ValueError(f"Invalid value {raw!r} for setting '{key}'") from err
    return str(raw)
