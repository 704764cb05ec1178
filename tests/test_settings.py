"""Tests for YAML + environment settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from cx_sdk.config import settings as settings_module
from cx_sdk.config.settings import CxSettings, load_settings
from cx_sdk.engine.service import build_services, report_policy, scan_policy

MINIMAL = """\
base_url: https://cx.example.com/cxrestapi
username: admin
password: s3cret
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yml"
    path.write_text(text)
    return path


class TestLoadSettings:
    def test_minimal_file_uses_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path, MINIMAL), environ={})
        assert settings.base_url == "https://cx.example.com/cxrestapi"
        assert settings.client_id == "resource_owner_client"
        assert settings.scope == "sast_rest_api"
        assert settings.token_margin == 500
        assert settings.scan_polling == 20.0
        assert settings.scan_timeout == 7200.0
        assert settings.verify_ssl is True

    def test_file_values_are_coerced(self, tmp_path: Path) -> None:
        text = MINIMAL + "scan_timeout: 600\nverify_ssl: false\npoll_retries: '5'\n"
        settings = load_settings(_write(tmp_path, text), environ={})
        assert settings.scan_timeout == 600.0
        assert isinstance(settings.scan_timeout, float)
        assert settings.verify_ssl is False
        assert settings.poll_retries == 5

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        env = {"CX_PASSWORD": "from-env", "CX_VERIFY_SSL": "no", "CX_TOKEN_MARGIN": "60"}
        settings = load_settings(_write(tmp_path, MINIMAL), environ=env)
        assert settings.password == "from-env"
        assert settings.verify_ssl is False
        assert settings.token_margin == 60

    @pytest.mark.parametrize("margin", ["0", "-30"])
    def test_non_positive_token_margin(self, tmp_path: Path, margin: str) -> None:
        env = {"CX_TOKEN_MARGIN": margin}
        with pytest.raises(ValueError, match="token_margin"):
            load_settings(_write(tmp_path, MINIMAL), environ=env)

    def test_environment_only(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings_module, "DEFAULT_CONFIG_PATH", tmp_path / "absent.yml")
        env = {"CX_BASE_URL": "https://cx", "CX_USERNAME": "u", "CX_PASSWORD": "p"}
        settings = load_settings(environ=env)
        assert settings.username == "u"

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yml", environ={})

    def test_missing_required(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="password"):
            load_settings(_write(tmp_path, "base_url: x\nusername: u\n"), environ={})

    def test_unknown_key(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unknown setting 'colour'"):
            load_settings(_write(tmp_path, MINIMAL + "colour: blue\n"), environ={})

    def test_bad_number(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="scan_timeout"):
            load_settings(_write(tmp_path, MINIMAL + "scan_timeout: forever\n"), environ={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_settings(_write(tmp_path, "base_url: [unclosed\n"), environ={})

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="mapping"):
            load_settings(_write(tmp_path, "- a\n- b\n"), environ={})

    def test_password_not_in_repr(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path, MINIMAL), environ={})
        assert "s3cret" not in repr(settings)


class TestDerivedValues:
    def test_legacy_base_url_strips_rest_suffix(self) -> None:
        settings = CxSettings("https://cx.example.com/CxRestAPI/", "u", "p")
        assert settings.legacy_base_url == "https://cx.example.com"

    def test_explicit_legacy_url(self) -> None:
        settings = CxSettings("https://cx/cxrestapi", "u", "p", legacy_url="https://legacy/")
        assert settings.legacy_base_url == "https://legacy"

    def test_policies_follow_settings(self) -> None:
        settings = CxSettings("https://cx", "u", "p", scan_polling=10, scan_timeout=60)
        assert scan_policy(settings).interval == 10
        assert scan_policy(settings).timeout == 60
        assert report_policy(settings).interval == 5.0

    def test_build_services_shares_one_token_manager(self) -> None:
        services = build_services(CxSettings("https://cx/cxrestapi", "u", "p"))
        assert services.orchestrator._auth is services.auth
        assert services.teams._auth is services.auth
        assert services.projects._auth is services.auth
