"""Tests for settings.py module."""

import json

import pytest

from owlanter import settings
from owlanter.errors import ConfigurationError
from owlanter.settings import (
    WorkspaceConfig,
    _parse_bool,
    load_config,
    save_config,
)


class TestParseBool:
    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", True])
    def test_truthy(self, value):
        assert _parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "", False])
    def test_falsy(self, value):
        assert _parse_bool(value) is False


class TestWorkspaceRoot:
    def test_env_override(self, workspace, monkeypatch, tmp_path):
        monkeypatch.setenv("OWLANTER_WORKSPACE", str(tmp_path))
        assert settings.get_workspace_root(workspace) == tmp_path.resolve()

    def test_walks_up_to_config(self, workspace):
        (workspace / "_config").mkdir()
        nested = workspace / "a" / "b"
        nested.mkdir(parents=True)

        assert settings.get_workspace_root(nested) == workspace.resolve()

    def test_falls_back_to_start(self, workspace):
        assert settings.get_workspace_root(workspace) == workspace.resolve()


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, workspace):
        config = load_config(workspace)

        assert config.domain == ""
        assert config.settings.confirmation_required.production is True
        assert config.settings.confirmation_required.staging is False
        assert config.settings.default_delay == 1.5
        assert config.settings.max_retries == 3

    def test_comment_lines_are_ignored(self, workspace):
        path = settings.get_config_path(workspace)
        path.parent.mkdir(parents=True)
        path.write_text(
            "// written by hand\n"
            + json.dumps({"owlanter-domain": " https://p.example ", "owlanter-api": "key"})
        )

        config = load_config(workspace)
        assert config.domain == "https://p.example"
        assert config.api_key == "key"

    def test_legacy_keys(self, workspace):
        path = settings.get_config_path(workspace)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"pleasanter-domain": "https://old", "pleasanter-api": "k"}))

        config = load_config(workspace)
        assert config.domain == "https://old"
        assert "pleasanter-domain" not in config.to_document()

    def test_empty_file(self, workspace):
        path = settings.get_config_path(workspace)
        path.parent.mkdir(parents=True)
        path.write_text("// only a comment\n")

        with pytest.raises(ConfigurationError):
            load_config(workspace)

    def test_save_round_trip(self, workspace):
        config = WorkspaceConfig(domain="https://p.example", api_key="secret")
        config.settings.max_retries = 5
        path = save_config(config, workspace)

        assert path.read_text().startswith("//")
        assert load_config(workspace) == config


class TestAccessors:
    def write_config(self, workspace, document):
        path = settings.get_config_path(workspace)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document))

    def test_domain_env_override(self, workspace, monkeypatch):
        self.write_config(workspace, {"owlanter-domain": "https://file"})
        monkeypatch.setenv("OWLANTER_DOMAIN", "https://env")

        assert settings.get_domain(workspace) == "https://env"

    def test_domain_from_config(self, workspace):
        self.write_config(workspace, {"owlanter-domain": "https://file"})
        assert settings.get_domain(workspace) == "https://file"

    def test_timeout(self, monkeypatch):
        monkeypatch.delenv("OWLANTER_TIMEOUT", raising=False)
        assert settings.get_request_timeout() == 30.0
        monkeypatch.setenv("OWLANTER_TIMEOUT", "5")
        assert settings.get_request_timeout() == 5.0

    def test_max_retries(self, workspace, monkeypatch):
        self.write_config(workspace, {"settings": {"max-retries": 7}})
        assert settings.get_max_retries(workspace) == 7
        monkeypatch.setenv("OWLANTER_MAX_RETRIES", "1")
        assert settings.get_max_retries(workspace) == 1

    def test_confirmation_policy(self, workspace):
        self.write_config(
            workspace, {"settings": {"confirmation-required": {"staging": True}}}
        )

        assert settings.is_confirmation_required("production", workspace) is True
        assert settings.is_confirmation_required("staging", workspace) is True
        assert settings.is_confirmation_required("development", workspace) is False

    def test_confirmation_env_override(self, workspace, monkeypatch):
        monkeypatch.setenv("OWLANTER_CONFIRM_PUSH", "false")
        assert settings.is_confirmation_required("production", workspace) is False

    def test_unreadable_config_requires_confirmation(self, workspace):
        path = settings.get_config_path(workspace)
        path.parent.mkdir(parents=True)
        path.write_text("{broken")

        assert settings.is_confirmation_required("development", workspace) is True

    def test_resolve_connection_incomplete(self, workspace):
        with pytest.raises(ConfigurationError):
            settings.resolve_connection(workspace)

    def test_resolve_connection(self, workspace, monkeypatch):
        monkeypatch.setenv("OWLANTER_DOMAIN", "https://p.example")
        monkeypatch.setenv("OWLANTER_API_KEY", "key")
        assert settings.resolve_connection(workspace) == ("https://p.example", "key")
